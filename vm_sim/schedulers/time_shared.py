"""Time-shared preemptive scheduling of tasks inside one VM."""

from __future__ import annotations

from collections.abc import Sequence
import logging
import math
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from vm_sim.events import EventBus, EventType
from vm_sim.model import Task, TaskRecord, TaskStatus

from .base import NO_NEXT_EVENT, ITaskScheduler, SchedulerConfigError, TaskLists
from .capacity import CapacitySnapshot, compute_capacity, validate_capacity_share


logger = logging.getLogger(__name__)


class TimeSharedParams(BaseModel):
    model_config = ConfigDict(extra="forbid")

    vm_id: str = "vm0"
    min_time_between_events: float = Field(default=0.1, gt=0)
    unit_conversion_factor: float = Field(default=1_000_000.0, gt=0)


class TimeSharedScheduler(ITaskScheduler):
    """All running tasks share the VM capacity simultaneously.

    Progress is accounted lazily: each ``advance`` call credits every running
    task with the work it could do since the previous call, sweeps finished
    tasks and returns the soonest projected completion so the engine knows
    when to call again.
    """

    def __init__(
        self,
        params: dict[str, Any] | None = None,
        *,
        event_bus: EventBus | None = None,
        capacity_share: Sequence[float] | None = None,
    ) -> None:
        try:
            self._params = TimeSharedParams.model_validate(params or {})
        except ValidationError as exc:
            raise SchedulerConfigError(str(exc)) from exc
        self._event_bus = event_bus
        self._lists = TaskLists()
        self._current_pes = 0
        if capacity_share is not None:
            share = [float(rate) for rate in capacity_share]
            validate_capacity_share(share)
            self._lists.current_capacity_share = share

    @property
    def vm_id(self) -> str:
        return self._params.vm_id

    @property
    def min_time_between_events(self) -> float:
        return self._params.min_time_between_events

    @property
    def unit_conversion_factor(self) -> float:
        return self._params.unit_conversion_factor

    @property
    def previous_time(self) -> float:
        return self._lists.previous_time

    @property
    def current_capacity_share(self) -> tuple[float, ...]:
        return tuple(self._lists.current_capacity_share)

    @property
    def current_pes(self) -> int:
        """Active PE count seen by the most recent capacity computation."""
        return self._current_pes

    @property
    def running(self) -> tuple[Task, ...]:
        return tuple(record.task for record in self._lists.running)

    @property
    def paused(self) -> tuple[Task, ...]:
        return tuple(record.task for record in self._lists.paused)

    @property
    def finished(self) -> tuple[Task, ...]:
        return tuple(record.task for record in self._lists.finished)

    def advance(self, now: float, capacity_share: Sequence[float]) -> float:
        share = [float(rate) for rate in capacity_share]
        validate_capacity_share(share)
        if now < self._lists.previous_time:
            raise SchedulerConfigError(
                f"advance time {now} precedes previous time {self._lists.previous_time}"
            )
        self._lists.current_capacity_share = share

        if not self._lists.running:
            self._lists.previous_time = now
            return NO_NEXT_EVENT

        self._check_share_covers_demand(share)
        self._update_progress(now, self._capacity(share).per_pe_capacity)
        for record in self._lists.partition_running():
            self.finish(record, now=now)
        next_event = self._soonest_finish_time(now, share)

        self._lists.previous_time = now
        logger.debug(
            "vm %s advanced to %.6f, running=%d, next_event=%s",
            self.vm_id,
            now,
            len(self._lists.running),
            next_event,
        )
        return next_event

    def submit(self, task: Task, transfer_time: float = 0.0, *, now: float | None = None) -> float:
        if task.pe_count <= 0:
            raise SchedulerConfigError(f"task {task.task_id} pe_count must be >= 1, got {task.pe_count}")
        if transfer_time < 0:
            raise SchedulerConfigError(f"task {task.task_id} transfer_time must be >= 0")
        if self._lists.contains(task.task_id):
            raise SchedulerConfigError(f"task {task.task_id} is already scheduled on vm {self.vm_id}")

        at = self._resolve_now(now)
        record = TaskRecord.wrap(task, self.unit_conversion_factor, at)
        record.status = TaskStatus.IN_EXEC
        record.pe_slots = list(range(task.pe_count))
        self._lists.running.append(record)

        # File transfer delay is folded into the work to execute.
        capacity = self._capacity(self._lists.current_capacity_share).per_pe_capacity
        record.extend(capacity * transfer_time)

        estimate = record.remaining_length / capacity if capacity > 0 else math.inf
        logger.debug("task %s submitted to vm %s, estimate=%s", task.task_id, self.vm_id, estimate)
        self._publish(
            EventType.TASK_SUBMITTED,
            at,
            record,
            {"length": record.total_length, "pe_count": record.pe_count, "estimate": _finite(estimate)},
        )
        return estimate

    def cancel(self, task_id: int, *, now: float | None = None) -> Optional[Task]:
        at = self._resolve_now(now)

        record = self._lists.take("finished", task_id)
        if record is not None:
            return record.task

        record = self._lists.take("running", task_id)
        if record is not None:
            if record.is_finished:
                self.finish(record, now=at)
            else:
                record.finalize(at)
                record.status = TaskStatus.CANCELED
                self._publish(EventType.TASK_CANCELED, at, record, {"from": "running"})
            return record.task

        record = self._lists.take("paused", task_id)
        if record is not None:
            record.finalize(at)
            record.status = TaskStatus.CANCELED
            self._publish(EventType.TASK_CANCELED, at, record, {"from": "paused"})
            return record.task

        return None

    def pause(self, task_id: int, *, now: float | None = None) -> bool:
        at = self._resolve_now(now)
        record = self._lists.take("running", task_id)
        if record is None:
            return False

        if record.is_finished:
            self.finish(record, now=at)
        else:
            record.finalize(at)
            record.status = TaskStatus.PAUSED
            self._lists.paused.append(record)
            self._publish(EventType.TASK_PAUSED, at, record, {"remaining": record.remaining_length})
        return True

    def resume(self, task_id: int, *, now: float | None = None) -> float:
        at = self._resolve_now(now)
        record = self._lists.take("paused", task_id)
        if record is None:
            return 0.0

        record.status = TaskStatus.IN_EXEC
        record.restart_clock(at)
        self._lists.running.append(record)

        capacity = self._capacity(self._lists.current_capacity_share).per_pe_capacity
        if capacity > 0:
            estimate = at + record.remaining_length / (capacity * record.pe_count)
        else:
            estimate = math.inf
        self._publish(EventType.TASK_RESUMED, at, record, {"estimate": _finite(estimate)})
        return estimate

    def finish(self, record: TaskRecord, *, now: float | None = None) -> None:
        at = self._resolve_now(now)
        record.status = TaskStatus.SUCCESS
        record.finalize(at)
        record.task.finish_time = at
        self._lists.finished.append(record)
        logger.debug("task %s finished on vm %s at %.6f", record.task_id, self.vm_id, at)
        self._publish(EventType.TASK_FINISHED, at, record)

    def migrate(self, *, now: float | None = None) -> Optional[Task]:
        if not self._lists.running:
            return None
        at = self._resolve_now(now)
        record = self._lists.running[0]
        self._lists.running = self._lists.running[1:]
        record.finalize(at)
        self._publish(EventType.TASK_MIGRATED, at, record, {"remaining": record.remaining_length})
        return record.task

    def status(self, task_id: int) -> Optional[TaskStatus]:
        record = TaskLists.find(self._lists.running, task_id) or TaskLists.find(self._lists.paused, task_id)
        if record is None:
            return None
        return record.status

    def has_finished(self) -> bool:
        return bool(self._lists.finished)

    def next_finished(self) -> Optional[Task]:
        if not self._lists.finished:
            return None
        head = self._lists.finished[0]
        self._lists.finished = self._lists.finished[1:]
        return head.task

    def running_count(self) -> int:
        return len(self._lists.running)

    def remaining_length(self, task_id: int) -> Optional[float]:
        for records in (self._lists.running, self._lists.paused, self._lists.finished):
            record = TaskLists.find(records, task_id)
            if record is not None:
                return record.remaining_length
        return None

    def total_cpu_utilization(self, time: float) -> float:
        return sum(record.task.utilization_of_cpu(time) for record in self._lists.running)

    def total_ram_utilization(self, time: float) -> float:
        return sum(record.task.utilization_of_ram(time) for record in self._lists.running)

    def total_bw_utilization(self, time: float) -> float:
        return sum(record.task.utilization_of_bw(time) for record in self._lists.running)

    def total_current_available_mips_for_task(self, task_id: int) -> float:  # noqa: ARG002
        return self._capacity(self._lists.current_capacity_share).per_pe_capacity

    def _capacity(self, share: Sequence[float]) -> CapacitySnapshot:
        snapshot = compute_capacity(share, self._lists.demanded_pe_count())
        self._current_pes = snapshot.active_pe_count
        return snapshot

    def _check_share_covers_demand(self, share: Sequence[float]) -> None:
        for record in self._lists.running:
            if record.pe_count > len(share):
                raise SchedulerConfigError(
                    f"task {record.task_id} needs {record.pe_count} PEs but vm {self.vm_id} "
                    f"capacity share has {len(share)} entries"
                )

    def _update_progress(self, now: float, per_pe_capacity: float) -> None:
        elapsed = now - self._lists.previous_time
        for record in self._lists.running:
            record.add_progress(per_pe_capacity * elapsed * record.pe_count * self.unit_conversion_factor)

    def _soonest_finish_time(self, now: float, share: Sequence[float]) -> float:
        per_pe_capacity = self._capacity(share).per_pe_capacity
        next_event = math.inf
        for record in self._lists.running:
            next_event = min(next_event, self._estimated_finish_time(record, now, per_pe_capacity))
        return next_event

    def _estimated_finish_time(self, record: TaskRecord, now: float, per_pe_capacity: float) -> float:
        if per_pe_capacity <= 0:
            return math.inf
        estimate = now + record.remaining_length / (per_pe_capacity * record.pe_count)
        if estimate - now < self.min_time_between_events:
            estimate = now + self.min_time_between_events
        return estimate

    def _resolve_now(self, now: float | None) -> float:
        return self._lists.previous_time if now is None else float(now)

    def _publish(
        self,
        event_type: EventType,
        time: float,
        record: TaskRecord,
        payload: dict | None = None,
    ) -> None:
        if self._event_bus is None:
            return
        self._event_bus.publish(
            event_type=event_type,
            time=time,
            correlation_id=f"task-{record.task_id}",
            task_id=record.task_id,
            vm_id=self.vm_id,
            payload=payload,
        )


def _finite(value: float) -> float | None:
    return value if math.isfinite(value) else None
