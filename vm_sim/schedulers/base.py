"""Task scheduler interface and shared list bookkeeping."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Optional

from vm_sim.model import Task, TaskRecord, TaskStatus


NO_NEXT_EVENT = 0.0


class SchedulerConfigError(ValueError):
    """Invalid scheduling scenario (bad capacity share, bad task shape, bad params)."""


@dataclass(slots=True)
class TaskLists:
    """Running, paused and finished records owned by one scheduler instance.

    A task id lives in at most one list. Removal rebuilds the list rather
    than mutating it while it is being scanned.
    """

    running: list[TaskRecord] = field(default_factory=list)
    paused: list[TaskRecord] = field(default_factory=list)
    finished: list[TaskRecord] = field(default_factory=list)
    previous_time: float = 0.0
    current_capacity_share: list[float] = field(default_factory=list)

    @staticmethod
    def find(records: Sequence[TaskRecord], task_id: int) -> Optional[TaskRecord]:
        for record in records:
            if record.task_id == task_id:
                return record
        return None

    def take(self, name: str, task_id: int) -> Optional[TaskRecord]:
        """Detach the record with ``task_id`` from list ``name``."""
        records: list[TaskRecord] = getattr(self, name)
        match = self.find(records, task_id)
        if match is None:
            return None
        setattr(self, name, [record for record in records if record is not match])
        return match

    def partition_running(self) -> list[TaskRecord]:
        """Split off running records whose remaining work reached zero."""
        done = [record for record in self.running if record.is_finished]
        if done:
            self.running = [record for record in self.running if not record.is_finished]
        return done

    def contains(self, task_id: int) -> bool:
        return any(
            self.find(records, task_id) is not None
            for records in (self.running, self.paused, self.finished)
        )

    def demanded_pe_count(self) -> int:
        return sum(record.pe_count for record in self.running)


class ITaskScheduler(ABC):
    """Contract between a VM scheduling discipline and the simulation engine."""

    @property
    @abstractmethod
    def running(self) -> tuple[Task, ...]:
        """Running tasks in dispatch order, head first."""

    @abstractmethod
    def advance(self, now: float, capacity_share: Sequence[float]) -> float:
        """Account progress up to ``now`` and return the next event time."""

    @abstractmethod
    def submit(self, task: Task, transfer_time: float = 0.0, *, now: float | None = None) -> float:
        """Start executing a task and return its estimated completion time."""

    @abstractmethod
    def cancel(self, task_id: int, *, now: float | None = None) -> Optional[Task]:
        """Remove a task from the scheduler, returning it if it was found."""

    @abstractmethod
    def pause(self, task_id: int, *, now: float | None = None) -> bool:
        """Move a running task to the paused list."""

    @abstractmethod
    def resume(self, task_id: int, *, now: float | None = None) -> float:
        """Move a paused task back to execution and return its estimated finish time."""

    @abstractmethod
    def finish(self, record: TaskRecord, *, now: float | None = None) -> None:
        """Mark a task as successfully completed."""

    @abstractmethod
    def migrate(self, *, now: float | None = None) -> Optional[Task]:
        """Hand the head of the running list over to the caller."""

    @abstractmethod
    def status(self, task_id: int) -> Optional[TaskStatus]:
        """Return the status of a running or paused task."""

    @abstractmethod
    def has_finished(self) -> bool:
        """Whether finished tasks are waiting to be collected."""

    @abstractmethod
    def next_finished(self) -> Optional[Task]:
        """Dequeue the oldest finished task."""

    @abstractmethod
    def running_count(self) -> int:
        """Number of tasks currently executing."""

    @abstractmethod
    def total_cpu_utilization(self, time: float) -> float:
        """Sum of CPU demand of running tasks."""

    @abstractmethod
    def total_ram_utilization(self, time: float) -> float:
        """Sum of RAM demand of running tasks."""

    @abstractmethod
    def total_bw_utilization(self, time: float) -> float:
        """Sum of bandwidth demand of running tasks."""

    def current_requested_mips(self) -> list[float]:
        raise NotImplementedError(f"{type(self).__name__} does not report requested capacity")

    def total_current_allocated_mips_for_task(self, task_id: int, time: float) -> float:  # noqa: ARG002
        raise NotImplementedError(f"{type(self).__name__} does not track per-task allocation")

    def total_current_requested_mips_for_task(self, task_id: int, time: float) -> float:  # noqa: ARG002
        raise NotImplementedError(f"{type(self).__name__} does not track per-task requests")
