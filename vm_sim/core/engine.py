"""SimPy-backed driver that advances VM schedulers through a scenario."""

from __future__ import annotations

from dataclasses import dataclass, field
import heapq
import logging
import math
from typing import Callable

import simpy

from vm_sim.events import EventBus, EventType, SimEvent
from vm_sim.metrics import IMetric, TaskMetrics
from vm_sim.model import ActionSpec, ActionType, ScenarioSpec, Task, TaskSpec, TaskStatus, VmSpec
from vm_sim.schedulers import ITaskScheduler, create_task_scheduler
from vm_sim.utilization import create_utilization_model

from .interfaces import ISimEngine


logger = logging.getLogger(__name__)


@dataclass(slots=True)
class VmRuntime:
    spec: VmSpec
    scheduler: ITaskScheduler
    finished: list[Task] = field(default_factory=list)


class SimEngine(ISimEngine):
    """Discrete-event engine using the SimPy clock.

    The engine owns simulated time. Every time the clock moves, each VM
    scheduler is advanced with its capacity share, then due arrivals and
    actions are applied, and the clock jumps to the earliest of the next
    arrival, the next action or any VM's projected completion.
    """

    TIME_EPSILON = 1e-12
    MIN_STEP = 1e-9

    def __init__(self, metrics: list[IMetric] | None = None) -> None:
        self._metrics = metrics or [TaskMetrics()]
        self._subscribers: list[Callable[[SimEvent], None]] = []

        self._env = simpy.Environment()
        self._event_bus = EventBus()
        self._events: list[SimEvent] = []
        self._setup_event_pipeline()

        self._spec: ScenarioSpec | None = None
        self._vms: dict[str, VmRuntime] = {}
        self._arrival_heap: list[tuple[float, int, TaskSpec]] = []
        self._action_heap: list[tuple[float, int, ActionSpec]] = []
        self._task_location: dict[int, str] = {}
        self._canceled: list[Task] = []

        self._paused = False
        self._stopped = False

    def subscribe(self, handler: Callable[[SimEvent], None]) -> None:
        if handler in self._subscribers:
            return
        self._subscribers.append(handler)
        self._event_bus.subscribe(handler)

    def build(self, spec: ScenarioSpec) -> None:
        self.reset()
        self._spec = spec

        for vm in spec.vms:
            params = {
                "vm_id": vm.id,
                "min_time_between_events": spec.sim.min_time_between_events,
                **vm.scheduler.params,
            }
            scheduler = create_task_scheduler(vm.scheduler.name, params, event_bus=self._event_bus)
            self._vms[vm.id] = VmRuntime(spec=vm, scheduler=scheduler)

        for seq, task in enumerate(spec.tasks):
            heapq.heappush(self._arrival_heap, (task.arrival, seq, task))
        for seq, action in enumerate(spec.actions):
            heapq.heappush(self._action_heap, (action.time, seq, action))

    def run(self, until: float | None = None) -> None:
        if self._spec is None:
            raise RuntimeError("build() must be called before run()")
        horizon = until if until is not None else self._spec.sim.duration

        while self._env.now < horizon and not self._stopped:
            if self._paused:
                break
            if not self._advance_once(horizon):
                break

        logger.info(
            "simulation stopped at t=%.6f, completed=%d, running=%d",
            self.now,
            sum(len(vm.finished) for vm in self._vms.values()),
            sum(vm.scheduler.running_count() for vm in self._vms.values()),
        )

    def step(self, delta: float | None = None) -> None:
        if self._spec is None:
            raise RuntimeError("build() must be called before step()")
        if delta is None:
            self._advance_once(self._spec.sim.duration)
            return
        target = self._env.now + delta
        while self._env.now < target and not self._stopped:
            if not self._advance_once(target):
                break

    def pause(self) -> None:
        self._paused = True

    def resume(self) -> None:
        self._paused = False

    def stop(self) -> None:
        self._stopped = True

    def reset(self) -> None:
        self._env = simpy.Environment()
        for metric in self._metrics:
            metric.reset()
        self._event_bus = EventBus()
        self._events = []
        self._setup_event_pipeline()

        self._spec = None
        self._vms = {}
        self._arrival_heap = []
        self._action_heap = []
        self._task_location = {}
        self._canceled = []
        self._paused = False
        self._stopped = False

    @property
    def events(self) -> list[SimEvent]:
        return list(self._events)

    @property
    def now(self) -> float:
        return float(self._env.now)

    def scheduler(self, vm_id: str) -> ITaskScheduler:
        return self._vms[vm_id].scheduler

    def finished_tasks(self, vm_id: str) -> list[Task]:
        return list(self._vms[vm_id].finished)

    @property
    def canceled_tasks(self) -> list[Task]:
        return list(self._canceled)

    def utilization_snapshot(self) -> dict[str, dict[str, float]]:
        now = self.now
        return {
            vm_id: {
                "cpu": vm.scheduler.total_cpu_utilization(now),
                "ram": vm.scheduler.total_ram_utilization(now),
                "bw": vm.scheduler.total_bw_utilization(now),
                "running": vm.scheduler.running_count(),
            }
            for vm_id, vm in self._vms.items()
        }

    def metric_report(self) -> dict:
        merged: dict = {}
        for metric in self._metrics:
            merged.update(metric.report())
        completed_per_vm = merged.get("completed_per_vm")
        if isinstance(completed_per_vm, dict):
            for vm_id in self._vms:
                completed_per_vm.setdefault(vm_id, 0)
        return merged

    def _setup_event_pipeline(self) -> None:
        self._event_bus.subscribe(self._events.append)
        for metric in self._metrics:
            self._event_bus.subscribe(metric.consume)
        for handler in self._subscribers:
            self._event_bus.subscribe(handler)

    def _advance_once(self, horizon: float) -> bool:
        now = self._env.now
        self._apply_due(now)

        next_times = self._advance_vms(now, publish=True)
        if self._arrival_heap:
            next_times.append(self._arrival_heap[0][0])
        if self._action_heap:
            next_times.append(self._action_heap[0][0])
        if not next_times:
            return False

        next_time = min(next_times)
        if next_time <= now + self.TIME_EPSILON:
            next_time = now + self.MIN_STEP
        next_time = min(next_time, horizon)
        if next_time <= now:
            return False

        timeout = self._env.timeout(next_time - now)
        self._env.run(until=timeout)

        self._advance_vms(self._env.now, publish=False)
        return True

    def _advance_vms(self, now: float, *, publish: bool) -> list[float]:
        next_times: list[float] = []
        for vm_id, vm in self._vms.items():
            next_event = vm.scheduler.advance(now, vm.spec.pe_mips)
            self._collect_finished(vm)
            has_event = next_event > 0 and math.isfinite(next_event)
            if has_event:
                next_times.append(next_event)
            if publish:
                self._event_bus.publish(
                    event_type=EventType.VM_ADVANCED,
                    time=now,
                    correlation_id=f"vm-{vm_id}",
                    vm_id=vm_id,
                    payload={
                        "next_event": next_event if has_event else None,
                        "running": vm.scheduler.running_count(),
                    },
                )
        return next_times

    def _collect_finished(self, vm: VmRuntime) -> None:
        while vm.scheduler.has_finished():
            task = vm.scheduler.next_finished()
            if task is None:
                break
            vm.finished.append(task)
            self._task_location.pop(task.task_id, None)

    def _apply_due(self, now: float) -> None:
        while self._arrival_heap and self._arrival_heap[0][0] <= now + self.TIME_EPSILON:
            _, _, task_spec = heapq.heappop(self._arrival_heap)
            vm = self._vms[task_spec.vm_id]
            vm.scheduler.submit(self._build_task(task_spec), task_spec.transfer_time, now=now)
            self._task_location[task_spec.id] = task_spec.vm_id

        while self._action_heap and self._action_heap[0][0] <= now + self.TIME_EPSILON:
            _, _, action = heapq.heappop(self._action_heap)
            self._apply_action(action, now)

    def _apply_action(self, action: ActionSpec, now: float) -> None:
        if action.type == ActionType.MIGRATE:
            assert action.vm_id is not None and action.target_vm_id is not None
            source = self._vms[action.vm_id].scheduler
            target = self._vms[action.target_vm_id]
            running = source.running
            if not running:
                logger.debug("migrate at t=%.6f skipped, vm %s has no running task", now, action.vm_id)
                return
            if running[0].pe_count > target.spec.pe_count:
                logger.debug(
                    "migrate of task %s at t=%.6f skipped, it needs %d PEs but vm %s has %d",
                    running[0].task_id,
                    now,
                    running[0].pe_count,
                    action.target_vm_id,
                    target.spec.pe_count,
                )
                return
            task = source.migrate(now=now)
            assert task is not None
            target.scheduler.submit(task, now=now)
            self._task_location[task.task_id] = action.target_vm_id
            return

        assert action.task_id is not None
        vm_id = self._task_location.get(action.task_id)
        if vm_id is None:
            logger.debug("%s of task %s at t=%.6f skipped, task not scheduled", action.type.value, action.task_id, now)
            return
        scheduler = self._vms[vm_id].scheduler

        if action.type == ActionType.PAUSE:
            scheduler.pause(action.task_id, now=now)
        elif action.type == ActionType.RESUME:
            scheduler.resume(action.task_id, now=now)
        elif action.type == ActionType.CANCEL:
            task = scheduler.cancel(action.task_id, now=now)
            if task is not None and task.status == TaskStatus.CANCELED:
                self._canceled.append(task)
                self._task_location.pop(action.task_id, None)
        self._collect_finished(self._vms[vm_id])

    @staticmethod
    def _build_task(task_spec: TaskSpec) -> Task:
        utilization = task_spec.utilization
        return Task(
            task_id=task_spec.id,
            length=task_spec.length,
            pe_count=task_spec.pe_count,
            utilization_cpu=create_utilization_model(utilization.cpu.model, utilization.cpu.params),
            utilization_ram=create_utilization_model(utilization.ram.model, utilization.ram.params),
            utilization_bw=create_utilization_model(utilization.bw.model, utilization.bw.params),
        )
