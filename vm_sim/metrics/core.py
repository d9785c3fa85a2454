"""Default metrics implementation."""

from __future__ import annotations

from collections import defaultdict

from vm_sim.events import EventType, SimEvent

from .base import IMetric


class TaskMetrics(IMetric):
    """Aggregate task lifecycle metrics from the event stream."""

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self._submitted: dict[int, float] = {}
        self._finished: dict[int, float] = {}
        self._canceled: set[int] = set()
        self._finished_per_vm: dict[str, int] = defaultdict(int)
        self._pause_count = 0
        self._resume_count = 0
        self._migrate_count = 0
        self._event_count = 0
        self._max_time = 0.0

    def consume(self, event: SimEvent) -> None:
        self._event_count += 1
        self._max_time = max(self._max_time, event.time)
        if event.task_id is None:
            return

        if event.type == EventType.TASK_SUBMITTED:
            # Migrated tasks are resubmitted; keep the first submission time.
            self._submitted.setdefault(event.task_id, event.time)

        elif event.type == EventType.TASK_FINISHED:
            self._finished[event.task_id] = event.time
            if event.vm_id:
                self._finished_per_vm[event.vm_id] += 1

        elif event.type == EventType.TASK_CANCELED:
            self._canceled.add(event.task_id)

        elif event.type == EventType.TASK_PAUSED:
            self._pause_count += 1

        elif event.type == EventType.TASK_RESUMED:
            self._resume_count += 1

        elif event.type == EventType.TASK_MIGRATED:
            self._migrate_count += 1

    def report(self) -> dict:
        turnaround_times = [
            finish_time - self._submitted[task_id]
            for task_id, finish_time in self._finished.items()
            if task_id in self._submitted
        ]
        avg_turnaround = sum(turnaround_times) / len(turnaround_times) if turnaround_times else 0.0
        makespan = max(self._finished.values()) if self._finished else 0.0

        return {
            "tasks_submitted": len(self._submitted),
            "tasks_completed": len(self._finished),
            "tasks_canceled": len(self._canceled),
            "pause_count": self._pause_count,
            "resume_count": self._resume_count,
            "migrate_count": self._migrate_count,
            "avg_turnaround_time": avg_turnaround,
            "makespan": makespan,
            "completed_per_vm": dict(self._finished_per_vm),
            "event_count": self._event_count,
            "max_time": self._max_time,
        }
