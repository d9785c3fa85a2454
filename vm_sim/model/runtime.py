"""Scheduler-internal mutable state wrapped around a task."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from .task import Task, TaskStatus


MIN_INSTRUCTIONS = 1.0


@dataclass(slots=True)
class TaskRecord:
    """Progress tracking for one task while a scheduler owns it.

    ``finished_so_far`` counts instruction units, i.e. work units multiplied
    by ``unit_factor``.
    """

    task: Task
    unit_factor: float
    pe_slots: list[int] = field(default_factory=list)
    finished_so_far: float = 0.0
    exec_start_time: Optional[float] = None

    @classmethod
    def wrap(cls, task: Task, unit_factor: float, now: float) -> "TaskRecord":
        record = cls(
            task=task,
            unit_factor=unit_factor,
            finished_so_far=min(task.finished_length, task.length) * unit_factor,
            exec_start_time=now,
        )
        if task.submission_time is None:
            task.submission_time = now
        if task.exec_start_time is None:
            task.exec_start_time = now
        return record

    @property
    def task_id(self) -> int:
        return self.task.task_id

    @property
    def pe_count(self) -> int:
        return self.task.pe_count

    @property
    def status(self) -> TaskStatus:
        return self.task.status

    @status.setter
    def status(self, value: TaskStatus) -> None:
        self.task.status = value

    @property
    def total_length(self) -> float:
        return self.task.length

    def extend(self, extra_length: float) -> None:
        self.task.length += extra_length

    @property
    def remaining_length(self) -> float:
        leftover = self.task.length * self.unit_factor - self.finished_so_far
        # Less than one whole instruction left counts as done.
        if leftover < MIN_INSTRUCTIONS:
            return 0.0
        return leftover / self.unit_factor

    @property
    def is_finished(self) -> bool:
        return self.remaining_length == 0.0

    def add_progress(self, instructions: float) -> None:
        total = self.task.length * self.unit_factor
        done = self.finished_so_far + max(0.0, instructions)
        self.finished_so_far = total if total - done < MIN_INSTRUCTIONS else done

    def finalize(self, now: float) -> None:
        """Stop the progress clock and copy bookkeeping back onto the task."""
        self.task.finished_length = self.finished_so_far / self.unit_factor
        if self.exec_start_time is not None:
            self.task.actual_cpu_time += max(0.0, now - self.exec_start_time)
        self.exec_start_time = None

    def restart_clock(self, now: float) -> None:
        self.exec_start_time = now
