"""Task definition shared by schedulers and the scenario engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from vm_sim.utilization import FullUtilization, UtilizationModel


class TaskStatus(str, Enum):
    READY = "ready"
    IN_EXEC = "in_exec"
    PAUSED = "paused"
    SUCCESS = "success"
    CANCELED = "canceled"


@dataclass(slots=True)
class Task:
    """Unit of work submitted to a VM scheduler.

    ``length`` is expressed in abstract work units (e.g. millions of
    instructions). The scheduler owns ``status`` and the timing fields while
    the task sits in one of its lists.
    """

    task_id: int
    length: float
    pe_count: int = 1
    utilization_cpu: UtilizationModel = field(default_factory=FullUtilization)
    utilization_ram: UtilizationModel = field(default_factory=FullUtilization)
    utilization_bw: UtilizationModel = field(default_factory=FullUtilization)
    status: TaskStatus = TaskStatus.READY

    finished_length: float = 0.0
    submission_time: Optional[float] = None
    exec_start_time: Optional[float] = None
    finish_time: Optional[float] = None
    actual_cpu_time: float = 0.0

    def __post_init__(self) -> None:
        if self.length < 0:
            msg = "length cannot be negative"
            raise ValueError(msg)

    def utilization_of_cpu(self, time: float) -> float:
        return self.utilization_cpu.utilization(time)

    def utilization_of_ram(self, time: float) -> float:
        return self.utilization_ram.utilization(time)

    def utilization_of_bw(self, time: float) -> float:
        return self.utilization_bw.utilization(time)

    @property
    def is_terminal(self) -> bool:
        return self.status in (TaskStatus.SUCCESS, TaskStatus.CANCELED)
