"""Model package exports."""

from .runtime import TaskRecord
from .spec import (
    ActionSpec,
    ActionType,
    ScenarioSpec,
    SchedulerSpec,
    SimSpec,
    TaskSpec,
    TaskUtilizationSpec,
    UtilizationSpec,
    VmSpec,
)
from .task import Task, TaskStatus

__all__ = [
    "ActionSpec",
    "ActionType",
    "ScenarioSpec",
    "SchedulerSpec",
    "SimSpec",
    "Task",
    "TaskRecord",
    "TaskSpec",
    "TaskStatus",
    "TaskUtilizationSpec",
    "UtilizationSpec",
    "VmSpec",
]
