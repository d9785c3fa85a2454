"""Task scheduler exports."""

from .base import NO_NEXT_EVENT, ITaskScheduler, SchedulerConfigError, TaskLists
from .capacity import CapacitySnapshot, compute_capacity, validate_capacity_share
from .registry import create_task_scheduler, register_task_scheduler
from .time_shared import TimeSharedParams, TimeSharedScheduler

__all__ = [
    "CapacitySnapshot",
    "ITaskScheduler",
    "NO_NEXT_EVENT",
    "SchedulerConfigError",
    "TaskLists",
    "TimeSharedParams",
    "TimeSharedScheduler",
    "compute_capacity",
    "create_task_scheduler",
    "register_task_scheduler",
    "validate_capacity_share",
]
