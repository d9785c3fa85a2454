"""Task scheduler registry and factory."""

from __future__ import annotations

from collections.abc import Callable

from vm_sim.events import EventBus

from .base import ITaskScheduler
from .time_shared import TimeSharedScheduler


SchedulerFactory = Callable[..., ITaskScheduler]


_REGISTRY: dict[str, SchedulerFactory] = {
    "time_shared": lambda params=None, event_bus=None: TimeSharedScheduler(params=params, event_bus=event_bus),
    "timeshared": lambda params=None, event_bus=None: TimeSharedScheduler(params=params, event_bus=event_bus),
}


def register_task_scheduler(name: str, factory: SchedulerFactory) -> None:
    """Register a factory called as ``factory(params, event_bus=bus)``."""
    _REGISTRY[name.lower()] = factory


def create_task_scheduler(
    name: str,
    params: dict | None = None,
    *,
    event_bus: EventBus | None = None,
) -> ITaskScheduler:
    key = name.lower()
    if key not in _REGISTRY:
        raise ValueError(f"unknown task scheduler {name}")
    return _REGISTRY[key](params or {}, event_bus=event_bus)
