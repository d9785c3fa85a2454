"""Simulation event definitions."""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class EventType(str, Enum):
    TASK_SUBMITTED = "TaskSubmitted"
    TASK_PAUSED = "TaskPaused"
    TASK_RESUMED = "TaskResumed"
    TASK_CANCELED = "TaskCanceled"
    TASK_FINISHED = "TaskFinished"
    TASK_MIGRATED = "TaskMigrated"
    VM_ADVANCED = "VmAdvanced"


class SimEvent(BaseModel):
    """Normalized event envelope for tracing and metrics."""

    model_config = ConfigDict(extra="forbid")

    event_id: str
    seq: int = Field(ge=0)
    correlation_id: str
    time: float = Field(ge=0)
    type: EventType
    task_id: Optional[int] = None
    vm_id: Optional[str] = None
    payload: dict[str, Any] = Field(default_factory=dict)
