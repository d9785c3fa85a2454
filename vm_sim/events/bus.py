"""Event bus with sequence assignment."""

from __future__ import annotations

from typing import Callable

from .types import EventType, SimEvent


EventHandler = Callable[[SimEvent], None]


class EventBus:
    """Simple in-process pub/sub event bus.

    Event ids derive from the sequence number, so two runs of the same
    scenario produce identical traces.
    """

    def __init__(self) -> None:
        self._handlers: list[EventHandler] = []
        self._seq = 0

    def subscribe(self, handler: EventHandler) -> None:
        self._handlers.append(handler)

    def publish(
        self,
        *,
        event_type: EventType,
        time: float,
        correlation_id: str,
        task_id: int | None = None,
        vm_id: str | None = None,
        payload: dict | None = None,
    ) -> SimEvent:
        event = SimEvent(
            event_id=f"evt-{self._seq:08d}",
            seq=self._seq,
            correlation_id=correlation_id,
            time=time,
            type=event_type,
            task_id=task_id,
            vm_id=vm_id,
            payload=payload or {},
        )
        self._seq += 1
        for handler in list(self._handlers):
            handler(event)
        return event
