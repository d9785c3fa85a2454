"""Simulation engine interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable

from vm_sim.events import SimEvent
from vm_sim.model import ScenarioSpec


class ISimEngine(ABC):
    """Simulation engine contract."""

    @abstractmethod
    def build(self, spec: ScenarioSpec) -> None:
        """Build internal runtime state from a scenario spec."""

    @abstractmethod
    def run(self, until: float | None = None) -> None:
        """Run simulation until horizon."""

    @abstractmethod
    def step(self, delta: float | None = None) -> None:
        """Run one simulation step."""

    @abstractmethod
    def pause(self) -> None:
        """Pause the simulation loop."""

    @abstractmethod
    def resume(self) -> None:
        """Resume a paused simulation loop."""

    @abstractmethod
    def stop(self) -> None:
        """Stop the simulation loop for good."""

    @abstractmethod
    def reset(self) -> None:
        """Reset engine state."""

    @abstractmethod
    def subscribe(self, handler: Callable[[SimEvent], None]) -> None:
        """Subscribe event handler."""
