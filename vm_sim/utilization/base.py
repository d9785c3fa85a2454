"""Utilization model abstractions."""

from __future__ import annotations

from abc import ABC, abstractmethod


class UtilizationModel(ABC):
    """Fractional resource demand of a task over simulated time."""

    @abstractmethod
    def utilization(self, time: float) -> float:
        """Return demand in [0, 1] at the given simulated time."""
