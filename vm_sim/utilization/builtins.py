"""Built-in utilization models."""

from __future__ import annotations

from bisect import bisect_right
from typing import Any

from .base import UtilizationModel


class FullUtilization(UtilizationModel):
    """Task always demands the whole resource."""

    def utilization(self, time: float) -> float:  # noqa: ARG002
        return 1.0


class ConstantUtilization(UtilizationModel):
    def __init__(self, params: dict[str, Any] | None = None) -> None:
        config = params or {}
        self._value = float(config.get("value", 1.0))
        if not 0.0 <= self._value <= 1.0:
            raise ValueError("utilization.params.value must be within [0, 1]")

    def utilization(self, time: float) -> float:  # noqa: ARG002
        return self._value


class StepUtilization(UtilizationModel):
    """Piecewise-constant demand from ``[time, value]`` points.

    Before the first point the model reports ``default``.
    """

    def __init__(self, params: dict[str, Any] | None = None) -> None:
        config = params or {}
        self._default = float(config.get("default", 0.0))
        if not 0.0 <= self._default <= 1.0:
            raise ValueError("utilization.params.default must be within [0, 1]")

        raw_points = config.get("points", [])
        if not isinstance(raw_points, list):
            raise ValueError("utilization.params.points must be list")

        points: list[tuple[float, float]] = []
        for idx, raw_point in enumerate(raw_points):
            if not isinstance(raw_point, (list, tuple)) or len(raw_point) != 2:
                raise ValueError(f"utilization.params.points[{idx}] must be [time, value]")
            at, value = float(raw_point[0]), float(raw_point[1])
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"utilization.params.points[{idx}] value must be within [0, 1]")
            points.append((at, value))
        points.sort(key=lambda point: point[0])
        self._times = [point[0] for point in points]
        self._values = [point[1] for point in points]

    def utilization(self, time: float) -> float:
        idx = bisect_right(self._times, time)
        if idx == 0:
            return self._default
        return self._values[idx - 1]
