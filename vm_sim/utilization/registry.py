"""Utilization model registry."""

from __future__ import annotations

from collections.abc import Callable

from .base import UtilizationModel
from .builtins import ConstantUtilization, FullUtilization, StepUtilization


UtilizationFactory = Callable[[dict], UtilizationModel]


_REGISTRY: dict[str, UtilizationFactory] = {
    "full": lambda _params: FullUtilization(),
    "default": lambda _params: FullUtilization(),
    "constant": lambda params: ConstantUtilization(params=params),
    "step": lambda params: StepUtilization(params=params),
}


def register_utilization_model(name: str, factory: UtilizationFactory) -> None:
    _REGISTRY[name.lower()] = factory


def create_utilization_model(name: str = "default", params: dict | None = None) -> UtilizationModel:
    key = name.lower()
    if key not in _REGISTRY:
        raise ValueError(f"unknown utilization model {name}")
    return _REGISTRY[key](params or {})
