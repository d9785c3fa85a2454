"""Utilization model exports."""

from .base import UtilizationModel
from .builtins import ConstantUtilization, FullUtilization, StepUtilization
from .registry import create_utilization_model, register_utilization_model

__all__ = [
    "ConstantUtilization",
    "FullUtilization",
    "StepUtilization",
    "UtilizationModel",
    "create_utilization_model",
    "register_utilization_model",
]
