"""Metrics exports."""

from .base import IMetric
from .core import TaskMetrics

__all__ = ["IMetric", "TaskMetrics"]
