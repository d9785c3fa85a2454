"""Per-PE capacity derived from a VM capacity share."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from .base import SchedulerConfigError


@dataclass(frozen=True, slots=True)
class CapacitySnapshot:
    total_capacity: float
    active_pe_count: int
    demanded_pe_count: int
    per_pe_capacity: float

    @property
    def oversubscribed(self) -> bool:
        return self.demanded_pe_count > self.active_pe_count


def validate_capacity_share(capacity_share: Sequence[float]) -> None:
    for idx, rate in enumerate(capacity_share):
        if rate < 0:
            raise SchedulerConfigError(f"capacity_share[{idx}] must be >= 0, got {rate}")


def compute_capacity(capacity_share: Sequence[float], demanded_pe_count: int) -> CapacitySnapshot:
    """Split the share fairly when demand exceeds active PEs, otherwise give each PE its average rate.

    Idle capacity of an undersubscribed VM is not handed to the running tasks.
    """
    validate_capacity_share(capacity_share)

    total = float(sum(capacity_share))
    active = sum(1 for rate in capacity_share if rate > 0)

    if demanded_pe_count > active:
        per_pe = total / demanded_pe_count
    elif active > 0:
        per_pe = total / active
    else:
        per_pe = 0.0

    return CapacitySnapshot(
        total_capacity=total,
        active_pe_count=active,
        demanded_pe_count=demanded_pe_count,
        per_pe_capacity=per_pe,
    )
