"""
Value types flowing through the decision pipeline.

A MetricSample is produced once per tick from the metric source and a
ScalingDecision is emitted once per successful tick. Neither is mutated or
stored by the core.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class DecisionReason(str, Enum):
    """Why a decision carries its replica count."""

    DEMAND = "demand"
    COOLDOWN = "cooldown"
    IDLE = "idle"


@dataclass(frozen=True)
class MetricSample:
    """A timestamped object-count reading."""

    count: int
    observed_at: datetime

    def __post_init__(self) -> None:
        if isinstance(self.count, bool) or not isinstance(self.count, int):
            raise ValueError(f"Sample count must be an integer, got {self.count!r}")
        if self.count < 0:
            raise ValueError(f"Sample count must be non-negative, got {self.count}")

    @property
    def has_demand(self) -> bool:
        return self.count > 0


@dataclass(frozen=True)
class ScalingDecision:
    """Desired replica count for one tick."""

    desired_replicas: int
    reason: DecisionReason
    computed_at: datetime
    object_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "desired_replicas": self.desired_replicas,
            "reason": self.reason.value,
            "computed_at": self.computed_at.isoformat(),
            "object_count": self.object_count,
        }
