"""
Cooldown gate for scale-to-minimum.

The tracker keeps the decision from dropping to the rule's minimum as soon as
demand disappears. Only after ``cooldown_period_seconds`` of zero-count
samples, measured from the last sample with demand, may the minimum be
reported. Demand resuming is honoured on the very same sample.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from .models import DecisionReason, MetricSample, ScalingDecision
from .rule import ScalingRule


class ActivityState(str, Enum):
    """Demand state of a trigger."""

    ACTIVE = "active"
    COOLING = "cooling"
    IDLE = "idle"


@dataclass
class CooldownState:
    """Mutable cooldown state. Owned by exactly one tracker."""

    last_active_at: datetime
    state: ActivityState
    last_desired: int


class CooldownTracker:
    """
    Tracks the last time demand was non-zero and gates scale-to-minimum.

    A new tracker behaves as though demand had just been seen at creation
    time, so the first scale-to-minimum waits a full cooldown window.
    """

    def __init__(self, rule: ScalingRule, created_at: datetime) -> None:
        self._rule = rule
        self._state = CooldownState(
            last_active_at=created_at,
            state=ActivityState.ACTIVE,
            last_desired=rule.min_replica_count,
        )

    @property
    def state(self) -> ActivityState:
        return self._state.state

    @property
    def last_active_at(self) -> datetime:
        return self._state.last_active_at

    @property
    def last_desired(self) -> int:
        return self._state.last_desired

    def observe(self, sample: MetricSample) -> ActivityState:
        """Update the state machine with a new sample."""
        if sample.has_demand:
            self._state.last_active_at = sample.observed_at
            self._state.state = ActivityState.ACTIVE
            return self._state.state

        elapsed = (sample.observed_at - self._state.last_active_at).total_seconds()
        if elapsed < self._rule.cooldown_period_seconds:
            self._state.state = ActivityState.COOLING
        else:
            self._state.state = ActivityState.IDLE
        return self._state.state

    def apply(
        self,
        raw_desired: int,
        computed_at: datetime,
        object_count: int = 0,
    ) -> ScalingDecision:
        """
        Apply the hold rule to a raw replica count.

        While cooling, the previous decision's value is held. Otherwise the raw
        value passes through.
        """
        if self._state.state is ActivityState.COOLING:
            desired = self._state.last_desired
            reason = DecisionReason.COOLDOWN
        elif self._state.state is ActivityState.IDLE:
            desired = raw_desired
            reason = DecisionReason.IDLE
        else:
            desired = raw_desired
            reason = DecisionReason.DEMAND

        self._state.last_desired = desired
        return ScalingDecision(
            desired_replicas=desired,
            reason=reason,
            computed_at=computed_at,
            object_count=object_count,
        )

    def cooldown_remaining(self, now: datetime) -> float:
        """Seconds left before the minimum may be reported (0 when not cooling)."""
        if self._state.state is not ActivityState.COOLING:
            return 0.0
        elapsed = (now - self._state.last_active_at).total_seconds()
        return max(0.0, self._rule.cooldown_period_seconds - elapsed)

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self._state.state.value,
            "last_active_at": self._state.last_active_at.isoformat(),
            "last_desired": self._state.last_desired,
        }
