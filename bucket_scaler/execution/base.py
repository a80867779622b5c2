"""
Decision sink interface.

The polling controller hands every decision and every health change to a
sink. What happens next (exporting a metric value, patching a workload) is
the orchestrator's business.
"""

from abc import ABC, abstractmethod
from typing import Any

from bucket_scaler.decision.models import ScalingDecision
from bucket_scaler.monitoring.health import TriggerHealth
from bucket_scaler.utils.logging import get_logger

logger = get_logger(__name__)


class DecisionSink(ABC):
    """
    Abstract base class for decision consumers.

    All sinks must implement:
    - emit_decision(): Accept the decision of one tick
    - report_health(): Accept a trigger health change
    """

    @abstractmethod
    async def emit_decision(self, trigger_name: str, decision: ScalingDecision) -> None:
        """
        Accept a scaling decision.

        Args:
            trigger_name: Trigger that produced the decision
            decision: The decision for this tick
        """

    @abstractmethod
    async def report_health(self, trigger_name: str, health: TriggerHealth) -> None:
        """
        Accept a health change for a trigger.

        Args:
            trigger_name: Trigger whose health changed
            health: New health
        """

    def forget(self, trigger_name: str) -> None:
        """Drop anything held for a deregistered trigger."""


class MockDecisionSink(DecisionSink):
    """
    Recording sink for testing.

    Keeps every call in order; can be told to fail.
    """

    def __init__(self) -> None:
        self.decisions: list[tuple[str, ScalingDecision]] = []
        self.health_reports: list[tuple[str, TriggerHealth]] = []
        self._should_fail = False

    def set_should_fail(self, should_fail: bool) -> None:
        """Set whether emit_decision should raise."""
        self._should_fail = should_fail

    async def emit_decision(self, trigger_name: str, decision: ScalingDecision) -> None:
        if self._should_fail:
            raise RuntimeError("Mock sink failure")
        self.decisions.append((trigger_name, decision))

    async def report_health(self, trigger_name: str, health: TriggerHealth) -> None:
        self.health_reports.append((trigger_name, health))

    def decisions_for(self, trigger_name: str) -> list[ScalingDecision]:
        return [d for name, d in self.decisions if name == trigger_name]

    def get_stats(self) -> dict[str, Any]:
        return {
            "decisions": len(self.decisions),
            "health_reports": len(self.health_reports),
        }
