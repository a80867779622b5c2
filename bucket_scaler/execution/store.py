"""
In-memory decision store.

Holds the latest decision and health of every trigger so an orchestrator can
read the desired replica count as a metric value (HTTP API, Prometheus).
Nothing is persisted; history beyond the latest value is not kept.
"""

from typing import Any

from bucket_scaler.decision.models import ScalingDecision
from bucket_scaler.monitoring.health import HealthStatus, TriggerHealth
from bucket_scaler.monitoring.metrics import ScalerMetrics
from bucket_scaler.utils.logging import get_logger

from .base import DecisionSink

logger = get_logger(__name__)


class DecisionStore(DecisionSink):
    """Latest-value sink backing the HTTP API and the metrics exporter."""

    def __init__(self, metrics: ScalerMetrics | None = None) -> None:
        self._metrics = metrics
        self._decisions: dict[str, ScalingDecision] = {}
        self._health: dict[str, TriggerHealth] = {}

    async def emit_decision(self, trigger_name: str, decision: ScalingDecision) -> None:
        previous = self._decisions.get(trigger_name)
        self._decisions[trigger_name] = decision

        if self._metrics:
            self._metrics.record_decision(trigger_name, decision)

        if previous is None or previous.desired_replicas != decision.desired_replicas:
            logger.info(
                "Desired replicas changed",
                trigger=trigger_name,
                previous=previous.desired_replicas if previous else None,
                desired=decision.desired_replicas,
                reason=decision.reason.value,
                object_count=decision.object_count,
            )

    async def report_health(self, trigger_name: str, health: TriggerHealth) -> None:
        self._health[trigger_name] = health
        if self._metrics:
            self._metrics.record_health(trigger_name, health.status)

        log = logger.warning if health.status == HealthStatus.DEGRADED else logger.info
        log(
            "Trigger health changed",
            trigger=trigger_name,
            status=health.status.value,
            message=health.message,
        )

    def forget(self, trigger_name: str) -> None:
        self._decisions.pop(trigger_name, None)
        self._health.pop(trigger_name, None)
        if self._metrics:
            self._metrics.remove_trigger(trigger_name)

    def get_decision(self, trigger_name: str) -> ScalingDecision | None:
        """Get the latest decision of a trigger."""
        return self._decisions.get(trigger_name)

    def get_health(self, trigger_name: str) -> TriggerHealth | None:
        """Get the last reported health of a trigger."""
        return self._health.get(trigger_name)

    def get_all_decisions(self) -> dict[str, ScalingDecision]:
        return dict(self._decisions)

    def get_stats(self) -> dict[str, Any]:
        degraded = [
            name for name, h in self._health.items()
            if h.status == HealthStatus.DEGRADED
        ]
        return {
            "triggers_with_decisions": len(self._decisions),
            "degraded_triggers": degraded,
        }
