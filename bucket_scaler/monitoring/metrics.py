"""
Prometheus Metrics Exporter for bucket-driven scaling.

Responsibilities:
- Export the latest decision of every trigger
- Track metric-source failures and fetch latency
- Expose trigger health for alerting
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

from bucket_scaler.decision.models import DecisionReason, ScalingDecision
from bucket_scaler.monitoring.health import HealthStatus
from bucket_scaler.utils.logging import get_logger

logger = get_logger(__name__)


class ScalerMetrics:
    """
    Prometheus metrics for bucket scaling triggers.

    Every series is labelled with the trigger name.
    """

    def __init__(
        self,
        registry: CollectorRegistry | None = None,
        prefix: str = "bucket_scaler",
    ) -> None:
        """
        Initialize metrics.

        Args:
            registry: Prometheus registry (a private one is created if None)
            prefix: Prefix for all metric names
        """
        self._registry = registry or CollectorRegistry()
        self._prefix = prefix
        # error_type labels seen so far, for series removal
        self._failure_error_types: set[str] = set()

        self._init_decision_metrics()
        self._init_fetch_metrics()
        self._init_trigger_metrics()

        logger.info("Metrics initialized", prefix=prefix)

    def _metric_name(self, name: str) -> str:
        """Generate full metric name with prefix."""
        return f"{self._prefix}_{name}"

    def _init_decision_metrics(self) -> None:
        self.desired_replicas = Gauge(
            self._metric_name("desired_replicas"),
            "Desired replica count from the latest decision",
            ["trigger"],
            registry=self._registry,
        )

        self.object_count = Gauge(
            self._metric_name("object_count"),
            "Object count observed in the latest successful fetch",
            ["trigger"],
            registry=self._registry,
        )

        self.decisions_total = Counter(
            self._metric_name("decisions_total"),
            "Total number of scaling decisions emitted",
            ["trigger", "reason"],
            registry=self._registry,
        )

    def _init_fetch_metrics(self) -> None:
        self.fetch_failures_total = Counter(
            self._metric_name("fetch_failures_total"),
            "Total number of failed metric fetches",
            ["trigger", "error_type"],
            registry=self._registry,
        )

        self.consecutive_failures = Gauge(
            self._metric_name("consecutive_failures"),
            "Current streak of failed metric fetches",
            ["trigger"],
            registry=self._registry,
        )

        self.fetch_duration = Histogram(
            self._metric_name("fetch_duration_seconds"),
            "Metric fetch duration",
            ["trigger"],
            buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
            registry=self._registry,
        )

    def _init_trigger_metrics(self) -> None:
        self.trigger_healthy = Gauge(
            self._metric_name("trigger_healthy"),
            "Trigger health (1=healthy, 0=degraded)",
            ["trigger"],
            registry=self._registry,
        )

        self.registered_triggers = Gauge(
            self._metric_name("registered_triggers"),
            "Number of registered triggers",
            registry=self._registry,
        )

    # Recording helpers

    def record_decision(self, trigger: str, decision: ScalingDecision) -> None:
        self.desired_replicas.labels(trigger=trigger).set(decision.desired_replicas)
        self.object_count.labels(trigger=trigger).set(decision.object_count)
        self.decisions_total.labels(trigger=trigger, reason=decision.reason.value).inc()

    def record_fetch(self, trigger: str, duration_seconds: float) -> None:
        self.fetch_duration.labels(trigger=trigger).observe(duration_seconds)

    def record_fetch_failure(self, trigger: str, error_type: str, streak: int) -> None:
        self._failure_error_types.add(error_type)
        self.fetch_failures_total.labels(trigger=trigger, error_type=error_type).inc()
        self.consecutive_failures.labels(trigger=trigger).set(streak)

    def reset_failures(self, trigger: str) -> None:
        self.consecutive_failures.labels(trigger=trigger).set(0)

    def record_health(self, trigger: str, status: HealthStatus) -> None:
        self.trigger_healthy.labels(trigger=trigger).set(
            1 if status == HealthStatus.HEALTHY else 0
        )

    def remove_trigger(self, trigger: str) -> None:
        """Drop the per-trigger series of a deregistered trigger."""
        series = [
            (metric, (trigger,))
            for metric in (
                self.desired_replicas,
                self.object_count,
                self.consecutive_failures,
                self.trigger_healthy,
                self.fetch_duration,
            )
        ]
        series += [(self.decisions_total, (trigger, r.value)) for r in DecisionReason]
        series += [
            (self.fetch_failures_total, (trigger, error_type))
            for error_type in sorted(self._failure_error_types)
        ]

        for metric, labels in series:
            try:
                metric.remove(*labels)
            except KeyError:
                continue

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    @property
    def content_type(self) -> str:
        return CONTENT_TYPE_LATEST

    def export(self) -> bytes:
        """Render all metrics in Prometheus exposition format."""
        return generate_latest(self._registry)
