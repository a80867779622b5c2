"""
Phase 7 Tests: Monitoring and Decision Store

Tests for:
- Prometheus metrics
- Trigger health
- In-memory decision store
"""

from datetime import UTC, datetime

import pytest
from prometheus_client import CollectorRegistry

from bucket_scaler.decision.models import DecisionReason, ScalingDecision
from bucket_scaler.execution.store import DecisionStore
from bucket_scaler.monitoring.health import HealthStatus, TriggerHealth, overall_status
from bucket_scaler.monitoring.metrics import ScalerMetrics

NOW = datetime(2024, 1, 1, tzinfo=UTC)


def make_decision(desired: int, reason=DecisionReason.DEMAND, count: int = 0):
    return ScalingDecision(
        desired_replicas=desired,
        reason=reason,
        computed_at=NOW,
        object_count=count,
    )


class TestScalerMetrics:
    """Tests for the Prometheus exporter."""

    @pytest.fixture
    def metrics(self):
        return ScalerMetrics()

    def test_private_registry(self):
        """Test two instances do not collide on metric names."""
        first = ScalerMetrics()
        second = ScalerMetrics()

        assert first.registry is not second.registry

    def test_custom_registry_and_prefix(self):
        """Test a given registry and prefix are used."""
        registry = CollectorRegistry()
        metrics = ScalerMetrics(registry=registry, prefix="custom")

        metrics.record_decision("t", make_decision(2))

        assert registry.get_sample_value("custom_desired_replicas", {"trigger": "t"}) == 2.0

    def test_record_decision(self, metrics):
        """Test the decision gauges and counter."""
        metrics.record_decision("orders", make_decision(3, count=30))
        metrics.record_decision("orders", make_decision(3, DecisionReason.COOLDOWN))

        registry = metrics.registry
        assert registry.get_sample_value(
            "bucket_scaler_desired_replicas", {"trigger": "orders"}
        ) == 3.0
        assert registry.get_sample_value(
            "bucket_scaler_object_count", {"trigger": "orders"}
        ) == 0.0
        assert registry.get_sample_value(
            "bucket_scaler_decisions_total", {"trigger": "orders", "reason": "demand"}
        ) == 1.0
        assert registry.get_sample_value(
            "bucket_scaler_decisions_total", {"trigger": "orders", "reason": "cooldown"}
        ) == 1.0

    def test_record_health(self, metrics):
        """Test the health gauge."""
        metrics.record_health("orders", HealthStatus.DEGRADED)
        assert metrics.registry.get_sample_value(
            "bucket_scaler_trigger_healthy", {"trigger": "orders"}
        ) == 0.0

        metrics.record_health("orders", HealthStatus.HEALTHY)
        assert metrics.registry.get_sample_value(
            "bucket_scaler_trigger_healthy", {"trigger": "orders"}
        ) == 1.0

    def test_record_fetch(self, metrics):
        """Test fetch latency is observed."""
        metrics.record_fetch("orders", 0.2)

        assert metrics.registry.get_sample_value(
            "bucket_scaler_fetch_duration_seconds_count", {"trigger": "orders"}
        ) == 1.0

    def test_remove_trigger(self, metrics):
        """Test per-trigger series are dropped."""
        metrics.record_decision("orders", make_decision(1))
        metrics.remove_trigger("orders")
        metrics.remove_trigger("never-seen")

        assert metrics.registry.get_sample_value(
            "bucket_scaler_desired_replicas", {"trigger": "orders"}
        ) is None

    def test_remove_trigger_drops_labelled_counters(self, metrics):
        """Test counters with extra labels are dropped along with the trigger."""
        metrics.record_decision("orders", make_decision(1))
        metrics.record_decision("orders", make_decision(1, DecisionReason.COOLDOWN))
        metrics.record_fetch_failure("orders", "auth", 1)
        metrics.record_fetch_failure("orders", "timeout", 2)
        metrics.record_decision("other", make_decision(2))

        metrics.remove_trigger("orders")

        registry = metrics.registry
        for reason in ("demand", "cooldown"):
            assert registry.get_sample_value(
                "bucket_scaler_decisions_total", {"trigger": "orders", "reason": reason}
            ) is None
        for error_type in ("auth", "timeout"):
            assert registry.get_sample_value(
                "bucket_scaler_fetch_failures_total",
                {"trigger": "orders", "error_type": error_type},
            ) is None
        assert registry.get_sample_value(
            "bucket_scaler_decisions_total", {"trigger": "other", "reason": "demand"}
        ) == 1.0

    def test_export(self, metrics):
        """Test exposition output."""
        metrics.record_decision("orders", make_decision(2))

        output = metrics.export().decode()

        assert 'bucket_scaler_desired_replicas{trigger="orders"} 2.0' in output
        assert metrics.content_type.startswith("text/plain")


class TestTriggerHealth:
    """Tests for health values."""

    def test_to_dict(self):
        """Test health serialisation."""
        health = TriggerHealth(
            trigger_name="orders",
            status=HealthStatus.DEGRADED,
            message="denied",
            consecutive_failures=3,
            last_error="403",
            checked_at=NOW,
        )

        assert health.to_dict() == {
            "trigger_name": "orders",
            "status": "degraded",
            "message": "denied",
            "consecutive_failures": 3,
            "last_error": "403",
            "checked_at": NOW.isoformat(),
        }
        assert health.is_healthy is False

    @pytest.mark.parametrize(
        "statuses, expected",
        [
            ([], HealthStatus.UNKNOWN),
            ([HealthStatus.HEALTHY, HealthStatus.HEALTHY], HealthStatus.HEALTHY),
            ([HealthStatus.HEALTHY, HealthStatus.DEGRADED], HealthStatus.DEGRADED),
            ([HealthStatus.HEALTHY, HealthStatus.UNKNOWN], HealthStatus.UNKNOWN),
        ],
    )
    def test_overall_status(self, statuses, expected):
        """Test health roll-up."""
        healths = [TriggerHealth(f"t{i}", s) for i, s in enumerate(statuses)]

        assert overall_status(healths) == expected


class TestDecisionStore:
    """Tests for the latest-value store."""

    @pytest.mark.asyncio
    async def test_keeps_latest_decision(self):
        """Test only the latest decision per trigger is kept."""
        store = DecisionStore()

        await store.emit_decision("a", make_decision(1))
        await store.emit_decision("a", make_decision(3))
        await store.emit_decision("b", make_decision(2))

        assert store.get_decision("a").desired_replicas == 3
        assert store.get_decision("b").desired_replicas == 2
        assert store.get_decision("c") is None
        assert set(store.get_all_decisions()) == {"a", "b"}

    @pytest.mark.asyncio
    async def test_records_metrics(self):
        """Test decisions and health reach the exporter."""
        metrics = ScalerMetrics()
        store = DecisionStore(metrics)

        await store.emit_decision("a", make_decision(2))
        await store.report_health("a", TriggerHealth("a", HealthStatus.DEGRADED))

        assert metrics.registry.get_sample_value(
            "bucket_scaler_desired_replicas", {"trigger": "a"}
        ) == 2.0
        assert metrics.registry.get_sample_value(
            "bucket_scaler_trigger_healthy", {"trigger": "a"}
        ) == 0.0

    @pytest.mark.asyncio
    async def test_forget(self):
        """Test forgetting a trigger drops its values and series."""
        metrics = ScalerMetrics()
        store = DecisionStore(metrics)
        await store.emit_decision("a", make_decision(2))
        await store.report_health("a", TriggerHealth("a", HealthStatus.HEALTHY))

        store.forget("a")

        assert store.get_decision("a") is None
        assert store.get_health("a") is None
        assert metrics.registry.get_sample_value(
            "bucket_scaler_desired_replicas", {"trigger": "a"}
        ) is None

    @pytest.mark.asyncio
    async def test_stats(self):
        """Test store statistics."""
        store = DecisionStore()
        await store.emit_decision("a", make_decision(1))
        await store.report_health("b", TriggerHealth("b", HealthStatus.DEGRADED))

        stats = store.get_stats()

        assert stats["triggers_with_decisions"] == 1
        assert stats["degraded_triggers"] == ["b"]
