"""
Shared test fixtures and configuration.
"""

from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from bucket_scaler.collectors.base import MockMetricSource
from bucket_scaler.decision.rule import ScalingRule
from bucket_scaler.execution.base import MockDecisionSink

# ============================================================================
# Time Fixtures
# ============================================================================


class FakeClock:
    """Manually advanced clock returning timezone-aware datetimes."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now += timedelta(seconds=seconds)
        return self.now


@pytest.fixture
def t0() -> datetime:
    """Fixed reference time."""
    return datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC)


@pytest.fixture
def clock(t0: datetime) -> FakeClock:
    """Clock starting at t0."""
    return FakeClock(t0)


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def reference_rule() -> ScalingRule:
    """Rule mirroring the reference deployment (5 objects per replica, max 3)."""
    return ScalingRule(
        bucket_identifier="keda-test-storage-bucket",
        target_object_count=5,
        min_replica_count=0,
        max_replica_count=3,
        polling_interval_seconds=5,
        cooldown_period_seconds=10,
        credentials_ref="GOOGLE_APPLICATION_CREDENTIALS_JSON",
    )


@pytest.fixture
def reference_definition() -> dict[str, Any]:
    """ScaledObject manifest of the reference deployment, as the cluster stores it."""
    return {
        "apiVersion": "keda.sh/v1alpha1",
        "kind": "ScaledObject",
        "metadata": {"name": "test-scaledobject"},
        "spec": {
            "scaleTargetRef": {"name": "test-deployment"},
            "pollingInterval": 5,
            "maxReplicaCount": 3,
            "cooldownPeriod": 10,
            "triggers": [
                {
                    "type": "gcp-storage",
                    "metadata": {
                        "bucketName": "keda-test-storage-bucket",
                        "targetObjectCount": "5",
                        "credentialsFromEnv": "GOOGLE_APPLICATION_CREDENTIALS_JSON",
                    },
                }
            ],
        },
    }


# ============================================================================
# Collaborator Fixtures
# ============================================================================


@pytest.fixture
def source() -> MockMetricSource:
    """Scripted metric source."""
    return MockMetricSource()


@pytest.fixture
def sink() -> MockDecisionSink:
    """Recording decision sink."""
    return MockDecisionSink()
