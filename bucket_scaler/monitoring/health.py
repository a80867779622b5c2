"""
Trigger health reporting.

A trigger is DEGRADED while its credentials keep being rejected; it never
stops polling because of it. Health is reported to the orchestrator
alongside decisions.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class HealthStatus(str, Enum):
    """Health status values."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class TriggerHealth:
    """Health of a single trigger."""

    trigger_name: str
    status: HealthStatus
    message: str = ""
    consecutive_failures: int = 0
    last_error: str | None = None
    checked_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_healthy(self) -> bool:
        return self.status == HealthStatus.HEALTHY

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "trigger_name": self.trigger_name,
            "status": self.status.value,
            "message": self.message,
            "consecutive_failures": self.consecutive_failures,
            "last_error": self.last_error,
            "checked_at": self.checked_at.isoformat(),
        }


def overall_status(healths: list[TriggerHealth]) -> HealthStatus:
    """Roll trigger health up to a single status."""
    if not healths:
        return HealthStatus.UNKNOWN
    if any(h.status == HealthStatus.DEGRADED for h in healths):
        return HealthStatus.DEGRADED
    if all(h.status == HealthStatus.HEALTHY for h in healths):
        return HealthStatus.HEALTHY
    return HealthStatus.UNKNOWN
