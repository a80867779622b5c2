"""
Monitoring for bucket-driven scaling.

- Prometheus metrics per trigger
- Trigger health reporting
"""

from bucket_scaler.monitoring.health import (
    HealthStatus,
    TriggerHealth,
    overall_status,
)
from bucket_scaler.monitoring.metrics import ScalerMetrics

__all__ = [
    "HealthStatus",
    "TriggerHealth",
    "overall_status",
    "ScalerMetrics",
]
