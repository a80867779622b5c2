"""
Decision engine for bucket-driven scaling.

- Models: MetricSample in, ScalingDecision out
- Rule: validated trigger configuration
- Scaler: pure ratio sizing (ceiling division + clamp)
- Cooldown: scale-to-minimum gate
"""

from bucket_scaler.decision.cooldown import (
    ActivityState,
    CooldownState,
    CooldownTracker,
)
from bucket_scaler.decision.models import (
    DecisionReason,
    MetricSample,
    ScalingDecision,
)
from bucket_scaler.decision.rule import (
    ConfigError,
    ScalingRule,
    TriggerDefinition,
)
from bucket_scaler.decision.scaler import (
    ceiling_divide,
    compute_desired_replicas,
)

__all__ = [
    # Models
    "DecisionReason",
    "MetricSample",
    "ScalingDecision",
    # Rule
    "ConfigError",
    "ScalingRule",
    "TriggerDefinition",
    # Scaler
    "ceiling_divide",
    "compute_desired_replicas",
    # Cooldown
    "ActivityState",
    "CooldownState",
    "CooldownTracker",
]
