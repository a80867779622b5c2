"""
Replica sizing from an object count.

Linear ratio sizing: one replica per ``target_object_count`` pending objects,
rounded up and clamped into the rule's replica range.
"""

from .models import MetricSample
from .rule import ScalingRule


def ceiling_divide(numerator: int, denominator: int) -> int:
    """Integer division rounding up. Never goes through floating point."""
    if denominator <= 0:
        raise ValueError(f"denominator must be > 0, got {denominator}")
    if numerator < 0:
        raise ValueError(f"numerator must be >= 0, got {numerator}")
    return (numerator + denominator - 1) // denominator


def compute_desired_replicas(sample: MetricSample, rule: ScalingRule) -> int:
    """
    Compute the raw desired replica count for a sample.

    Args:
        sample: Object-count reading
        rule: Validated trigger configuration

    Returns:
        ceil(count / target) clamped into [min_replica_count, max_replica_count]
    """
    if sample.count == 0:
        return rule.min_replica_count
    return rule.clamp(ceiling_divide(sample.count, rule.target_object_count))
