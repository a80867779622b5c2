"""
Decision delivery for bucket-driven scaling.

Sinks receive the decisions produced by polling controllers and make them
available to the orchestrator that reconciles the workload.
"""

from bucket_scaler.execution.base import (
    DecisionSink,
    MockDecisionSink,
)
from bucket_scaler.execution.store import DecisionStore

__all__ = [
    "DecisionSink",
    "DecisionStore",
    "MockDecisionSink",
]
