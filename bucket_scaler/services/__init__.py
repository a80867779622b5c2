"""
Background services for bucket-driven scaling.

This module provides:
- Polling controller driving the decision loop of one trigger
- Trigger registry running one controller per trigger
"""

from bucket_scaler.services.controller import (
    BackoffPolicy,
    PollingController,
)
from bucket_scaler.services.registry import (
    TriggerRegistry,
    gcs_source_factory,
    load_trigger_definitions,
)

__all__ = [
    # Controller
    "BackoffPolicy",
    "PollingController",
    # Registry
    "TriggerRegistry",
    "gcs_source_factory",
    "load_trigger_definitions",
]
