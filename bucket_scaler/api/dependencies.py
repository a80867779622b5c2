"""
Request dependencies resolving the application's shared components.
"""

from fastapi import Request

from bucket_scaler.execution.store import DecisionStore
from bucket_scaler.monitoring.metrics import ScalerMetrics
from bucket_scaler.services.registry import TriggerRegistry


def get_registry(request: Request) -> TriggerRegistry:
    return request.app.state.registry


def get_store(request: Request) -> DecisionStore:
    return request.app.state.store


def get_metrics(request: Request) -> ScalerMetrics:
    return request.app.state.metrics
