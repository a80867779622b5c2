"""
Health check endpoints.
"""

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel

from bucket_scaler.api.dependencies import get_registry, get_store
from bucket_scaler.execution.store import DecisionStore
from bucket_scaler.monitoring.health import HealthStatus, overall_status
from bucket_scaler.services.registry import TriggerRegistry

router = APIRouter(tags=["Health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str


class ReadinessResponse(BaseModel):
    """Readiness check response with trigger status."""

    status: str
    registry_running: bool
    triggers: int
    triggers_health: str
    degraded_triggers: list[str]


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Basic health check endpoint."""
    return HealthResponse(status="healthy")


@router.get("/health/live", response_model=HealthResponse)
async def liveness_check() -> HealthResponse:
    """Liveness check for Kubernetes."""
    return HealthResponse(status="alive")


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness_check(
    response: Response,
    registry: TriggerRegistry = Depends(get_registry),
    store: DecisionStore = Depends(get_store),
) -> ReadinessResponse:
    """
    Readiness check for Kubernetes.

    Ready while the registry is polling. Degraded triggers are reported but
    do not make the service unready.
    """
    healths = [
        h for h in (store.get_health(name) for name in registry.list_triggers())
        if h is not None
    ]
    degraded = [h.trigger_name for h in healths if h.status == HealthStatus.DEGRADED]

    if not registry.is_running:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return ReadinessResponse(
        status="ready" if registry.is_running else "not_ready",
        registry_running=registry.is_running,
        triggers=len(registry),
        triggers_health=overall_status(healths).value,
        degraded_triggers=degraded,
    )
