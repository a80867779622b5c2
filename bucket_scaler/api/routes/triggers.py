"""
Trigger API routes.

The decision endpoint is what an orchestrator polls: it returns the latest
desired replica count of a trigger as a plain metric value.
"""

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, status
from pydantic import BaseModel

from bucket_scaler.api.dependencies import get_registry, get_store
from bucket_scaler.decision.rule import ConfigError, TriggerDefinition
from bucket_scaler.execution.store import DecisionStore
from bucket_scaler.services.controller import PollingController
from bucket_scaler.services.registry import TriggerRegistry

router = APIRouter(prefix="/triggers", tags=["Triggers"])


class DecisionResponse(BaseModel):
    """Latest decision of a trigger."""

    trigger: str
    desired_replicas: int
    reason: str
    computed_at: datetime
    object_count: int


class TriggerStatusResponse(BaseModel):
    """Current status of a trigger."""

    name: str
    running: bool
    rule: dict[str, Any]
    cooldown: dict[str, Any]
    last_decision: dict[str, Any] | None
    consecutive_failures: int
    next_delay_seconds: float
    health: str
    last_error: str | None
    ticks_total: int
    failures_total: int
    discarded_total: int


class TriggerListResponse(BaseModel):
    """Response for list of triggers."""

    triggers: list[TriggerStatusResponse]
    count: int


def _get_controller(registry: TriggerRegistry, name: str) -> PollingController:
    controller = registry.get(name)
    if controller is None:
        raise HTTPException(status_code=404, detail=f"Trigger {name} not found")
    return controller


@router.get("", response_model=TriggerListResponse)
async def list_triggers(
    registry: TriggerRegistry = Depends(get_registry),
) -> TriggerListResponse:
    """List all registered triggers."""
    statuses = [
        TriggerStatusResponse(**registry.get(name).get_status())
        for name in registry.list_triggers()
    ]
    return TriggerListResponse(triggers=statuses, count=len(statuses))


@router.post("", response_model=TriggerStatusResponse, status_code=status.HTTP_201_CREATED)
async def register_trigger(
    payload: dict[str, Any] = Body(...),
    registry: TriggerRegistry = Depends(get_registry),
) -> TriggerStatusResponse:
    """
    Register a trigger.

    Accepts flat definitions and ScaledObject-shaped records with a nested
    metadata block.
    """
    try:
        definition = TriggerDefinition.parse(payload)
    except ConfigError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e

    if definition.name in registry:
        raise HTTPException(
            status_code=409,
            detail=f"Trigger {definition.name} is already registered",
        )

    controller = await registry.register(definition)
    return TriggerStatusResponse(**controller.get_status())


@router.get("/{name}", response_model=TriggerStatusResponse)
async def get_trigger(
    name: str,
    registry: TriggerRegistry = Depends(get_registry),
) -> TriggerStatusResponse:
    """Get the status of a trigger."""
    controller = _get_controller(registry, name)
    return TriggerStatusResponse(**controller.get_status())


@router.delete("/{name}", status_code=status.HTTP_204_NO_CONTENT)
async def deregister_trigger(
    name: str,
    registry: TriggerRegistry = Depends(get_registry),
) -> None:
    """Stop and remove a trigger."""
    _get_controller(registry, name)
    await registry.deregister(name)


@router.get("/{name}/decision", response_model=DecisionResponse)
async def get_decision(
    name: str,
    registry: TriggerRegistry = Depends(get_registry),
    store: DecisionStore = Depends(get_store),
) -> DecisionResponse:
    """Get the latest decision of a trigger."""
    _get_controller(registry, name)

    decision = store.get_decision(name)
    if decision is None:
        raise HTTPException(
            status_code=404,
            detail=f"Trigger {name} has not produced a decision yet",
        )

    return DecisionResponse(
        trigger=name,
        desired_replicas=decision.desired_replicas,
        reason=decision.reason.value,
        computed_at=decision.computed_at,
        object_count=decision.object_count,
    )
