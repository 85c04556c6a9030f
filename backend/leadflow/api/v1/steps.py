"""
Step endpoints addressed by step id.

Status changes go through the transition table; the response carries the
owning entity's recomputed probability.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from leadflow.api.deps import get_gateway, respond
from leadflow.api.schemas.steps import StepUpdateRequest
from leadflow.resilience.gateway import WorkflowGateway

router = APIRouter(prefix="/steps", tags=["Steps"])


@router.put("/{step_id}")
async def update_step(
    step_id: int,
    payload: StepUpdateRequest,
    gateway: WorkflowGateway = Depends(get_gateway),
) -> JSONResponse:
    fields = payload.model_dump(exclude_unset=True)
    status = fields.pop("status", None)
    return respond(await gateway.update_step(step_id, status=status, **fields))


@router.delete("/{step_id}")
async def delete_step(step_id: int, gateway: WorkflowGateway = Depends(get_gateway)) -> JSONResponse:
    """Delete a step; its weight no longer counts towards probability."""
    return respond(await gateway.delete_step(step_id))
