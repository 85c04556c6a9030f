"""
Template catalog endpoints.

Reads degrade to fallback data; every write needs the database.
"""

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from leadflow.api.deps import get_gateway, respond
from leadflow.api.schemas.templates import TemplateCreateRequest, TemplateUpdateRequest
from leadflow.resilience.gateway import WorkflowGateway

router = APIRouter(prefix="/templates", tags=["Templates"])


@router.get("")
async def list_templates(
    include_inactive: bool = Query(default=False),
    gateway: WorkflowGateway = Depends(get_gateway),
) -> JSONResponse:
    return respond(await gateway.list_templates(include_inactive=include_inactive))


@router.get("/weights")
async def weight_report(gateway: WorkflowGateway = Depends(get_gateway)) -> JSONResponse:
    """Total weight per template; `is_balanced` is false when it is not 100."""
    return respond(await gateway.template_weight_report())


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_template(
    payload: TemplateCreateRequest,
    gateway: WorkflowGateway = Depends(get_gateway),
) -> JSONResponse:
    result = await gateway.create_template(**payload.model_dump())
    return respond(result, status.HTTP_201_CREATED)


@router.get("/{template_id}")
async def get_template(template_id: int, gateway: WorkflowGateway = Depends(get_gateway)) -> JSONResponse:
    return respond(await gateway.get_template(template_id))


@router.put("/{template_id}")
async def update_template(
    template_id: int,
    payload: TemplateUpdateRequest,
    gateway: WorkflowGateway = Depends(get_gateway),
) -> JSONResponse:
    fields = payload.model_dump(exclude_unset=True)
    return respond(await gateway.update_template(template_id, **fields))


@router.delete("/{template_id}")
async def deactivate_template(template_id: int, gateway: WorkflowGateway = Depends(get_gateway)) -> JSONResponse:
    """Soft delete: entities created from it keep their steps."""
    return respond(await gateway.deactivate_template(template_id))


@router.post("/{template_id}/duplicate", status_code=status.HTTP_201_CREATED)
async def duplicate_template(template_id: int, gateway: WorkflowGateway = Depends(get_gateway)) -> JSONResponse:
    result = await gateway.duplicate_template(template_id)
    return respond(result, status.HTTP_201_CREATED)


@router.get("/{template_id}/weights")
async def template_weights(template_id: int, gateway: WorkflowGateway = Depends(get_gateway)) -> JSONResponse:
    return respond(await gateway.template_weight_report(template_id))
