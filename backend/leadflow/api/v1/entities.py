"""
Lead and VC endpoints.

Both entity kinds share one router shape; `build_entity_router` stamps
it out per kind so a VC id can never be read through /leads and vice versa.
"""

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from leadflow.api.deps import get_gateway, respond
from leadflow.api.schemas.entities import EntityCreateRequest, EntityUpdateRequest, TemplateChangeRequest
from leadflow.api.schemas.steps import ReorderRequest, StepCreateRequest
from leadflow.core.constants import EntityKind, EntityStatus
from leadflow.resilience.gateway import WorkflowGateway


def build_entity_router(kind: EntityKind, prefix: str, tag: str) -> APIRouter:
    router = APIRouter(prefix=prefix, tags=[tag])

    # ─── Collection ───────────────────────────────────────
    @router.get("")
    async def list_entities(
        status_filter: EntityStatus | None = Query(default=None, alias="status"),
        limit: int = Query(default=50, ge=1, le=500),
        offset: int = Query(default=0, ge=0),
        gateway: WorkflowGateway = Depends(get_gateway),
    ) -> JSONResponse:
        """List entities of this kind, newest first."""
        result = await gateway.list_entities(
            kind=kind.value,
            status=status_filter.value if status_filter else None,
            offset=offset,
            limit=limit,
        )
        return respond(result)

    @router.get("/stats")
    async def entity_stats(gateway: WorkflowGateway = Depends(get_gateway)) -> JSONResponse:
        """Counts per status."""
        return respond(await gateway.entity_stats(kind=kind.value))

    @router.post("", status_code=status.HTTP_201_CREATED)
    async def create_entity(
        payload: EntityCreateRequest,
        gateway: WorkflowGateway = Depends(get_gateway),
    ) -> JSONResponse:
        """Create an entity and instantiate its steps from the chosen template."""
        result = await gateway.create_entity(kind=kind.value, **payload.model_dump(mode="json"))
        return respond(result, status.HTTP_201_CREATED)

    # ─── Single entity ────────────────────────────────────
    @router.get("/{entity_id}")
    async def get_entity(entity_id: int, gateway: WorkflowGateway = Depends(get_gateway)) -> JSONResponse:
        return respond(await gateway.get_entity(entity_id, kind=kind.value))

    @router.put("/{entity_id}")
    async def update_entity(
        entity_id: int,
        payload: EntityUpdateRequest,
        gateway: WorkflowGateway = Depends(get_gateway),
    ) -> JSONResponse:
        fields = payload.model_dump(mode="json", exclude_unset=True)
        return respond(await gateway.update_entity(entity_id, kind=kind.value, **fields))

    @router.delete("/{entity_id}")
    async def delete_entity(entity_id: int, gateway: WorkflowGateway = Depends(get_gateway)) -> JSONResponse:
        """Delete the entity together with its steps and their comments."""
        return respond(await gateway.delete_entity(entity_id, kind=kind.value))

    @router.put("/{entity_id}/template")
    async def change_template(
        entity_id: int,
        payload: TemplateChangeRequest,
        gateway: WorkflowGateway = Depends(get_gateway),
    ) -> JSONResponse:
        """Replace all steps with those of another template. Progress is reset."""
        return respond(await gateway.change_entity_template(entity_id, payload.template_id, kind=kind.value))

    @router.get("/{entity_id}/progress")
    async def progress(entity_id: int, gateway: WorkflowGateway = Depends(get_gateway)) -> JSONResponse:
        return respond(await gateway.progress_summary(entity_id, kind=kind.value))

    # ─── Steps ────────────────────────────────────────────
    @router.get("/{entity_id}/steps")
    async def get_steps(entity_id: int, gateway: WorkflowGateway = Depends(get_gateway)) -> JSONResponse:
        """Ordered steps; default steps are created on first read if none exist."""
        return respond(await gateway.get_steps(entity_id, kind=kind.value))

    @router.post("/{entity_id}/steps", status_code=status.HTTP_201_CREATED)
    async def create_step(
        entity_id: int,
        payload: StepCreateRequest,
        gateway: WorkflowGateway = Depends(get_gateway),
    ) -> JSONResponse:
        result = await gateway.create_step(entity_id, kind=kind.value, **payload.model_dump())
        return respond(result, status.HTTP_201_CREATED)

    @router.put("/{entity_id}/steps/reorder")
    async def reorder_steps(
        entity_id: int,
        payload: ReorderRequest,
        gateway: WorkflowGateway = Depends(get_gateway),
    ) -> JSONResponse:
        """Apply new orders; the entity's template follows when it has one."""
        moves = [(item.id, item.order) for item in payload.steps]
        return respond(await gateway.reorder_steps(entity_id, moves, kind=kind.value))

    @router.post("/{entity_id}/steps/resync-weights")
    async def resync_weights(entity_id: int, gateway: WorkflowGateway = Depends(get_gateway)) -> JSONResponse:
        """Re-copy weights from the template and recompute probability."""
        return respond(await gateway.resync_weights(entity_id, kind=kind.value))

    return router


leads_router = build_entity_router(EntityKind.LEAD, "/leads", "Leads")
vcs_router = build_entity_router(EntityKind.VC, "/vcs", "VCs")
