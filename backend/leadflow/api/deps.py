"""Shared dependencies and response helpers for API routes."""

from __future__ import annotations

from fastapi import Request, status
from fastapi.responses import JSONResponse

from leadflow.resilience.gateway import WorkflowGateway
from leadflow.workflow.records import OperationResult

DATA_SOURCE_HEADER = "X-Data-Source"


def get_gateway(request: Request) -> WorkflowGateway:
    """The process-wide gateway created in the app lifespan."""
    return request.app.state.gateway


def respond(result: OperationResult, status_code: int = status.HTTP_200_OK) -> JSONResponse:
    """Serialize an OperationResult; the header tells clients where the data came from."""
    return JSONResponse(
        status_code=status_code,
        content=result.to_dict(),
        headers={DATA_SOURCE_HEADER: result.source.value},
    )
