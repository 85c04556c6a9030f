"""Map workflow exceptions to HTTP responses."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from leadflow.core.errors import StoreUnavailableError, WorkflowError
from leadflow.core.logging import get_logger

logger = get_logger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    """Register WorkflowError handling on a FastAPI app."""

    @app.exception_handler(WorkflowError)
    async def workflow_error_handler(request: Request, exc: WorkflowError) -> JSONResponse:
        log = logger.error if isinstance(exc, StoreUnavailableError) else logger.info
        log(
            "Request failed",
            path=request.url.path,
            error=type(exc).__name__,
            detail=exc.message,
            status_code=exc.status_code,
        )
        headers = {"Retry-After": "30"} if isinstance(exc, StoreUnavailableError) else None
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)
