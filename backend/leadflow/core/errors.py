"""
Domain-specific exception hierarchy for the workflow step engine.

All engine exceptions inherit from WorkflowError so callers can catch
broadly or narrowly as needed.  Each exception carries structured
context (entity ID, step ID, etc.) for logging/debugging, plus the
HTTP status the API layer maps it to.
"""

from __future__ import annotations

from typing import Any


class WorkflowError(Exception):
    """Base exception for all workflow engine errors."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        *,
        entity_id: int | None = None,
        step_id: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.entity_id = entity_id
        self.step_id = step_id
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Serialise for API error bodies."""
        body: dict[str, Any] = {"error": type(self).__name__, "detail": self.message}
        if self.entity_id is not None:
            body["entity_id"] = self.entity_id
        if self.step_id is not None:
            body["step_id"] = self.step_id
        if self.details:
            body["details"] = self.details
        return body


class NotFoundError(WorkflowError):
    """An entity, template, or step id does not resolve."""

    status_code = 404


class InvalidTransitionError(WorkflowError):
    """Requested step status is unknown or leaves a terminal state."""

    status_code = 409


class InvalidReorderError(WorkflowError):
    """A reorder request would break per-entity order uniqueness."""

    status_code = 422


class StoreUnavailableError(WorkflowError):
    """Backing store unreachable, timed out, or still drifting after healing."""

    status_code = 503


class SchemaDriftError(WorkflowError):
    """The store rejected a statement because of a missing column or constraint."""

    status_code = 503

    def __init__(self, message: str, *, signature: str, **kwargs: Any) -> None:
        self.signature = signature
        super().__init__(message, **kwargs)


class ConflictError(WorkflowError):
    """A write collided with a concurrent change to the same unique key."""

    status_code = 409
