"""
Schema-drift and write-conflict classification.

Maps a database error to a drift signature when it means "the schema is
not what the code expects" rather than "the store is down":

    missing_column: PG 42703 / SQLite "no such column", "has no column named"
    missing_table: PG 42P01 / SQLite "no such table"
    missing_object: PG 42704 (e.g. a constraint name that does not exist)
    stale_check: PG 23514 / SQLite "CHECK constraint failed"
    missing_cascade: PG 23503 / SQLite "FOREIGN KEY constraint failed"

Values are validated before they are written, so a check or FK violation
from the store points at an outdated constraint, not at bad input.

Unique violations (PG 23505 / SQLite "UNIQUE constraint failed") are not
drift: they mean a concurrent writer took the same key first.
"""

from __future__ import annotations

from sqlalchemy.exc import DBAPIError, IntegrityError

from leadflow.core.errors import SchemaDriftError

PG_CODES = {
    "42703": "missing_column",
    "42P01": "missing_table",
    "42704": "missing_object",
    "23514": "stale_check",
    "23503": "missing_cascade",
}

MESSAGE_MARKERS = (
    ("no such column", "missing_column"),
    ("has no column named", "missing_column"),
    ("no such table", "missing_table"),
    ("check constraint failed", "stale_check"),
    ("foreign key constraint failed", "missing_cascade"),
)


def _sqlstate(exc: BaseException) -> str | None:
    orig = getattr(exc, "orig", None)
    for candidate in (orig, getattr(orig, "__cause__", None)):
        if candidate is None:
            continue
        code = getattr(candidate, "pgcode", None) or getattr(candidate, "sqlstate", None)
        if code:
            return str(code)
    return None


def classify_drift(exc: BaseException) -> SchemaDriftError | None:
    """Return a SchemaDriftError describing `exc`, or None if it is not drift."""
    if not isinstance(exc, DBAPIError):
        return None

    signature = PG_CODES.get(_sqlstate(exc) or "")
    if signature is None:
        message = str(getattr(exc, "orig", exc)).lower()
        signature = next((sig for marker, sig in MESSAGE_MARKERS if marker in message), None)
    if signature is None:
        return None

    return SchemaDriftError(
        f"Schema drift detected: {signature}",
        signature=signature,
        details={"error": str(getattr(exc, "orig", exc))},
    )


UNIQUE_VIOLATION_CODE = "23505"
UNIQUE_VIOLATION_MARKERS = ("unique constraint failed", "duplicate key value")


def is_unique_violation(exc: BaseException) -> bool:
    """True when `exc` is an IntegrityError raised by a unique constraint."""
    if not isinstance(exc, IntegrityError):
        return False
    if _sqlstate(exc) == UNIQUE_VIOLATION_CODE:
        return True
    message = str(getattr(exc, "orig", exc)).lower()
    return any(marker in message for marker in UNIQUE_VIOLATION_MARKERS)
