"""
Schema ensure — bring an existing database up to the shape the models expect.

Runs once at startup (`SCHEMA_ENSURE_ON_STARTUP`), from `manage.py init-db`,
and, when `SCHEMA_SELF_HEAL_ON_DRIFT` is enabled, after a drift error.

Idempotent:
    - missing tables are created
    - missing columns are added (nullable, with their scalar default)
    - PostgreSQL only: missing check constraints are added, and foreign keys
      whose ON DELETE rule differs from the model are recreated

SQLite cannot alter constraints in place; there only tables and columns
are repaired.
"""

from __future__ import annotations

from sqlalchemy import CheckConstraint, Column, Table, inspect, text
from sqlalchemy.engine import Connection, Inspector
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.schema import AddConstraint

from leadflow.core.logging import get_logger
from leadflow.db.models import Base

logger = get_logger(__name__)


async def ensure_schema(engine: AsyncEngine, *, rebuild_checks: bool = False) -> list[str]:
    """
    Repair the schema in a single transaction.

    Args:
        engine: Async engine bound to the target database.
        rebuild_checks: Drop and recreate every check constraint (PostgreSQL),
            used when a stale constraint rejected a valid value.

    Returns:
        Human-readable list of the repairs that were applied.
    """
    async with engine.begin() as conn:
        actions = await conn.run_sync(_ensure, rebuild_checks)

    if actions:
        logger.warning("Schema repaired", dialect=engine.dialect.name, actions=actions)
    else:
        logger.info("Schema up to date", dialect=engine.dialect.name)
    return actions


def _ensure(conn: Connection, rebuild_checks: bool) -> list[str]:
    actions: list[str] = []
    inspector = inspect(conn)
    existing = set(inspector.get_table_names())

    missing = [t for t in Base.metadata.sorted_tables if t.name not in existing]
    if missing:
        Base.metadata.create_all(conn, tables=missing)
        actions.extend(f"create table {t.name}" for t in missing)

    for table in Base.metadata.sorted_tables:
        if table.name not in existing:
            continue
        actions.extend(_add_missing_columns(conn, inspector, table))
        if conn.dialect.name == "postgresql":
            actions.extend(_repair_check_constraints(conn, inspector, table, rebuild_checks))
            actions.extend(_repair_foreign_keys(conn, inspector, table))

    return actions


# ─── Columns ──────────────────────────────────
def _add_missing_columns(conn: Connection, inspector: Inspector, table: Table) -> list[str]:
    quote = conn.dialect.identifier_preparer.quote
    present = {c["name"] for c in inspector.get_columns(table.name)}
    actions = []

    for column in table.columns:
        if column.name in present:
            continue
        ddl = (
            f"ALTER TABLE {quote(table.name)} ADD COLUMN {quote(column.name)} "
            f"{column.type.compile(dialect=conn.dialect)}"
        )
        default = _literal_default(column)
        if default is not None:
            ddl += f" DEFAULT {default}"
        conn.execute(text(ddl))
        actions.append(f"add column {table.name}.{column.name}")

    return actions


def _literal_default(column: Column) -> str | None:
    default = column.default
    if default is None:
        return None
    if not default.is_scalar:
        # Callable defaults are timestamps (utcnow)
        return "CURRENT_TIMESTAMP"

    value = default.arg
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (int, float)):
        return str(value)
    escaped = str(value).replace("'", "''")
    return f"'{escaped}'"


# ─── Constraints (PostgreSQL) ─────────────────
def _repair_check_constraints(
    conn: Connection, inspector: Inspector, table: Table, rebuild: bool
) -> list[str]:
    quote = conn.dialect.identifier_preparer.quote
    present = {c["name"] for c in inspector.get_check_constraints(table.name)}
    actions = []

    for constraint in table.constraints:
        if not isinstance(constraint, CheckConstraint):
            continue
        name = str(constraint.name)
        if name in present and not rebuild:
            continue
        if name in present:
            conn.execute(text(f"ALTER TABLE {quote(table.name)} DROP CONSTRAINT {quote(name)}"))
        conn.execute(AddConstraint(constraint))
        actions.append(f"{'recreate' if name in present else 'add'} check {name}")

    return actions


def _repair_foreign_keys(conn: Connection, inspector: Inspector, table: Table) -> list[str]:
    quote = conn.dialect.identifier_preparer.quote
    present = inspector.get_foreign_keys(table.name)
    actions = []

    for fk in table.foreign_key_constraints:
        columns = list(fk.column_keys)
        wanted = (fk.ondelete or "").upper()
        match = next(
            (
                p for p in present
                if p["constrained_columns"] == columns and p["referred_table"] == fk.referred_table.name
            ),
            None,
        )
        if match is not None and (match.get("options", {}).get("ondelete") or "").upper() == wanted:
            continue
        if match is not None and match.get("name"):
            conn.execute(text(f"ALTER TABLE {quote(table.name)} DROP CONSTRAINT {quote(match['name'])}"))
        conn.execute(AddConstraint(fk))
        actions.append(f"recreate foreign key {table.name}({', '.join(columns)}) ON DELETE {wanted or 'NO ACTION'}")

    return actions
