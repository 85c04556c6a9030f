"""Store health probe: `SELECT 1` bounded by a timeout."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from leadflow.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class StoreHealth:
    available: bool
    latency_ms: int | None = None
    error: str | None = None


async def _select_one(engine: AsyncEngine) -> None:
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))


async def check_store(engine: AsyncEngine, timeout: float = 3.0) -> StoreHealth:
    """Probe the store; never raises."""
    start = time.monotonic()
    try:
        await asyncio.wait_for(_select_one(engine), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("Store health probe timed out", timeout=timeout)
        return StoreHealth(available=False, error=f"timed out after {timeout}s")
    except (SQLAlchemyError, OSError) as exc:
        logger.warning("Store health probe failed", error=str(exc))
        return StoreHealth(available=False, error=str(exc))

    return StoreHealth(available=True, latency_ms=int((time.monotonic() - start) * 1000))
