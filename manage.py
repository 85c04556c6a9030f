#!/usr/bin/env python3
"""
Leadflow — Operations Tool

Single entry point for database and maintenance chores.
Usage: python manage.py <command> [options]
"""

import asyncio
import logging
import os
import subprocess
import sys
from datetime import datetime
from typing import List

BACKEND_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "backend")
if BACKEND_DIR not in sys.path:
    sys.path.insert(0, BACKEND_DIR)


# ═══════════════════════════════════════════════════════════
#  Logging Setup
# ═══════════════════════════════════════════════════════════

class ColorFormatter(logging.Formatter):
    """Console formatter with ANSI colors and level symbols."""

    COLORS = {
        "INFO": "\033[96m",        # Cyan
        "SUCCESS": "\033[92m",     # Green
        "WARNING": "\033[93m",     # Yellow
        "ERROR": "\033[91m",       # Red
        "CRITICAL": "\033[91m\033[1m",  # Bold Red
        "DEBUG": "\033[94m",       # Blue
        "HEADER": "\033[95m",      # Magenta
        "BOLD": "\033[1m",
        "RESET": "\033[0m",
    }

    SYMBOLS = {
        "INFO": "→",
        "SUCCESS": "✓",
        "WARNING": "⚠",
        "ERROR": "✗",
        "CRITICAL": "☠",
        "DEBUG": "•",
        "STEP": "▶",
    }

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors and sys.platform != "win32"

    def _colorize(self, text: str, color_name: str) -> str:
        if not self.use_colors:
            return text
        color = self.COLORS.get(color_name, "")
        return f"{color}{text}{self.COLORS['RESET']}" if color else text

    def format(self, record: logging.LogRecord) -> str:
        msg = str(record.msg)

        if "[SUCCESS]" in msg:
            symbol, color = self.SYMBOLS["SUCCESS"], "SUCCESS"
        elif "[WARNING]" in msg:
            symbol, color = self.SYMBOLS["WARNING"], "WARNING"
        elif "[ERROR]" in msg:
            symbol, color = self.SYMBOLS["ERROR"], "ERROR"
        elif "[STEP]" in msg:
            symbol, color = self.SYMBOLS["STEP"], "INFO"
        else:
            symbol, color = self.SYMBOLS.get(record.levelname, ""), record.levelname

        if symbol and not msg.startswith(("===", " ")):
            record.msg = f"{symbol} {msg}"

        if self.use_colors:
            if msg.startswith("==="):
                record.msg = self._colorize(str(record.msg), "HEADER")
            else:
                record.msg = self._colorize(str(record.msg), color)

        return super().format(record)


# --- Bootstrap logger --------------------------------------------------------
_log_dir = "logs"
os.makedirs(_log_dir, exist_ok=True)
_log_file = os.path.join(_log_dir, f"manage-{datetime.now():%Y%m%d}.log")

_file_handler = logging.FileHandler(_log_file, encoding="utf-8")
_file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))

_console_handler = logging.StreamHandler()
_console_handler.setFormatter(ColorFormatter())

logging.basicConfig(level=logging.INFO, handlers=[_file_handler, _console_handler])
logger = logging.getLogger("manage")


# ═══════════════════════════════════════════════════════════
#  Leadflow Manager
# ═══════════════════════════════════════════════════════════

class LeadflowManager:
    """Database and maintenance commands for the workflow backend."""

    # ─── Helpers ──────────────────────────────────────────
    def _run(self, cmd: List[str], cwd: str = BACKEND_DIR) -> None:
        logger.info(f"[STEP] Running: {' '.join(cmd)}")
        try:
            subprocess.run(cmd, check=True, cwd=cwd)
        except subprocess.CalledProcessError as exc:
            logger.error(f"Command failed (exit {exc.returncode})")
            raise

    def _service(self):
        from leadflow.db.session import async_session
        from leadflow.workflow.service import WorkflowService

        return WorkflowService(async_session)

    # ─── Schema ───────────────────────────────────────────
    def init_db(self) -> None:
        """Create missing tables/columns and repair constraints."""
        from leadflow.db.schema import ensure_schema
        from leadflow.db.session import engine

        logger.info("\n=== Ensuring Database Schema ===")

        async def _ensure() -> list:
            try:
                return await ensure_schema(engine)
            finally:
                await engine.dispose()

        actions = asyncio.run(_ensure())
        for action in actions:
            logger.info(f"  {action}")
        logger.info(f"[SUCCESS] Schema ready ({len(actions)} repairs)")

    def migrate(self) -> None:
        """Apply Alembic migrations up to head."""
        logger.info("\n=== Running Alembic Migrations ===")
        self._run(["alembic", "-c", os.path.join(BACKEND_DIR, "alembic.ini"), "upgrade", "head"])
        logger.info("[SUCCESS] Migrations applied")

    def seed(self) -> None:
        """Insert starter templates."""
        from scripts.seed_templates import seed

        logger.info("\n=== Seeding Templates ===")
        created = asyncio.run(seed())
        logger.info(f"[SUCCESS] {created} templates created")

    # ─── Diagnostics ──────────────────────────────────────
    def health(self) -> None:
        """Probe the store the same way the API does."""
        from leadflow.core.config import settings
        from leadflow.db.session import engine
        from leadflow.resilience.health import check_store

        logger.info("\n=== Store Health ===")

        async def _probe():
            try:
                return await check_store(engine, timeout=settings.DB_HEALTH_TIMEOUT_SECONDS)
            finally:
                await engine.dispose()

        health = asyncio.run(_probe())
        if health.available:
            logger.info(f"[SUCCESS] Store reachable ({health.latency_ms} ms)")
        else:
            logger.warning(f"[WARNING] Store unavailable: {health.error}")
            sys.exit(2)

    # ─── Maintenance ──────────────────────────────────────
    def backfill_steps(self) -> None:
        """Give every entity without steps its steps."""
        logger.info("\n=== Backfilling Missing Steps ===")
        record = asyncio.run(self._service().backfill_missing_steps())
        logger.info(f"[SUCCESS] {record.entities_fixed} entities fixed, {record.steps_created} steps created")

    def resync_weights(self, entity_id: int) -> None:
        """Re-copy template weights onto one entity's steps."""
        logger.info(f"\n=== Re-syncing Weights for Entity {entity_id} ===")
        record = asyncio.run(self._service().resync_weights(entity_id))
        logger.info(f"[SUCCESS] {record.updated_steps} steps updated, probability now {record.probability}%")

    def serve(self, port: int = 8000) -> None:
        """Run the API with auto-reload."""
        logger.info(f"\n=== Serving API on :{port} ===")
        self._run(["uvicorn", "leadflow.main:app", "--reload", "--port", str(port)])


# ═══════════════════════════════════════════════════════════
#  CLI
# ═══════════════════════════════════════════════════════════

USAGE = f"""
{ColorFormatter.COLORS['HEADER']}Leadflow — Operations{ColorFormatter.COLORS['RESET']}
{'═' * 50}

{ColorFormatter.COLORS['BOLD']}Usage:{ColorFormatter.COLORS['RESET']} python manage.py <command> [options]

{ColorFormatter.COLORS['BOLD']}Commands:{ColorFormatter.COLORS['RESET']}
    {ColorFormatter.COLORS['INFO']}init-db{ColorFormatter.COLORS['RESET']}          Ensure schema (create/repair tables, columns, constraints)
    {ColorFormatter.COLORS['INFO']}migrate{ColorFormatter.COLORS['RESET']}          Run Alembic migrations
    {ColorFormatter.COLORS['INFO']}seed{ColorFormatter.COLORS['RESET']}             Insert starter templates
    {ColorFormatter.COLORS['INFO']}health{ColorFormatter.COLORS['RESET']}           Probe the database
    {ColorFormatter.COLORS['INFO']}backfill-steps{ColorFormatter.COLORS['RESET']}   Create steps for entities that have none
    {ColorFormatter.COLORS['INFO']}resync-weights{ColorFormatter.COLORS['RESET']}   Re-copy template weights (--entity=ID)
    {ColorFormatter.COLORS['INFO']}serve{ColorFormatter.COLORS['RESET']}            Run the API locally (--port=N)

{ColorFormatter.COLORS['BOLD']}Examples:{ColorFormatter.COLORS['RESET']}
    python manage.py migrate
    python manage.py seed
    python manage.py resync-weights --entity=42
"""


def _option(opts: List[str], name: str) -> str | None:
    for o in opts:
        if o.startswith(f"--{name}="):
            return o.split("=", 1)[1]
    return None


def main() -> None:
    if len(sys.argv) < 2 or sys.argv[1] in ("-h", "--help"):
        print(USAGE)
        sys.exit(0)

    command = sys.argv[1]
    opts = sys.argv[2:]
    mgr = LeadflowManager()

    try:
        if command == "init-db":
            mgr.init_db()
        elif command == "migrate":
            mgr.migrate()
        elif command == "seed":
            mgr.seed()
        elif command == "health":
            mgr.health()
        elif command == "backfill-steps":
            mgr.backfill_steps()
        elif command == "resync-weights":
            entity = _option(opts, "entity")
            if entity is None or not entity.isdigit():
                logger.error("resync-weights needs --entity=ID")
                sys.exit(1)
            mgr.resync_weights(int(entity))
        elif command == "serve":
            mgr.serve(port=int(_option(opts, "port") or 8000))
        else:
            logger.error(f"Unknown command: {command}")
            print(USAGE)
            sys.exit(1)
    except Exception as exc:
        logger.error(f"Operation failed: {exc}")
        sys.exit(1)


if __name__ == "__main__":
    main()
