"""
Alembic migration environment — reads the database URL from leadflow settings.

Uses a SYNC engine for migrations (psycopg2) even though the app
uses async (asyncpg) at runtime.
"""

from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool

from leadflow.core.config import settings
from leadflow.db.models import Base  # noqa: F401  registers every model on the metadata

config = context.config

# Sync URL for Alembic (psycopg2 / pysqlite, never the async drivers)
sync_url = settings.DATABASE_URL_SYNC
config.set_main_option("sqlalchemy.url", sync_url)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Emit SQL to stdout without a live connection."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=sync_url.startswith("sqlite"),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations against the live database."""
    connectable = create_engine(sync_url, poolclass=pool.NullPool)
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            render_as_batch=connection.dialect.name == "sqlite",
        )
        with context.begin_transaction():
            context.run_migrations()
    connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
