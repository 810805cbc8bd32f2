"""Migration environment for the elearn schema.

The app talks to its database through asyncpg or aiosqlite; migrations run
synchronously, so the configured URL is rewritten to psycopg2 or pysqlite.
SQLite cannot ALTER most columns in place, so its migrations use batch mode.
"""
from logging.config import fileConfig
import os

from alembic import context
from sqlalchemy import engine_from_config, pool

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# models must be imported so every table lands on Base.metadata
from elearn.db.base import Base  # noqa: E402
from elearn.core.config import get_settings  # noqa: E402

target_metadata = Base.metadata

SYNC_DRIVERS = {
    "postgresql+asyncpg://": "postgresql+psycopg2://",
    "sqlite+aiosqlite://": "sqlite://",
}


def to_sync_url(url: str) -> str:
    for async_prefix, sync_prefix in SYNC_DRIVERS.items():
        if url.startswith(async_prefix):
            return sync_prefix + url[len(async_prefix):]
    return url


def migration_url() -> str:
    """ALEMBIC_DATABASE_URL as given, else the app's DATABASE_URL made sync, else alembic.ini."""
    override = os.getenv("ALEMBIC_DATABASE_URL")
    if override:
        return override
    app_url = get_settings().database_url
    if app_url:
        return to_sync_url(app_url)
    return config.get_main_option("sqlalchemy.url")


def _batch(url: str) -> bool:
    return url.startswith("sqlite")


def run_migrations_offline() -> None:
    url = migration_url()
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
        render_as_batch=_batch(url),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    url = migration_url()
    section = config.get_section(config.config_ini_section) or {}
    section["sqlalchemy.url"] = url
    connectable = engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool, future=True)
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            render_as_batch=_batch(url),
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
