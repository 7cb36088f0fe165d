"""Alembic environment for the tripdesk schema.

    alembic -c web/alembic.ini upgrade head
    alembic -c web/alembic.ini revision --autogenerate -m "<message>"

The DSN comes from ``DB_DSN`` (the same variable the app reads). Async drivers
are swapped for their sync counterparts because migrations run synchronously.
"""

from __future__ import annotations

import os
import re
import sys
from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool

# `web/` holds the tripdesk package
WEB_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if WEB_DIR not in sys.path:
    sys.path.append(WEB_DIR)

from tripdesk.core.config import get_settings  # noqa: E402
from tripdesk.models import Base  # noqa: E402

config = context.config
if config.config_file_name:
    fileConfig(config.config_file_name)

SYNC_DSN = re.sub(r"\+(asyncpg|aiosqlite)", "", get_settings().DB_DSN, count=1)
config.set_main_option("sqlalchemy.url", SYNC_DSN)

target_metadata = Base.metadata


def _configure_opts() -> dict:
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        # SQLite cannot ALTER constraints in place
        "render_as_batch": SYNC_DSN.startswith("sqlite"),
    }


def run_migrations_offline() -> None:
    """Emit SQL to stdout instead of touching a database."""
    context.configure(
        url=SYNC_DSN,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_opts(),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = create_engine(SYNC_DSN, poolclass=pool.NullPool)
    with connectable.connect() as connection:
        context.configure(connection=connection, **_configure_opts())
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
