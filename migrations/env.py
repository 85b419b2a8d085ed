"""Alembic migration environment.

Uses the connection handed over by novelsync.migrations when present
(``config.attributes["connection"]``); otherwise opens the configured
novelsync engine, so migrations always hit the database the library uses.
"""

from __future__ import annotations

from alembic import context
from sqlmodel import SQLModel

from novelsync.database import get_engine

# Import all model modules so that their tables are registered on
# SQLModel.metadata before Alembic inspects it.
from novelsync import models as _models  # noqa: F401

target_metadata = SQLModel.metadata


def _run(connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        render_as_batch=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations with a real database connection."""
    connection = context.config.attributes.get("connection")
    if connection is not None:
        _run(connection)
        return
    with get_engine().connect() as conn:
        _run(conn)


# We only support online mode.
if context.is_offline_mode():
    raise RuntimeError(
        "Offline migration mode is not supported. "
        "Run without --sql."
    )
else:
    run_migrations_online()
