"""Alembic migration helpers for novelsync.

This is the only module in the project that imports alembic directly.
Hosts call these functions at startup instead of running alembic by hand.
"""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Optional

from alembic import command as alembic_command
from alembic.config import Config as AlembicConfig
from alembic.script import ScriptDirectory
from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine

from .config import PROJECT_ROOT
from .database import get_engine
from .logging_config import get_logger

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Alembic config object, shared by every public function
# ---------------------------------------------------------------------------

def _alembic_cfg() -> AlembicConfig:
    """Build an AlembicConfig that points at our alembic.ini."""
    cfg = AlembicConfig(str(PROJECT_ROOT / "alembic.ini"))
    # Absolute script_location so it works regardless of the working directory.
    cfg.set_main_option("script_location", str(PROJECT_ROOT / "migrations"))
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def _db_path(engine: Engine) -> Optional[Path]:
    database = engine.url.database
    return Path(database) if database else None


def _backup_db(engine: Engine) -> None:
    """Copy library.db → library.db.bak (overwrite previous backup)."""
    db_path = _db_path(engine)
    if db_path and db_path.exists():
        shutil.copy2(db_path, db_path.with_suffix(db_path.suffix + ".bak"))


def _alembic_version_exists(engine: Engine) -> bool:
    """Return True when the alembic_version table is present in the DB."""
    return inspect(engine).has_table("alembic_version")


def run_migrations(engine: Optional[Engine] = None, backup: bool = True) -> None:
    """Run ``alembic upgrade head``.

    If *backup* is True and the database file already exists, a copy is made first.
    """
    engine = engine or get_engine()
    if backup:
        _backup_db(engine)
    cfg = _alembic_cfg()
    with engine.begin() as conn:
        cfg.attributes["connection"] = conn
        alembic_command.upgrade(cfg, "head")


def stamp_if_needed(engine: Optional[Engine] = None) -> None:
    """Stamp a database created by ``init_db`` (no alembic_version) to head.

    No-op when the database already carries version info or has no tables.
    """
    engine = engine or get_engine()
    if _alembic_version_exists(engine):
        return
    if not inspect(engine).has_table("novels"):
        return
    cfg = _alembic_cfg()
    with engine.begin() as conn:
        cfg.attributes["connection"] = conn
        alembic_command.stamp(cfg, "head")
    logger.info("Stamped existing database to migration head")


def get_status(engine: Optional[Engine] = None) -> tuple[str | None, str]:
    """Return (current_revision, head_revision).

    current_revision is None when the DB has never been stamped/migrated.
    """
    engine = engine or get_engine()
    script = ScriptDirectory.from_config(_alembic_cfg())
    head_rev: str = script.get_current_head() or "unknown"

    if not _alembic_version_exists(engine):
        return None, head_rev

    with engine.connect() as conn:
        row = conn.execute(text("SELECT version_num FROM alembic_version")).fetchone()
    return (row[0] if row else None), head_rev
