from __future__ import annotations

import logging
import traceback
from pathlib import Path

from alembic import command
from alembic.config import Config

MIGRATIONS_DIR = Path(__file__).resolve().parent.parent / "infrastructure" / "db" / "migrations"

logger = logging.getLogger(__name__)


def build_alembic_config(database_url: str) -> Config:
    cfg = Config()
    cfg.set_main_option("script_location", str(MIGRATIONS_DIR))
    cfg.set_main_option("sqlalchemy.url", database_url)
    return cfg


def run_migrations(database_url: str, log_dir: Path) -> bool:
    try:
        command.upgrade(build_alembic_config(database_url), "head")
        return True
    except Exception:  # noqa: BLE001
        logger.exception("Failed to run migrations")
        try:
            error_path = log_dir / "migration_error.log"
            error_path.parent.mkdir(parents=True, exist_ok=True)
            with error_path.open("a", encoding="utf-8") as handle:
                handle.write("\n--- Migration error ---\n")
                handle.write(f"DB: {database_url}\n")
                handle.write(f"Migrations: {MIGRATIONS_DIR}\n")
                handle.write(traceback.format_exc())
        except OSError:
            logger.exception("Failed to write migration error log")
        return False


def initialize_database(*, database_url: str, log_dir: Path) -> bool:
    if not MIGRATIONS_DIR.exists():
        logger.error("Migrations directory is missing: %s", MIGRATIONS_DIR)
        return False
    return run_migrations(database_url, log_dir)
