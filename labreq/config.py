import os
from dataclasses import dataclass
from pathlib import Path

from platformdirs import user_data_dir

APP_NAME = "labreq"
APP_AUTHOR = "labreq"


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return max(1, int(raw))
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return max(0.0, float(raw))
    except ValueError:
        return default


def _resolve_data_dir() -> Path:
    env_dir = os.getenv("LABREQ_DATA_DIR")
    if env_dir:
        return Path(env_dir)
    return Path(user_data_dir(APP_NAME, APP_AUTHOR))


DATA_DIR = _resolve_data_dir()
LOG_DIR = DATA_DIR / "logs"
EXPORT_DIR = Path(os.getenv("LABREQ_EXPORT_DIR") or (DATA_DIR / "exports"))
DB_FILE = Path(os.getenv("LABREQ_DB_FILE") or (DATA_DIR / "app.db"))

DATA_DIR.mkdir(parents=True, exist_ok=True)
LOG_DIR.mkdir(parents=True, exist_ok=True)
DB_FILE.parent.mkdir(parents=True, exist_ok=True)


def default_database_url() -> str:
    # SQLite URL uses forward slashes; as_posix() keeps it cross-platform.
    return f"sqlite:///{DB_FILE.as_posix()}"


@dataclass(frozen=True)
class Settings:
    database_url: str = os.getenv("DATABASE_URL", default_database_url())
    echo_sql: bool = os.getenv("SQL_ECHO", "0") == "1"
    create_max_attempts: int = _env_int("LABREQ_CREATE_MAX_ATTEMPTS", 3)
    create_retry_delay_seconds: float = _env_float("LABREQ_CREATE_RETRY_DELAY", 1.0)
    export_dir: Path = EXPORT_DIR
    pdf_font: str | None = os.getenv("LABREQ_PDF_FONT") or None


settings = Settings()
