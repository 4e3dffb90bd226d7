from __future__ import annotations

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine

from labreq.config import settings

# A concurrent writer makes SQLite wait this long before "database is locked".
SQLITE_BUSY_TIMEOUT_MS = 5000


def _set_busy_timeout(dbapi_connection, _connection_record) -> None:
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute(f"PRAGMA busy_timeout={SQLITE_BUSY_TIMEOUT_MS}")
    finally:
        cursor.close()


def get_engine(database_url: str | None = None, *, echo: bool | None = None) -> Engine:
    database_url = database_url or settings.database_url
    engine = create_engine(
        database_url,
        echo=settings.echo_sql if echo is None else echo,
        future=True,
        pool_pre_ping=True,
    )
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _set_busy_timeout)
    return engine
