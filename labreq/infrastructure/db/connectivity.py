from __future__ import annotations

from typing import Protocol

from sqlalchemy import text
from sqlalchemy.engine import Engine


class Connectivity(Protocol):
    def enable(self) -> None: ...

    def disable(self) -> None: ...


class EngineConnectivity:
    """Toggle the connection pool of a SQLAlchemy engine.

    ``disable`` drops every pooled connection; ``enable`` opens a fresh one and
    pings the server, so a half-dead connection is never reused after a
    network failure.
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def disable(self) -> None:
        self.engine.dispose()

    def enable(self) -> None:
        with self.engine.connect() as connection:
            connection.execute(text("SELECT 1"))
