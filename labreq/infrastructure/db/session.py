from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import AbstractContextManager, contextmanager

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from labreq.infrastructure.db.engine import get_engine

SessionScope = Callable[[], AbstractContextManager[Session]]


def build_session_scope(bind: Engine) -> SessionScope:
    """Return a ``session_scope`` bound to ``bind``.

    Each scope is one transaction: committed when the block exits normally,
    rolled back and re-raised otherwise. Objects stay readable after commit
    so services can map rows to DTOs outside the block.
    """
    factory = sessionmaker(bind=bind, autoflush=False, expire_on_commit=False)

    @contextmanager
    def _scope() -> Iterator[Session]:
        session = factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    return _scope


engine = get_engine()
session_scope = build_session_scope(engine)
