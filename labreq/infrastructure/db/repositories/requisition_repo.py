from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from labreq.infrastructure.db import models_sqlalchemy as models


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _to_json(value: object) -> str:
    if value is None:
        return "{}"
    return json.dumps(value, ensure_ascii=False, default=str)


def _from_json(value: object) -> dict[str, Any]:
    if value is None:
        return {}
    if isinstance(value, dict):
        return value
    try:
        loaded = json.loads(str(value))
    except ValueError:
        return {}
    return loaded if isinstance(loaded, dict) else {}


def _normalize_datetime(dt: datetime) -> datetime:
    if dt.tzinfo is not None:
        return dt.astimezone(UTC).replace(tzinfo=None)
    return dt


class RequisitionRepository:
    def create(
        self,
        session: Session,
        *,
        user_id: str,
        form_data: dict[str, Any],
        status: str,
        document_id: str | None = None,
    ) -> models.BloodTestDocument:
        now = _normalize_datetime(_utc_now())
        row = models.BloodTestDocument(
            id=document_id or str(uuid4()),
            user_id=user_id,
            form_data_json=_to_json(form_data),
            status=status,
            created_at=now,
            updated_at=now,
        )
        session.add(row)
        session.flush()
        return row

    def get(self, session: Session, document_id: str) -> models.BloodTestDocument | None:
        return session.get(models.BloodTestDocument, document_id)

    def list_for_user(self, session: Session, user_id: str) -> list[models.BloodTestDocument]:
        stmt = (
            select(models.BloodTestDocument)
            .where(models.BloodTestDocument.user_id == user_id)
            .order_by(models.BloodTestDocument.created_at.desc())
        )
        return list(session.execute(stmt).scalars())

    def update(
        self,
        session: Session,
        *,
        document_id: str,
        form_data: dict[str, Any] | None = None,
        status: str | None = None,
    ) -> models.BloodTestDocument | None:
        row = self.get(session, document_id)
        if row is None:
            return None
        if form_data is not None:
            row.form_data_json = _to_json(form_data)  # type: ignore[assignment]
        if status is not None:
            row.status = status  # type: ignore[assignment]
        row.updated_at = _normalize_datetime(_utc_now())  # type: ignore[assignment]
        session.flush()
        return row

    def delete(self, session: Session, document_id: str) -> bool:
        row = self.get(session, document_id)
        if row is None:
            return False
        session.delete(row)
        session.flush()
        return True

    def to_document_dict(self, row: models.BloodTestDocument) -> dict[str, Any]:
        return {
            "id": str(row.id),
            "user_id": str(row.user_id),
            "status": str(row.status),
            "created_at": row.created_at,
            "updated_at": row.updated_at,
            "form_data": _from_json(row.form_data_json),
        }
