from __future__ import annotations

import logging
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

from sqlalchemy.exc import DisconnectionError, SQLAlchemyError

from labreq.application.dto.requisition_dto import (
    RequisitionCardDto,
    RequisitionListItemDto,
    RequisitionUpdateRequest,
)
from labreq.application.errors import NotFoundError, PersistenceError
from labreq.config import settings
from labreq.domain.models.requisition import REQUISITION_STATUS_DRAFT, normalize_requisition
from labreq.domain.rules.requisition_rules import merge_requisition, validate_status
from labreq.infrastructure.db.connectivity import Connectivity, EngineConnectivity
from labreq.infrastructure.db.repositories.requisition_repo import RequisitionRepository
from labreq.infrastructure.db.session import engine, session_scope
from labreq.infrastructure.diagnostics import log_event
from labreq.infrastructure.reporting.requisition_pdf_report import (
    export_requisition_pdf,
    requisition_filename,
)

logger = logging.getLogger(__name__)


def is_network_error(exc: BaseException) -> bool:
    if isinstance(exc, DisconnectionError):
        return True
    if getattr(exc, "connection_invalidated", False):
        return True
    return "network" in str(exc).lower()


class RequisitionService:
    def __init__(
        self,
        repo: RequisitionRepository | None = None,
        session_factory: Callable = session_scope,
        connectivity: Connectivity | None = None,
        *,
        max_attempts: int | None = None,
        retry_delay_seconds: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
        renderer: Callable[..., None] = export_requisition_pdf,
    ) -> None:
        self.repo = repo or RequisitionRepository()
        self.session_factory = session_factory
        self.connectivity = connectivity or EngineConnectivity(engine)
        self.max_attempts = max_attempts or settings.create_max_attempts
        self.retry_delay_seconds = (
            settings.create_retry_delay_seconds if retry_delay_seconds is None else retry_delay_seconds
        )
        self.sleep = sleep
        self.renderer = renderer

    def create_requisition(self, user_id: str, form_data: dict[str, Any] | None) -> RequisitionCardDto:
        if not str(user_id or "").strip():
            raise ValueError("User ID is required")
        if form_data is None:
            raise ValueError("Form data is required")
        payload = normalize_requisition(form_data)

        last_error: Exception | None = None
        for attempt in range(1, self.max_attempts + 1):
            log_event(logger, logging.DEBUG, "requisition.create.attempt", attempt=attempt, user_id=user_id)
            self._enable_connectivity()
            try:
                document_id = self._write_document(user_id, payload)
                card = self._verify_document(document_id)
            except (SQLAlchemyError, PersistenceError, OSError) as exc:
                last_error = exc
                log_event(
                    logger,
                    logging.WARNING,
                    "requisition.create.failed",
                    attempt=attempt,
                    max_attempts=self.max_attempts,
                    error=str(exc),
                )
                if is_network_error(exc):
                    self._reset_connectivity()
                if attempt < self.max_attempts:
                    wait_seconds = self.retry_delay_seconds * 2 ** (attempt - 1)
                    log_event(logger, logging.INFO, "requisition.create.retry", wait_seconds=wait_seconds)
                    self.sleep(wait_seconds)
                continue
            log_event(logger, logging.INFO, "requisition.created", id=card.id, user_id=user_id, attempt=attempt)
            return card

        log_event(logger, logging.ERROR, "requisition.create.exhausted", attempts=self.max_attempts)
        raise PersistenceError(
            f"Failed to create blood test after {self.max_attempts} attempts: {last_error}"
        ) from last_error

    def get_requisition(self, requisition_id: str) -> RequisitionCardDto | None:
        if not requisition_id:
            raise ValueError("Blood test ID is required")
        try:
            with self.session_factory() as session:
                row = self.repo.get(session, requisition_id)
                if row is None:
                    log_event(logger, logging.INFO, "requisition.not_found", id=requisition_id)
                    return None
                payload = self.repo.to_document_dict(row)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to fetch blood test: {exc}") from exc
        return _to_card(payload)

    def list_requisitions(self, user_id: str) -> list[RequisitionCardDto]:
        if not str(user_id or "").strip():
            raise ValueError("User ID is required")
        try:
            with self.session_factory() as session:
                payloads = [self.repo.to_document_dict(row) for row in self.repo.list_for_user(session, user_id)]
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to fetch blood tests: {exc}") from exc
        log_event(logger, logging.DEBUG, "requisition.listed", user_id=user_id, count=len(payloads))
        return [_to_card(payload) for payload in payloads]

    def list_requisition_items(self, user_id: str) -> list[RequisitionListItemDto]:
        items: list[RequisitionListItemDto] = []
        for card in self.list_requisitions(user_id):
            patient = card.form_data["patientInfo"]
            items.append(
                RequisitionListItemDto(
                    id=card.id,
                    status=card.status,
                    created_at=card.created_at,
                    updated_at=card.updated_at,
                    patient_name=", ".join(
                        part for part in (patient["lastName"], patient["firstName"]) if part
                    ),
                    phn=patient["phn"],
                    collection_date=patient["collectionDate"],
                )
            )
        return items

    def update_requisition(self, requisition_id: str, request: RequisitionUpdateRequest) -> RequisitionCardDto:
        if request.status is not None:
            validate_status(request.status)
        try:
            with self.session_factory() as session:
                row = self.repo.get(session, requisition_id)
                if row is None:
                    raise NotFoundError("Blood test not found")
                form_data = None
                if request.form_data is not None:
                    current = self.repo.to_document_dict(row)["form_data"]
                    form_data = merge_requisition(current, request.form_data)
                row = self.repo.update(
                    session,
                    document_id=requisition_id,
                    form_data=form_data,
                    status=request.status,
                )
                if row is None:
                    raise NotFoundError("Blood test not found after update")
                payload = self.repo.to_document_dict(row)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to update blood test: {exc}") from exc
        log_event(logger, logging.INFO, "requisition.updated", id=requisition_id, status=payload["status"])
        return _to_card(payload)

    def delete_requisition(self, requisition_id: str) -> None:
        if not requisition_id:
            raise ValueError("Blood test ID is required")
        try:
            with self.session_factory() as session:
                if not self.repo.delete(session, requisition_id):
                    raise NotFoundError("Blood test not found")
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to delete blood test: {exc}") from exc
        log_event(logger, logging.INFO, "requisition.deleted", id=requisition_id)

    def export_pdf(self, requisition_id: str, directory: str | Path | None = None) -> Path:
        card = self.get_requisition(requisition_id)
        if card is None:
            raise NotFoundError("Blood test not found")
        target_dir = Path(directory) if directory is not None else settings.export_dir
        file_path = target_dir / requisition_filename(card.created_at)
        self.renderer(card=card.model_dump(), file_path=file_path)
        log_event(logger, logging.INFO, "requisition.exported", id=requisition_id, path=str(file_path))
        return file_path

    def _write_document(self, user_id: str, payload: dict[str, Any]) -> str:
        with self.session_factory() as session:
            row = self.repo.create(
                session,
                user_id=user_id,
                form_data=payload,
                status=REQUISITION_STATUS_DRAFT,
            )
            return str(row.id)

    def _verify_document(self, document_id: str) -> RequisitionCardDto:
        with self.session_factory() as session:
            row = self.repo.get(session, document_id)
            if row is None:
                raise PersistenceError("Failed to verify document creation")
            payload = self.repo.to_document_dict(row)
        return _to_card(payload)

    def _enable_connectivity(self) -> None:
        try:
            self.connectivity.enable()
        except Exception as exc:  # noqa: BLE001
            log_event(logger, logging.WARNING, "connectivity.enable_failed", error=str(exc))

    def _reset_connectivity(self) -> None:
        log_event(logger, logging.INFO, "connectivity.reset")
        try:
            self.connectivity.disable()
            self.connectivity.enable()
        except Exception as exc:  # noqa: BLE001
            log_event(logger, logging.WARNING, "connectivity.reset_failed", error=str(exc))


def _to_card(payload: dict[str, Any]) -> RequisitionCardDto:
    payload = dict(payload)
    payload["form_data"] = normalize_requisition(payload.get("form_data"))
    return RequisitionCardDto.model_validate(payload)
