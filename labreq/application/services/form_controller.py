from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from labreq.application.dto.requisition_dto import RequisitionCardDto, RequisitionUpdateRequest
from labreq.application.errors import AppError, AuthenticationError, RequisitionValidationError
from labreq.domain.models.requisition import (
    FORM_STEPS,
    Requisition,
    default_requisition,
    get_section,
    normalize_requisition,
)
from labreq.domain.rules.requisition_rules import validate_requisition, validate_step
from labreq.infrastructure.diagnostics import log_event

logger = logging.getLogger(__name__)

FORM_STATUS_EDITING = "editing"
FORM_STATUS_SUBMITTING = "submitting"
FORM_STATUS_SUBMITTED = "submitted"
FORM_STATUS_ERROR = "error"


class RequisitionWriter(Protocol):
    def create_requisition(self, user_id: str, form_data: dict[str, Any]) -> RequisitionCardDto: ...

    def update_requisition(self, requisition_id: str, request: RequisitionUpdateRequest) -> RequisitionCardDto: ...


@dataclass(slots=True)
class SubmitResult:
    ok: bool
    errors: list[str] = field(default_factory=list)
    card: RequisitionCardDto | None = None


class RequisitionFormController:
    """State of one requisition editing session.

    Holds the record being edited and the active step. Steps are strictly
    linear; leaving a step requires its validator to pass, going back is
    always allowed. ``submit`` persists through the service once and records
    the outcome in ``status``.
    """

    def __init__(
        self,
        service: RequisitionWriter,
        user_id: str | None,
        *,
        form_data: dict[str, Any] | None = None,
        card_id: str | None = None,
    ) -> None:
        self.service = service
        self.user_id = user_id
        self.card_id = card_id
        self.record: Requisition = (
            normalize_requisition(form_data) if form_data is not None else default_requisition()
        )
        self.step_index = 0
        self.status = FORM_STATUS_EDITING
        self.errors: list[str] = []
        self.error_message: str | None = None
        self.card: RequisitionCardDto | None = None

    @property
    def current_step(self) -> str:
        return FORM_STEPS[self.step_index][0]

    @property
    def current_step_label(self) -> str:
        return FORM_STEPS[self.step_index][1]

    @property
    def is_last_step(self) -> bool:
        return self.step_index == len(FORM_STEPS) - 1

    @property
    def progress(self) -> float:
        return (self.step_index + 1) / len(FORM_STEPS) * 100

    @property
    def is_edit_mode(self) -> bool:
        return self.card_id is not None

    def set_field(self, section_key: str, key: str, value: bool | str) -> None:
        self._ensure_editable()
        leaf = get_section(section_key).leaf(key)
        if not isinstance(value, leaf.kind):
            raise TypeError(f"{section_key}.{key} expects {leaf.kind.__name__}, got {type(value).__name__}")
        self.record[section_key][key] = value

    def update_section(self, section_key: str, values: dict[str, bool | str]) -> None:
        for key, value in values.items():
            self.set_field(section_key, key, value)

    def validate_current_step(self) -> list[str]:
        return validate_step(self.current_step, self.record)

    def advance(self) -> list[str]:
        errors = self.validate_current_step()
        self.errors = errors
        if errors:
            log_event(logger, logging.DEBUG, "form.step.blocked", step=self.current_step, errors=errors)
            return errors
        if not self.is_last_step:
            self.step_index += 1
        return []

    def retreat(self) -> bool:
        if self.step_index == 0:
            return False
        self.step_index -= 1
        self.errors = []
        return True

    def submit(self) -> SubmitResult:
        if self.status in {FORM_STATUS_SUBMITTING, FORM_STATUS_SUBMITTED}:
            return SubmitResult(ok=False, errors=["Blood test has already been submitted"], card=self.card)

        try:
            self._check_submittable()
        except RequisitionValidationError as exc:
            self.errors = list(exc.messages)
            return SubmitResult(ok=False, errors=list(exc.messages))
        except AuthenticationError as exc:
            self.errors = [str(exc)]
            return SubmitResult(ok=False, errors=[str(exc)])

        self.status = FORM_STATUS_SUBMITTING
        self.errors = []
        self.error_message = None
        try:
            card = self._persist()
        except AppError as exc:
            self.status = FORM_STATUS_ERROR
            self.error_message = str(exc)
            self.errors = [self.error_message]
            log_event(logger, logging.WARNING, "form.submit.failed", card_id=self.card_id, error=self.error_message)
            return SubmitResult(ok=False, errors=[self.error_message])

        self.status = FORM_STATUS_SUBMITTED
        self.card = card
        self.card_id = card.id
        log_event(logger, logging.INFO, "form.submitted", card_id=card.id)
        return SubmitResult(ok=True, card=card)

    def _check_submittable(self) -> None:
        errors = validate_requisition(self.record)
        if errors:
            raise RequisitionValidationError(errors)
        if not self.user_id:
            action = "update" if self.is_edit_mode else "create"
            raise AuthenticationError(f"You must be logged in to {action} a blood test")

    def _persist(self) -> RequisitionCardDto:
        form_data = normalize_requisition(self.record)
        if self.card_id is not None:
            return self.service.update_requisition(self.card_id, RequisitionUpdateRequest(form_data=form_data))
        return self.service.create_requisition(str(self.user_id), form_data)

    def _ensure_editable(self) -> None:
        if self.status in {FORM_STATUS_SUBMITTING, FORM_STATUS_SUBMITTED}:
            raise AppError("Blood test form is not editable while submitting or after submission")
