from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import pytest

from labreq.application.dto.requisition_dto import RequisitionCardDto, RequisitionUpdateRequest
from labreq.application.errors import AppError, PersistenceError
from labreq.application.services.form_controller import (
    FORM_STATUS_EDITING,
    FORM_STATUS_ERROR,
    FORM_STATUS_SUBMITTED,
    RequisitionFormController,
)


class FakeService:
    def __init__(self, *, fail_with: Exception | None = None) -> None:
        self.fail_with = fail_with
        self.created: list[tuple[str, dict[str, Any]]] = []
        self.updated: list[tuple[str, RequisitionUpdateRequest]] = []

    def _card(self, card_id: str, user_id: str, form_data: dict[str, Any]) -> RequisitionCardDto:
        now = datetime(2024, 3, 5, 9, 0, tzinfo=UTC)
        return RequisitionCardDto(
            id=card_id,
            user_id=user_id,
            status="draft",
            created_at=now,
            updated_at=now,
            form_data=form_data,
        )

    def create_requisition(self, user_id: str, form_data: dict[str, Any]) -> RequisitionCardDto:
        self.created.append((user_id, form_data))
        if self.fail_with is not None:
            raise self.fail_with
        return self._card("req-1", user_id, form_data)

    def update_requisition(self, requisition_id: str, request: RequisitionUpdateRequest) -> RequisitionCardDto:
        self.updated.append((requisition_id, request))
        if self.fail_with is not None:
            raise self.fail_with
        return self._card(requisition_id, "user-1", request.form_data or {})


def _fill_patient_info(controller: RequisitionFormController) -> None:
    controller.update_section(
        "patientInfo",
        {
            "clinicName": "North Clinic",
            "phn": "1234567890",
            "chartNumber": "77",
            "lastName": "Smith",
            "firstName": "John",
            "collectionDate": "2024-01-15",
        },
    )
    controller.update_section("requestingPhysician", {"firstName": "Ann", "lastName": "Lee"})


def test_new_form_starts_on_patient_info() -> None:
    controller = RequisitionFormController(FakeService(), "user-1")

    assert controller.current_step == "patientInfo"
    assert controller.current_step_label == "Patient Information"
    assert controller.status == FORM_STATUS_EDITING
    assert not controller.is_edit_mode
    assert controller.progress == pytest.approx(100 / 11)


def test_advance_is_blocked_by_step_errors() -> None:
    controller = RequisitionFormController(FakeService(), "user-1")

    errors = controller.advance()

    assert "Clinic Name is required" in errors
    assert controller.errors == errors
    assert controller.current_step == "patientInfo"


def test_advance_and_retreat_move_one_step() -> None:
    controller = RequisitionFormController(FakeService(), "user-1")
    _fill_patient_info(controller)

    assert controller.advance() == []
    assert controller.current_step == "therapeuticDrugs"

    assert controller.advance() == ["Please select at least one therapeutic drug test"]
    assert controller.retreat() is True
    assert controller.current_step == "patientInfo"
    assert controller.errors == []
    assert controller.retreat() is False


def test_retreat_keeps_entered_data() -> None:
    controller = RequisitionFormController(FakeService(), "user-1")
    _fill_patient_info(controller)
    controller.advance()
    controller.set_field("therapeuticDrugs", "lith", True)

    controller.retreat()

    assert controller.record["therapeuticDrugs"]["lith"] is True
    assert controller.record["patientInfo"]["phn"] == "1234567890"


def test_advance_stays_on_review(valid_record) -> None:
    controller = RequisitionFormController(FakeService(), "user-1", form_data=valid_record)
    for _ in range(20):
        assert controller.advance() == []

    assert controller.is_last_step
    assert controller.current_step == "review"
    assert controller.progress == pytest.approx(100)


def test_set_field_rejects_unknown_leaf_and_wrong_type() -> None:
    controller = RequisitionFormController(FakeService(), "user-1")

    with pytest.raises(KeyError):
        controller.set_field("hematology", "mri", True)
    with pytest.raises(KeyError):
        controller.set_field("radiology", "xray", True)
    with pytest.raises(TypeError):
        controller.set_field("hematology", "cbc", "yes")


def test_submit_creates_once_and_locks_form(valid_record) -> None:
    service = FakeService()
    controller = RequisitionFormController(service, "user-1", form_data=valid_record)

    result = controller.submit()

    assert result.ok
    assert result.card is not None
    assert controller.status == FORM_STATUS_SUBMITTED
    assert controller.card_id == "req-1"
    assert service.created == [("user-1", valid_record)]

    again = controller.submit()
    assert not again.ok
    assert again.errors == ["Blood test has already been submitted"]
    assert len(service.created) == 1

    with pytest.raises(AppError):
        controller.set_field("hematology", "cbc", True)


def test_submit_with_invalid_record_does_not_call_service() -> None:
    service = FakeService()
    controller = RequisitionFormController(service, "user-1")

    result = controller.submit()

    assert not result.ok
    assert "Clinic Name is required" in result.errors
    assert controller.status == FORM_STATUS_EDITING
    assert service.created == []


def test_submit_requires_signed_in_user(valid_record) -> None:
    service = FakeService()
    controller = RequisitionFormController(service, None, form_data=valid_record)

    result = controller.submit()

    assert result.errors == ["You must be logged in to create a blood test"]
    assert controller.status == FORM_STATUS_EDITING
    assert service.created == []


def test_submit_in_edit_mode_requires_user_for_update(valid_record) -> None:
    controller = RequisitionFormController(FakeService(), "", form_data=valid_record, card_id="req-9")

    result = controller.submit()

    assert result.errors == ["You must be logged in to update a blood test"]


def test_submit_in_edit_mode_updates_existing(valid_record) -> None:
    service = FakeService()
    controller = RequisitionFormController(service, "user-1", form_data=valid_record, card_id="req-9")

    result = controller.submit()

    assert result.ok
    assert service.created == []
    assert [requisition_id for requisition_id, _request in service.updated] == ["req-9"]
    assert service.updated[0][1].form_data == valid_record


def test_persistence_failure_keeps_record_and_allows_retry(valid_record) -> None:
    service = FakeService(fail_with=PersistenceError("Failed to create blood test after 3 attempts: boom"))
    controller = RequisitionFormController(service, "user-1", form_data=valid_record)

    result = controller.submit()

    assert not result.ok
    assert controller.status == FORM_STATUS_ERROR
    assert controller.error_message == "Failed to create blood test after 3 attempts: boom"
    assert controller.record == valid_record

    service.fail_with = None
    retry = controller.submit()
    assert retry.ok
    assert controller.status == FORM_STATUS_SUBMITTED
    assert len(service.created) == 2
