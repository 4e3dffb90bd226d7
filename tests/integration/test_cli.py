from __future__ import annotations

from pathlib import Path

import pytest
from rich.console import Console
from typer.testing import CliRunner

from labreq import main
from labreq.application.services.requisition_service import RequisitionService
from labreq.container import Container
from labreq.infrastructure.db.repositories.requisition_repo import RequisitionRepository

runner = CliRunner()


@pytest.fixture
def service(session_factory, connectivity, monkeypatch) -> RequisitionService:
    repo = RequisitionRepository()
    service = RequisitionService(repo=repo, session_factory=session_factory, connectivity=connectivity)
    container = Container(requisition_repo=repo, requisition_service=service)
    monkeypatch.setattr(main, "_container", lambda: container)
    monkeypatch.setattr(main, "console", Console(width=200))
    return service


def test_list_shows_user_requisitions(service, valid_record) -> None:
    card = service.create_requisition("user-1", valid_record)

    result = runner.invoke(main.app, ["list", "--user", "user-1"])

    assert result.exit_code == 0
    assert card.id in result.output
    assert "Doe, Jane" in result.output


def test_list_empty(service) -> None:
    result = runner.invoke(main.app, ["list", "--user", "nobody"])

    assert result.exit_code == 0
    assert "No requisitions found" in result.output


def test_show_prints_selected_tests(service, valid_record) -> None:
    card = service.create_requisition("user-1", valid_record)

    result = runner.invoke(main.app, ["show", card.id])

    assert result.exit_code == 0
    assert "HEMATOLOGY" in result.output
    assert "CBC & diff" in result.output
    assert "Source/Site: Throat" in result.output


def test_show_missing_exits_with_error(service) -> None:
    result = runner.invoke(main.app, ["show", "missing"])

    assert result.exit_code == 1
    assert "Blood test not found" in result.output


def test_status_and_delete(service, valid_record) -> None:
    card = service.create_requisition("user-1", valid_record)

    result = runner.invoke(main.app, ["status", card.id, "completed"])
    assert result.exit_code == 0
    assert service.get_requisition(card.id).status == "completed"

    result = runner.invoke(main.app, ["status", card.id, "lost"])
    assert result.exit_code == 1

    result = runner.invoke(main.app, ["delete", card.id])
    assert result.exit_code == 0
    result = runner.invoke(main.app, ["delete", card.id])
    assert result.exit_code == 1


def test_export_pdf_to_directory(service, valid_record, tmp_path: Path) -> None:
    card = service.create_requisition("user-1", valid_record)

    result = runner.invoke(main.app, ["export-pdf", card.id, "--out", str(tmp_path)])

    assert result.exit_code == 0
    files = list(tmp_path.glob("SHA-requisition-*.pdf"))
    assert len(files) == 1


def test_container_builds_new_and_edit_forms(session_factory, connectivity, valid_record) -> None:
    repo = RequisitionRepository()
    service = RequisitionService(repo=repo, session_factory=session_factory, connectivity=connectivity)
    container = Container(requisition_repo=repo, requisition_service=service)
    card = service.create_requisition("user-1", valid_record)

    new_form = container.new_form("user-1")
    edit_form = container.edit_form("user-1", card.id)

    assert not new_form.is_edit_mode
    assert edit_form is not None
    assert edit_form.is_edit_mode
    assert edit_form.record == valid_record
    assert container.edit_form("user-1", "missing") is None


_NEW_FORM_ANSWERS = [
    # patient and physician
    "Downtown Clinic",
    "9876543210",
    "C-1042",
    "Doe",
    "Jane",
    "2024-03-05",
    "08:30",
    "Alan",
    "Grant",
    # therapeutic drugs: digoxin with dosage and time
    "2",
    "0.125 mg",
    "2024-03-04 20:00",
    # hematology: CBC & diff
    "2",
    # chemistry: nothing picked first, then electrolytes and no weight
    "",
    "1",
    "",
    "3",  # lipids
    "7",  # biochemistry: ALT
    "1",  # prenatal
    "1",  # urine tests
    "",  # 24-hour collection
    "3",  # hepatitis C
    # microbiology: throat swab
    "8",
    "Throat",
    "",
    "",
]


def _answers(lines: list[str]) -> str:
    return "\n".join(lines) + "\n"


def test_new_walks_every_step_and_saves(service, valid_record) -> None:
    result = runner.invoke(main.app, ["new", "--user", "user-1"], input=_answers([*_NEW_FORM_ANSWERS, "y"]))

    assert result.exit_code == 0, result.output
    assert "Please select at least one chemistry test" in result.output
    cards = service.list_requisitions("user-1")
    assert len(cards) == 1
    assert cards[0].status == "draft"
    assert cards[0].form_data == valid_record
    assert f"Saved {cards[0].id}" in result.output


def test_new_reprompts_on_bad_selection(service) -> None:
    answers = list(_NEW_FORM_ANSWERS)
    answers.insert(answers.index("2"), "99")

    result = runner.invoke(main.app, ["new", "--user", "user-1"], input=_answers([*answers, "y"]))

    assert result.exit_code == 0, result.output
    assert "'99' is not a number between 1 and 10" in result.output
    assert len(service.list_requisitions("user-1")) == 1


def test_new_declined_at_review_saves_nothing(service) -> None:
    result = runner.invoke(main.app, ["new", "--user", "user-1"], input=_answers([*_NEW_FORM_ANSWERS, "n"]))

    assert result.exit_code == 1
    assert "Requisition not saved" in result.output
    assert service.list_requisitions("user-1") == []


def test_edit_keeps_answers_and_updates_changes(service, valid_record) -> None:
    card = service.create_requisition("user-1", valid_record)
    answers = [""] * 9  # patient and physician unchanged
    answers += ["", "", ""]  # therapeutic drugs, dosage, time
    answers += ["2,6"]  # hematology: add PT (INR)
    answers += ["", ""]  # chemistry and weight
    answers += ["", "", "", "", "", ""]  # lipids .. hepatitis, 24-hour collection
    answers += ["", "", "", ""]  # microbiology and its sources
    answers += ["y"]

    result = runner.invoke(main.app, ["edit", card.id, "--user", "user-1"], input=_answers(answers))

    assert result.exit_code == 0, result.output
    cards = service.list_requisitions("user-1")
    assert [stored.id for stored in cards] == [card.id]
    expected = dict(valid_record)
    expected["hematology"] = {**valid_record["hematology"], "ptInr": True}
    assert cards[0].form_data == expected


def test_edit_missing_exits_with_error(service) -> None:
    result = runner.invoke(main.app, ["edit", "missing", "--user", "user-1"])

    assert result.exit_code == 1
    assert "Blood test not found" in result.output
