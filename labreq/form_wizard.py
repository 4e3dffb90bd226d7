"""Terminal walk-through of the requisition form.

Drives a :class:`RequisitionFormController` one step at a time: text fields
are read with ``typer.prompt``, test selections as a comma-separated list of
row numbers. A step is repeated until its validator passes, and the review
step asks for confirmation before submitting.
"""

from __future__ import annotations

import typer
from rich.console import Console
from rich.table import Table

from labreq.application.services.form_controller import RequisitionFormController, SubmitResult
from labreq.domain.models.requisition import STEP_SECTIONS, SectionSpec, any_selected, selected_tests


def parse_selection(raw: str, count: int) -> set[int]:
    """Turn ``"1, 4,7"`` into zero-based row indexes; an empty answer selects nothing."""
    indexes: set[int] = set()
    for token in raw.replace(" ", "").split(","):
        if not token:
            continue
        if not token.isdigit() or not 1 <= int(token) <= count:
            raise ValueError(f"'{token}' is not a number between 1 and {count}")
        indexes.add(int(token) - 1)
    return indexes


def run_form(controller: RequisitionFormController, console: Console) -> SubmitResult | None:
    """Prompt through every step, then submit. Returns ``None`` when the user declines to submit."""
    while not controller.is_last_step:
        console.print(
            f"\n[bold]Step {controller.step_index + 1} of {len(STEP_SECTIONS)}: "
            f"{controller.current_step_label}[/bold]"
        )
        for section in STEP_SECTIONS[controller.current_step]:
            _prompt_section(controller, section, console)
        errors = controller.advance()
        for message in errors:
            console.print(f"[red]{message}[/red]")

    _print_review(controller, console)
    if not typer.confirm("Submit this requisition?", default=True):
        return None
    return controller.submit()


def _prompt_section(controller: RequisitionFormController, section: SectionSpec, console: Console) -> None:
    values = controller.record[section.key]
    if section.test_keys:
        _prompt_tests(controller, section, console)
        if not any_selected(values, section):
            return
    for key in section.text_keys:
        answer = typer.prompt(section.leaf(key).label, default=values[key], show_default=bool(values[key]))
        controller.set_field(section.key, key, answer.strip())


def _prompt_tests(controller: RequisitionFormController, section: SectionSpec, console: Console) -> None:
    values = controller.record[section.key]
    table = Table(title=section.title, show_header=False, box=None)
    table.add_column("#", justify="right", style="cyan")
    table.add_column("Test")
    table.add_column("", style="green")
    for number, key in enumerate(section.test_keys, start=1):
        table.add_row(str(number), section.leaf(key).label, "x" if values[key] else "")
    console.print(table)

    current = ",".join(str(number) for number, key in enumerate(section.test_keys, start=1) if values[key])
    while True:
        raw = typer.prompt("Select tests (numbers, comma separated)", default=current, show_default=bool(current))
        try:
            chosen = parse_selection(raw, len(section.test_keys))
        except ValueError as exc:
            console.print(f"[red]{exc}[/red]")
            continue
        break
    controller.update_section(
        section.key,
        {key: index in chosen for index, key in enumerate(section.test_keys)},
    )


def _print_review(controller: RequisitionFormController, console: Console) -> None:
    patient = controller.record["patientInfo"]
    console.print(f"\n[bold]Review[/bold]  {patient['lastName']}, {patient['firstName']}  PHN: {patient['phn']}")
    for title, lines in selected_tests(controller.record).items():
        console.print(f"[bold cyan]{title}[/bold cyan]: " + "; ".join(lines))
