from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Annotated, NoReturn, Optional

import typer
from rich.console import Console
from rich.table import Table

from labreq.application.dto.requisition_dto import RequisitionUpdateRequest
from labreq.application.errors import AppError
from labreq.application.services.form_controller import RequisitionFormController
from labreq.bootstrap.startup import initialize_database
from labreq.config import LOG_DIR, settings
from labreq.container import Container, build_container
from labreq.domain.models.requisition import REQUISITION_STATUSES, selected_tests
from labreq.form_wizard import run_form

app = typer.Typer(
    name="labreq",
    help="Blood test requisitions: store, review and print lab requisition forms.",
    no_args_is_help=True,
)
console = Console()

_logging_configured = False


def setup_logging() -> Path:
    global _logging_configured
    log_path = LOG_DIR / "app.log"
    if _logging_configured:
        return log_path
    handler = RotatingFileHandler(log_path, maxBytes=2_000_000, backupCount=3, encoding="utf-8")
    formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.INFO)
    root_logger.addHandler(handler)
    _logging_configured = True
    return log_path


def _ensure_database() -> None:
    setup_logging()
    if not initialize_database(database_url=settings.database_url, log_dir=LOG_DIR):
        console.print(f"[red]Database initialization failed.[/red] See {LOG_DIR / 'migration_error.log'}")
        raise typer.Exit(1)


def _container() -> Container:
    _ensure_database()
    return build_container()


def _fail(exc: Exception) -> NoReturn:
    console.print(f"[red]Error:[/red] {exc}")
    raise typer.Exit(1)


@app.command("init-db")
def init_db() -> None:
    """Create or upgrade the requisition database."""
    _ensure_database()
    console.print(f"[green]Database ready:[/green] {settings.database_url}")


@app.command("new")
def new(
    user: Annotated[str, typer.Option("--user", "-u", help="Owner user ID")],
) -> None:
    """Fill in a new requisition step by step and save it."""
    container = _container()
    _complete_form(container.new_form(user))


@app.command("edit")
def edit(
    requisition_id: Annotated[str, typer.Argument(help="Requisition ID")],
    user: Annotated[str, typer.Option("--user", "-u", help="Editing user ID")],
) -> None:
    """Walk through a stored requisition, changing answers where needed, and save it."""
    container = _container()
    try:
        controller = container.edit_form(user, requisition_id)
    except (AppError, ValueError) as exc:
        _fail(exc)
    if controller is None:
        _fail(AppError("Blood test not found"))
    _complete_form(controller)


def _complete_form(controller: RequisitionFormController) -> None:
    result = run_form(controller, console)
    if result is None:
        console.print("[yellow]Requisition not saved.[/yellow]")
        raise typer.Exit(1)
    if not result.ok or result.card is None:
        for message in result.errors:
            console.print(f"[red]{message}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Saved[/green] {result.card.id}")


@app.command("list")
def list_requisitions(
    user: Annotated[str, typer.Option("--user", "-u", help="Owner user ID")],
) -> None:
    """List a user's requisitions, newest first."""
    container = _container()
    try:
        items = container.requisition_service.list_requisition_items(user)
    except (AppError, ValueError) as exc:
        _fail(exc)

    if not items:
        console.print("[dim]No requisitions found.[/dim]")
        return

    table = Table(title=f"Requisitions for {user}")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Status")
    table.add_column("Patient")
    table.add_column("PHN")
    table.add_column("Collection date")
    table.add_column("Created", style="dim")
    for item in items:
        table.add_row(
            item.id,
            item.status,
            item.patient_name or "-",
            item.phn or "-",
            item.collection_date or "-",
            item.created_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


@app.command("show")
def show(requisition_id: Annotated[str, typer.Argument(help="Requisition ID")]) -> None:
    """Print a requisition summary with its selected tests."""
    container = _container()
    try:
        card = container.requisition_service.get_requisition(requisition_id)
    except (AppError, ValueError) as exc:
        _fail(exc)
    if card is None:
        _fail(AppError("Blood test not found"))

    patient = card.form_data["patientInfo"]
    physician = card.form_data["requestingPhysician"]
    console.print(f"[bold]Requisition {card.id}[/bold] ({card.status})")
    console.print(f"  Patient: {patient['lastName']}, {patient['firstName']}  PHN: {patient['phn']}")
    console.print(f"  Collected: {patient['collectionDate']} {patient['collectionTime']}")
    console.print(f"  Physician: {physician['lastName']}, {physician['firstName']}")

    selections = selected_tests(card.form_data)
    if not selections:
        console.print("[dim]No tests selected.[/dim]")
        return
    for title, lines in selections.items():
        console.print(f"\n[bold cyan]{title}[/bold cyan]")
        for line in lines:
            console.print(f"  - {line}")


@app.command("export-pdf")
def export_pdf(
    requisition_id: Annotated[str, typer.Argument(help="Requisition ID")],
    out: Annotated[Optional[Path], typer.Option("--out", "-o", help="Output directory")] = None,
) -> None:
    """Render the printable requisition PDF."""
    container = _container()
    try:
        path = container.requisition_service.export_pdf(requisition_id, out)
    except (AppError, ValueError) as exc:
        _fail(exc)
    console.print(f"[green]Saved[/green] {path}")


@app.command("delete")
def delete(requisition_id: Annotated[str, typer.Argument(help="Requisition ID")]) -> None:
    """Delete a requisition."""
    container = _container()
    try:
        container.requisition_service.delete_requisition(requisition_id)
    except (AppError, ValueError) as exc:
        _fail(exc)
    console.print(f"[green]Deleted[/green] {requisition_id}")


@app.command("status")
def set_status(
    requisition_id: Annotated[str, typer.Argument(help="Requisition ID")],
    status: Annotated[str, typer.Argument(help=f"One of: {', '.join(REQUISITION_STATUSES)}")],
) -> None:
    """Change the lifecycle status of a requisition."""
    container = _container()
    try:
        card = container.requisition_service.update_requisition(
            requisition_id,
            RequisitionUpdateRequest(status=status),
        )
    except (AppError, ValueError) as exc:
        _fail(exc)
    console.print(f"[green]Updated[/green] {card.id}: {card.status}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
