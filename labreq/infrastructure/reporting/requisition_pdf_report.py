from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from io import BytesIO
from pathlib import Path
from typing import Any

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

from labreq.application.errors import RenderError
from labreq.domain.models.requisition import (
    CHEMISTRY,
    MICROBIOLOGY,
    PANEL_SECTIONS,
    THERAPEUTIC_DRUGS,
    URINE_COLLECTION,
    Requisition,
    SectionSpec,
    normalize_requisition,
)
from labreq.infrastructure.reporting.pdf_fonts import get_pdf_font_names

# Layout units are millimetres measured from the top-left corner of the page.
PAGE_WIDTH = 210.0
PAGE_HEIGHT = 297.0
MARGIN = 15.0
LEFT = MARGIN + 5
ROW_HEIGHT = 6.0
PATIENT_ROW_HEIGHT = 8.0
TITLE_HEIGHT = 8.0
SECTION_GAP = 8.0
SECTION_MIN_SPACE = 50.0
ROW_MIN_SPACE = 8.0
CHECKBOX_SIZE = 3.0
BODY_FONT_SIZE = 10
TITLE_FONT_SIZE = 11
FOOTER_FONT_SIZE = 8


@dataclass(frozen=True, slots=True)
class TextOp:
    x: float
    y: float
    text: str
    size: float = BODY_FONT_SIZE
    bold: bool = False
    align: str = "left"


@dataclass(frozen=True, slots=True)
class CheckboxOp:
    x: float
    y: float
    checked: bool


@dataclass(slots=True)
class PageLayout:
    number: int
    ops: list[TextOp | CheckboxOp] = field(default_factory=list)

    def texts(self) -> list[str]:
        return [op.text for op in self.ops if isinstance(op, TextOp)]


class PageBuilder:
    def __init__(self) -> None:
        self.pages: list[PageLayout] = [PageLayout(number=1)]
        self.y = MARGIN

    @property
    def page(self) -> PageLayout:
        return self.pages[-1]

    def fits(self, space: float) -> bool:
        return self.y + space <= PAGE_HEIGHT - MARGIN

    def new_page(self) -> None:
        self.pages.append(PageLayout(number=len(self.pages) + 1))
        self.y = MARGIN

    def text(self, x: float, text: str, **kwargs: Any) -> None:
        self.page.ops.append(TextOp(x=x, y=self.y, text=text, **kwargs))

    def checkbox_row(self, label: str, checked: bool) -> None:
        self.page.ops.append(CheckboxOp(x=LEFT, y=self.y, checked=checked))
        self.text(LEFT + CHECKBOX_SIZE + 2, label)

    def title(self, text: str) -> None:
        self.text(LEFT, text, size=TITLE_FONT_SIZE, bold=True)
        self.y += TITLE_HEIGHT

    def start_section(self, title: str) -> None:
        self.y += SECTION_GAP
        if not self.fits(SECTION_MIN_SPACE):
            self.new_page()
        self.title(title)

    def start_row(self, title: str) -> None:
        if not self.fits(ROW_MIN_SPACE):
            self.new_page()
            self.title(f"{title} (continued)")


def requisition_filename(created_at: datetime) -> str:
    return f"SHA-requisition-{created_at.strftime('%Y-%m-%d-%H%M')}.pdf"


def layout_requisition(card: Mapping[str, Any]) -> list[PageLayout]:
    """Place every element of the paper requisition on A4 pages.

    Pure and deterministic: the same card always yields the same pages and
    coordinates. Every panel lists all of its tests, checked or not.
    """
    data = normalize_requisition(card.get("form_data"))
    builder = PageBuilder()
    _patient_block(builder, data)
    for section in PANEL_SECTIONS:
        _panel_block(builder, section, data)
    _footers(builder.pages, data)
    return builder.pages


def export_requisition_pdf(*, card: Mapping[str, Any] | None, file_path: str | Path) -> None:
    if not card or not isinstance(card.get("form_data"), Mapping):
        raise RenderError("Test data is required")
    pages = layout_requisition(card)

    buffer = BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=A4, invariant=1)
    pdf.setTitle(f"Blood test requisition {card.get('id', '')}")
    regular_font, bold_font = get_pdf_font_names()
    for page in pages:
        for op in page.ops:
            if isinstance(op, CheckboxOp):
                _draw_checkbox(pdf, op)
            else:
                _draw_text(pdf, op, font=bold_font if op.bold else regular_font)
        pdf.showPage()
    pdf.save()

    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    file_path.write_bytes(buffer.getvalue())


def _patient_block(builder: PageBuilder, data: Requisition) -> None:
    patient = data["patientInfo"]
    physician = data["requestingPhysician"]

    builder.text(LEFT, "Clinic name:")
    builder.text(LEFT + 25, patient["clinicName"])
    builder.y += PATIENT_ROW_HEIGHT

    builder.text(LEFT, "PHN:")
    builder.text(LEFT + 25, patient["phn"])
    builder.text(LEFT + 75, "Chart #:")
    builder.text(LEFT + 95, patient["chartNumber"])
    builder.y += PATIENT_ROW_HEIGHT

    builder.text(LEFT, "Name:")
    builder.text(LEFT + 25, _full_name(patient))
    builder.y += PATIENT_ROW_HEIGHT

    builder.text(LEFT, "Collection Date:")
    builder.text(LEFT + 35, patient["collectionDate"])
    builder.text(LEFT + 75, "Time:")
    builder.text(LEFT + 90, patient["collectionTime"])
    builder.y += PATIENT_ROW_HEIGHT

    builder.text(LEFT, "Requesting Physician:")
    builder.text(LEFT + 45, _full_name(physician))
    builder.y += PATIENT_ROW_HEIGHT - 1


def _panel_block(builder: PageBuilder, section: SectionSpec, data: Requisition) -> None:
    values = data[section.key]
    builder.start_section(section.title)

    if section is URINE_COLLECTION:
        _collection_period(builder, values)

    for key in section.test_keys:
        builder.start_row(section.title)
        checked = bool(values[key])
        builder.checkbox_row(section.leaf(key).label, checked)
        if section is THERAPEUTIC_DRUGS and checked:
            builder.text(LEFT + 95, "Dosage:")
            builder.text(LEFT + 115, values["dosage"])
            builder.text(LEFT + 145, "Time:")
            builder.text(LEFT + 160, values["dateTime"])
        builder.y += ROW_HEIGHT

    if section is CHEMISTRY and values["weight"]:
        builder.start_row(section.title)
        builder.text(LEFT, f"Weight (kg): {values['weight']}")
        builder.y += ROW_HEIGHT
    elif section is URINE_COLLECTION and values["crclc"]:
        builder.y += 4
        builder.start_row(section.title)
        builder.text(LEFT, "Height (cm):")
        builder.text(LEFT + 25, values["height"])
        builder.text(LEFT + 75, "Weight (kg):")
        builder.text(LEFT + 100, values["weight"])
        builder.y += PATIENT_ROW_HEIGHT
    elif section is MICROBIOLOGY:
        _microbiology_details(builder, values)


def _collection_period(builder: PageBuilder, values: Mapping[str, Any]) -> None:
    builder.start_row(URINE_COLLECTION.title)
    builder.text(LEFT, "Collection Period:")
    builder.y += ROW_HEIGHT
    for label, date_key, time_key in (("Start:", "startDate", "startTime"), ("End:", "endDate", "endTime")):
        builder.start_row(URINE_COLLECTION.title)
        builder.text(LEFT, label)
        builder.text(LEFT + 15, f"Date: {values[date_key]}")
        builder.text(LEFT + 75, f"Time: {values[time_key]}")
        builder.y += ROW_HEIGHT
    builder.y += 2


def _microbiology_details(builder: PageBuilder, values: Mapping[str, Any]) -> None:
    details = [
        (label, values[key], offset)
        for label, key, offset in (
            ("Source:", "source", 20),
            ("Source 2:", "source2", 20),
            ("Other Tests:", "otherTests", 30),
        )
        if values[key]
    ]
    if not details:
        return
    builder.y += 4
    for label, value, offset in details:
        builder.start_row(MICROBIOLOGY.title)
        builder.text(LEFT, label)
        builder.text(LEFT + offset, value)
        builder.y += ROW_HEIGHT


def _footers(pages: list[PageLayout], data: Requisition) -> None:
    patient = data["patientInfo"]
    collection_info = f"Collection Date: {patient['collectionDate']} Time: {patient['collectionTime']}"
    total = len(pages)
    for page in pages:
        page.ops.append(TextOp(x=MARGIN, y=PAGE_HEIGHT - 12, text=collection_info, size=FOOTER_FONT_SIZE))
        page.ops.append(
            TextOp(
                x=PAGE_WIDTH - MARGIN,
                y=PAGE_HEIGHT - 5,
                text=f"Page {page.number} of {total}",
                size=FOOTER_FONT_SIZE,
                align="right",
            )
        )


def _draw_text(pdf: canvas.Canvas, op: TextOp, *, font: str) -> None:
    if not op.text:
        return
    pdf.setFont(font, op.size)
    x = op.x * mm
    y = (PAGE_HEIGHT - op.y) * mm
    if op.align == "right":
        pdf.drawRightString(x, y, op.text)
    else:
        pdf.drawString(x, y, op.text)


def _draw_checkbox(pdf: canvas.Canvas, op: CheckboxOp) -> None:
    size = CHECKBOX_SIZE
    pdf.setLineWidth(0.2 * mm)
    pdf.rect(op.x * mm, (PAGE_HEIGHT - op.y) * mm, size * mm, size * mm)
    if not op.checked:
        return
    pdf.setLineWidth(0.3 * mm)
    top = PAGE_HEIGHT - (op.y - size + 0.5)
    bottom = PAGE_HEIGHT - (op.y - 0.5)
    left = op.x + 0.5
    right = op.x + size - 0.5
    pdf.line(left * mm, top * mm, right * mm, bottom * mm)
    pdf.line(left * mm, bottom * mm, right * mm, top * mm)


def _full_name(person: Mapping[str, Any]) -> str:
    return ", ".join(part for part in (person["lastName"], person["firstName"]) if part)
