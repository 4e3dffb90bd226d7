from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from labreq.domain.models.requisition import (
    BIOCHEMISTRY,
    CHEMISTRY,
    FORM_STEP_IDS,
    HEMATOLOGY,
    HEPATITIS,
    LIPIDS,
    MICROBIOLOGY,
    PRENATAL,
    REQUISITION_STATUSES,
    THERAPEUTIC_DRUGS,
    URINE_COLLECTION,
    URINE_TESTS,
    Requisition,
    SectionSpec,
    any_selected,
    normalize_requisition,
)

StepValidator = Callable[[Requisition], list[str]]

_PATIENT_REQUIRED: tuple[tuple[str, str, str], ...] = (
    ("patientInfo", "clinicName", "Clinic Name is required"),
    ("patientInfo", "phn", "PHN is required"),
    ("patientInfo", "chartNumber", "Chart Number is required"),
    ("patientInfo", "lastName", "Last Name is required"),
    ("patientInfo", "firstName", "First Name is required"),
    ("patientInfo", "collectionDate", "Collection Date is required"),
    ("requestingPhysician", "firstName", "Physician First Name is required"),
    ("requestingPhysician", "lastName", "Physician Last Name is required"),
)

_COLLECTION_PERIOD_REQUIRED: tuple[tuple[str, str], ...] = (
    ("startDate", "Collection Start Date is required"),
    ("startTime", "Collection Start Time is required"),
    ("endDate", "Collection End Date is required"),
    ("endTime", "Collection End Time is required"),
)


def validate_patient_info(record: Mapping[str, Any]) -> list[str]:
    data = normalize_requisition(record)
    return [message for section, key, message in _PATIENT_REQUIRED if _blank(data[section][key])]


def validate_therapeutic_drugs(record: Mapping[str, Any]) -> list[str]:
    return _require_selection(record, THERAPEUTIC_DRUGS, "therapeutic drug")


def validate_hematology(record: Mapping[str, Any]) -> list[str]:
    return _require_selection(record, HEMATOLOGY, "hematology")


def validate_chemistry(record: Mapping[str, Any]) -> list[str]:
    data = normalize_requisition(record)
    errors = _require_selection(data, CHEMISTRY, "chemistry")
    chemistry = data[CHEMISTRY.key]
    if chemistry["crcle"] and _blank(chemistry["weight"]):
        errors.append("Weight is required when Creatinine Clearance is selected")
    return errors


def validate_lipids(record: Mapping[str, Any]) -> list[str]:
    return _require_selection(record, LIPIDS, "lipids")


def validate_biochemistry(record: Mapping[str, Any]) -> list[str]:
    return _require_selection(record, BIOCHEMISTRY, "biochemistry")


def validate_prenatal(record: Mapping[str, Any]) -> list[str]:
    return _require_selection(record, PRENATAL, "prenatal")


def validate_urine(record: Mapping[str, Any]) -> list[str]:
    data = normalize_requisition(record)
    collection = data[URINE_COLLECTION.key]
    has_urine_tests = any_selected(data[URINE_TESTS.key], URINE_TESTS)
    has_collection = any_selected(collection, URINE_COLLECTION)

    errors: list[str] = []
    if not has_urine_tests and not has_collection:
        errors.append("Please select at least one urine test or collection test")
    if has_collection:
        errors.extend(message for key, message in _COLLECTION_PERIOD_REQUIRED if _blank(collection[key]))
        if collection["crclc"]:
            if _blank(collection["height"]):
                errors.append("Height is required for BSA Corrected")
            if _blank(collection["weight"]):
                errors.append("Weight is required for BSA Corrected")
    return errors


def validate_hepatitis(record: Mapping[str, Any]) -> list[str]:
    return _require_selection(record, HEPATITIS, "hepatitis")


def validate_microbiology(record: Mapping[str, Any]) -> list[str]:
    data = normalize_requisition(record)
    microbiology = data[MICROBIOLOGY.key]
    if not any_selected(microbiology, MICROBIOLOGY):
        return ["Please select at least one microbiology test"]
    if _blank(microbiology["source"]):
        return ["Source/Site is required when selecting microbiology tests"]
    return []


def validate_review(_record: Mapping[str, Any]) -> list[str]:
    return []


STEP_VALIDATORS: dict[str, StepValidator] = {
    "patientInfo": validate_patient_info,
    "therapeuticDrugs": validate_therapeutic_drugs,
    "hematology": validate_hematology,
    "chemistry": validate_chemistry,
    "lipids": validate_lipids,
    "biochemistry": validate_biochemistry,
    "prenatal": validate_prenatal,
    "urineTests": validate_urine,
    "hepatitis": validate_hepatitis,
    "microbiology": validate_microbiology,
    "review": validate_review,
}


def validate_step(step_id: str, record: Mapping[str, Any]) -> list[str]:
    try:
        validator = STEP_VALIDATORS[step_id]
    except KeyError:
        raise ValueError(f"Unknown form step: {step_id}") from None
    return validator(record)


def validate_requisition(record: Mapping[str, Any]) -> list[str]:
    errors: list[str] = []
    for step_id in FORM_STEP_IDS:
        errors.extend(validate_step(step_id, record))
    return errors


def validate_status(status: str) -> None:
    if status not in REQUISITION_STATUSES:
        allowed = ", ".join(REQUISITION_STATUSES)
        raise ValueError(f"Invalid status '{status}'; expected one of: {allowed}")


def merge_requisition(current: Mapping[str, Any], changes: Mapping[str, Any]) -> Requisition:
    """Apply section-wise ``changes`` on top of ``current``; untouched leaves are kept."""
    merged = normalize_requisition(current)
    for section_key, section_changes in changes.items():
        if section_key not in merged or not isinstance(section_changes, Mapping):
            continue
        merged[section_key].update(section_changes)
    return normalize_requisition(merged)


def _require_selection(record: Mapping[str, Any], section: SectionSpec, noun: str) -> list[str]:
    data = normalize_requisition(record)
    if any_selected(data[section.key], section):
        return []
    return [f"Please select at least one {noun} test"]


def _blank(value: object) -> bool:
    return not str(value or "").strip()
