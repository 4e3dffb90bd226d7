from __future__ import annotations

import pytest

from labreq.domain.models.requisition import (
    FORM_STEP_IDS,
    MICROBIOLOGY,
    PANEL_SECTIONS,
    SECTIONS,
    STEP_SECTIONS,
    default_requisition,
    get_section,
    normalize_requisition,
    selected_tests,
)


def test_default_requisition_has_every_leaf_at_default() -> None:
    record = default_requisition()

    assert list(record) == [section.key for section in SECTIONS]
    for section in SECTIONS:
        for leaf in section.leaves:
            expected = False if leaf.kind is bool else ""
            assert record[section.key][leaf.key] == expected


def test_default_requisition_returns_independent_copies() -> None:
    first = default_requisition()
    first["hematology"]["cbc"] = True

    assert default_requisition()["hematology"]["cbc"] is False


def test_normalize_fills_missing_microbiology_keys() -> None:
    raw = {"microbiology": {"sputumCAndS": True, "source": "Sputum"}}

    record = normalize_requisition(raw)

    assert set(record["microbiology"]) == {leaf.key for leaf in MICROBIOLOGY.leaves}
    assert record["microbiology"]["sputumCAndS"] is True
    assert record["microbiology"]["source"] == "Sputum"
    assert record["microbiology"]["stoolCDiff"] is False
    assert record["microbiology"]["otherTests"] == ""


def test_normalize_drops_unknown_keys_and_coerces_types() -> None:
    raw = {
        "hematology": {"cbc": "true", "legacyFlag": True},
        "chemistry": {"weight": 72, "crcle": 1},
        "patientInfo": {"phn": None},
        "obsoleteSection": {"x": True},
    }

    record = normalize_requisition(raw)

    assert "obsoleteSection" not in record
    assert "legacyFlag" not in record["hematology"]
    assert record["hematology"]["cbc"] is True
    assert record["chemistry"]["weight"] == "72"
    assert record["chemistry"]["crcle"] is True
    assert record["patientInfo"]["phn"] == ""


def test_normalize_accepts_none() -> None:
    assert normalize_requisition(None) == default_requisition()


def test_get_section_unknown_key() -> None:
    with pytest.raises(KeyError, match="Unknown requisition section"):
        get_section("radiology")


def test_leaf_lookup_unknown_key() -> None:
    with pytest.raises(KeyError):
        get_section("hematology").leaf("mri")


def test_form_steps_cover_every_panel_in_order() -> None:
    assert FORM_STEP_IDS[0] == "patientInfo"
    assert FORM_STEP_IDS[-1] == "review"
    assert len(FORM_STEP_IDS) == 11
    assert [section.key for section in PANEL_SECTIONS] == [
        "therapeuticDrugs",
        "hematology",
        "chemistry",
        "lipids",
        "biochemistry",
        "prenatal",
        "urineTests",
        "urineCollection",
        "hepatitis",
        "microbiology",
    ]


def test_selected_tests_lists_checked_labels_and_details() -> None:
    record = default_requisition()
    record["hematology"]["cbcDiff"] = True
    record["chemistry"].update(crcle=True, weight="70")
    record["microbiology"].update(throatCAndS=True, source="Throat")

    summary = selected_tests(record)

    assert summary == {
        "HEMATOLOGY": ["CBC & diff"],
        "CHEMISTRY": ["Est. Creatinine Clearance", "Weight (kg): 70"],
        "MICROBIOLOGY": ["Throat - C & S", "Source/Site: Throat"],
    }


def test_selected_tests_empty_for_default_record() -> None:
    assert selected_tests(default_requisition()) == {}


def test_step_sections_cover_every_section_once() -> None:
    assert tuple(STEP_SECTIONS) == FORM_STEP_IDS
    covered = [section.key for sections in STEP_SECTIONS.values() for section in sections]
    assert sorted(covered) == sorted(section.key for section in SECTIONS)
