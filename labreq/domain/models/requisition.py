from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

REQUISITION_STATUS_DRAFT = "draft"
REQUISITION_STATUS_COMPLETED = "completed"
REQUISITION_STATUS_ARCHIVED = "archived"
REQUISITION_STATUSES = (
    REQUISITION_STATUS_DRAFT,
    REQUISITION_STATUS_COMPLETED,
    REQUISITION_STATUS_ARCHIVED,
)

Requisition = dict[str, dict[str, Any]]


@dataclass(frozen=True, slots=True)
class LeafSpec:
    key: str
    label: str
    kind: type = bool

    @property
    def default(self) -> bool | str:
        return False if self.kind is bool else ""


@dataclass(frozen=True, slots=True)
class SectionSpec:
    key: str
    title: str
    leaves: tuple[LeafSpec, ...]

    @property
    def test_keys(self) -> tuple[str, ...]:
        return tuple(leaf.key for leaf in self.leaves if leaf.kind is bool)

    @property
    def text_keys(self) -> tuple[str, ...]:
        return tuple(leaf.key for leaf in self.leaves if leaf.kind is str)

    def leaf(self, key: str) -> LeafSpec:
        for leaf in self.leaves:
            if leaf.key == key:
                return leaf
        raise KeyError(f"{self.key}.{key}")


def _tests(*pairs: tuple[str, str]) -> tuple[LeafSpec, ...]:
    return tuple(LeafSpec(key, label, bool) for key, label in pairs)


def _texts(*pairs: tuple[str, str]) -> tuple[LeafSpec, ...]:
    return tuple(LeafSpec(key, label, str) for key, label in pairs)


PATIENT_INFO = SectionSpec(
    "patientInfo",
    "PATIENT INFORMATION",
    _texts(
        ("clinicName", "Clinic name"),
        ("phn", "PHN"),
        ("chartNumber", "Chart #"),
        ("lastName", "Last name"),
        ("firstName", "First name"),
        ("collectionDate", "Collection Date"),
        ("collectionTime", "Collection Time"),
    ),
)

REQUESTING_PHYSICIAN = SectionSpec(
    "requestingPhysician",
    "REQUESTING PHYSICIAN",
    _texts(("firstName", "First name"), ("lastName", "Last name")),
)

THERAPEUTIC_DRUGS = SectionSpec(
    "therapeuticDrugs",
    "THERAPEUTIC DRUGS",
    _tests(
        ("carbz", "Carbamazepine (Tegretol)"),
        ("digi", "Digoxin"),
        ("lith", "Lithium"),
        ("phenb", "Phenobarbital"),
        ("ptny", "Phenytoin (Dilantin)"),
        ("valpr", "Valproic Acid (Epival)"),
        ("cycl", "Cyclosporin - Pre"),
        ("cy2", "Cyclosporin - Post"),
        ("tacr", "Tacrolimus - Pre"),
        ("siro", "Sirolimus - Pre"),
    )
    + _texts(("dosage", "Dosage"), ("dateTime", "Date/Time")),
)

HEMATOLOGY = SectionSpec(
    "hematology",
    "HEMATOLOGY",
    _tests(
        ("cbc", "CBC"),
        ("cbcDiff", "CBC & diff"),
        ("reticulocyteCount", "Reticulocyte Count"),
        ("dDimer", "D-Dimer"),
        ("fibrinogenLevel", "Fibrinogen Level"),
        ("ptInr", "PT (INR)"),
        ("pttAptt", "PTT (APTT)"),
    ),
)

CHEMISTRY = SectionSpec(
    "chemistry",
    "CHEMISTRY",
    _tests(
        ("lyte4", "Electrolytes - Na, K, Cl, CO2"),
        ("creat", "Creatinine + eGFR"),
        ("urea", "Urea"),
        ("glucr", "Glucose - Random"),
        ("glucf", "Glucose - FASTING"),
        ("hma1c", "Hemoglobin A1C"),
        ("crcle", "Est. Creatinine Clearance"),
    )
    + _texts(("weight", "Weight (kg)")),
)

LIPIDS = SectionSpec(
    "lipids",
    "LIPIDS",
    _tests(
        ("trig", "Triglyceride - FASTING"),
        ("chol", "Cholesterol - Total - FASTING"),
        ("lipid", "Chol, Trig, HDL, LDL - FASTING"),
        ("ges1h", "Gestational Challenge (50g) - Non Fasting"),
        ("ges2h", "Gestational Tolerance (75g) - FASTING"),
        ("gtt2h", "Glucose Tolerance (75g) - FASTING"),
    ),
)

BIOCHEMISTRY = SectionSpec(
    "biochemistry",
    "BIOCHEMISTRY",
    _tests(
        ("alb", "Albumin"),
        ("ca", "Calcium"),
        ("phos", "Phosphate"),
        ("mg", "Magnesium"),
        ("uric", "Uric Acid"),
        ("alp", "Alkaline Phosphatase"),
        ("alt", "Alanine Aminotransferase"),
        ("ast", "Aspartate Aminotransferase"),
        ("ck", "CK - Total"),
        ("ld", "Lactate Dehydrogenase"),
        ("lip", "Lipase"),
        ("ggt", "Gamma Glutamyltransferase"),
        ("bilt", "Bilirubin - Total"),
        ("bilfr", "Bilirubin - Fractionation"),
        ("bhcg", "BHCG (Quantitative - Level)"),
        ("ironb", "Iron and Total Iron Binding Capacity"),
        ("fer", "Ferritin"),
        ("psa", "Prostate Specific Antigen"),
        ("thysa", "Thyroid Stimulating Hormone"),
        ("frt4", "Free T4 (Free Thyroxine)"),
        ("atpa", "Thyroid Peroxidase Antibody"),
        ("fshlh", "Follicle Stimulating Hormone/Luteinizing Hormone"),
        ("ediol", "Estradiol"),
        ("prge", "Progesterone"),
        ("prl", "Prolactin"),
        ("waser", "Syphilis"),
        ("hiv", "HIV"),
        ("crph", "C-Reactive Protein-HS"),
        ("rhf", "Rheumatoid Factor"),
        ("tnths", "Troponin T HS"),
        ("tp", "Total Protein"),
        ("pes", "Serum Protein Electrophoresis"),
        ("fitOccult", "Fecal Immunochemical Test (FIT) for Occult Blood"),
    ),
)

PRENATAL = SectionSpec(
    "prenatal",
    "PRENATAL",
    _tests(
        ("preim", "Prenatal Screen"),
        ("pblgp", "Prenatal Group and Screen"),
        ("paternalTest", "Prenatal Group*, Phenotyping (Paternal Testing)"),
    ),
)

URINE_TESTS = SectionSpec(
    "urineTests",
    "URINE TESTS",
    _tests(
        ("ua", "Voided Urinalysis"),
        ("catheterizedUrinalysis", "Catheterized Urinalysis"),
        ("hcgu", "HCG - Urine"),
        ("clgp", "Urine for Chlamydia and G.C. - First stream"),
        ("albcr", "Random Albumin/Creatinine Ratio (Microalbumin)"),
    ),
)

URINE_COLLECTION = SectionSpec(
    "urineCollection",
    "24-HOUR URINE COLLECTION",
    _texts(
        ("startDate", "Start Date"),
        ("startTime", "Start Time"),
        ("endDate", "End Date"),
        ("endTime", "End Time"),
    )
    + _tests(
        ("caud", "Calcium"),
        ("creud", "Creatinine"),
        ("crcl", "Creatinine Clearance"),
        ("crclc", "Creatinine Clearance (BSA Corrected)"),
        ("po4ud", "Phosphate"),
        ("tpud", "Protein"),
        ("peu", "Protein Electrophoresis"),
        ("nakud", "Sodium / Potassium"),
        ("ureud", "Urea"),
        ("uraud", "Uric Acid"),
    )
    + _texts(("height", "Height (cm)"), ("weight", "Weight (kg)")),
)

HEPATITIS = SectionSpec(
    "hepatitis",
    "HEPATITIS & VIRAL SEROLOGY",
    _tests(
        ("heppa", "Acute viral hepatitis undefined etiology"),
        ("hbchb", "Hepatitis B (Hep B S Ab, Hep B S Ag, Hep Bc Tot Ab)"),
        ("hcab", "Hepatitis C (Hep C Ab)"),
        ("haabt", "Hepatitis A (Hep A Total Ab)"),
        ("hbabs", "Hepatitis B (Hep B S Ab)"),
        ("cmva", "Acute CMV (CMV IgM)"),
        ("cmvi", "Chronic or Past Exposure to CMV (CMV IgG)"),
    ),
)

MICROBIOLOGY = SectionSpec(
    "microbiology",
    "MICROBIOLOGY",
    _tests(
        ("bloodCultureCAndS", "Blood Culture - C & S"),
        ("cervixSwabGC", "Cervix Swab - G.C."),
        ("sputumCAndS", "Sputum - C & S"),
        ("sputumTBAfb", "Sputum - TB/AFB"),
        ("stoolCAndS", "Stool - C & S"),
        ("stoolOAndP", "Stool - O & P"),
        ("stoolCDiff", "Stool - CDIFF"),
        ("throatCAndS", "Throat - C & S"),
        ("urethralSwabGC", "Urethral Swab - G.C."),
        ("urineCatheterCAndS", "Urine - Catheter - C & S"),
        ("urineCatheterYeast", "Urine - Catheter - YEAST"),
        ("urineMidstreamCAndS", "Urine - Midstream - C & S"),
        ("urineMidstreamYeast", "Urine - Midstream - YEAST"),
        ("vaginalBV", "Vaginal - BV"),
        ("vaginalTrich", "Vaginal - TRICH"),
        ("groupBStrep", "VAG/Rectal Swab - GROUP B STREP - PREGNANCY ONLY"),
    )
    + _texts(("source", "Source/Site"), ("source2", "Source/Site 2"), ("otherTests", "Other Tests")),
)

SECTIONS: tuple[SectionSpec, ...] = (
    PATIENT_INFO,
    REQUESTING_PHYSICIAN,
    THERAPEUTIC_DRUGS,
    HEMATOLOGY,
    CHEMISTRY,
    LIPIDS,
    BIOCHEMISTRY,
    PRENATAL,
    URINE_TESTS,
    URINE_COLLECTION,
    HEPATITIS,
    MICROBIOLOGY,
)
SECTIONS_BY_KEY: dict[str, SectionSpec] = {section.key: section for section in SECTIONS}

# Panels printed and summarized, in form order.
PANEL_SECTIONS: tuple[SectionSpec, ...] = SECTIONS[2:]

STEP_PATIENT_INFO = "patientInfo"
STEP_REVIEW = "review"

FORM_STEPS: tuple[tuple[str, str], ...] = (
    (STEP_PATIENT_INFO, "Patient Information"),
    ("therapeuticDrugs", "Therapeutic Drugs"),
    ("hematology", "Hematology"),
    ("chemistry", "Chemistry"),
    ("lipids", "Lipids"),
    ("biochemistry", "Biochemistry"),
    ("prenatal", "Prenatal"),
    ("urineTests", "Urine Tests"),
    ("hepatitis", "Hepatitis"),
    ("microbiology", "Microbiology"),
    (STEP_REVIEW, "Review"),
)
FORM_STEP_IDS: tuple[str, ...] = tuple(step_id for step_id, _label in FORM_STEPS)

# Sections edited on each step; the urine step also covers the 24-hour collection.
STEP_SECTIONS: dict[str, tuple[SectionSpec, ...]] = {
    STEP_PATIENT_INFO: (PATIENT_INFO, REQUESTING_PHYSICIAN),
    "therapeuticDrugs": (THERAPEUTIC_DRUGS,),
    "hematology": (HEMATOLOGY,),
    "chemistry": (CHEMISTRY,),
    "lipids": (LIPIDS,),
    "biochemistry": (BIOCHEMISTRY,),
    "prenatal": (PRENATAL,),
    "urineTests": (URINE_TESTS, URINE_COLLECTION),
    "hepatitis": (HEPATITIS,),
    "microbiology": (MICROBIOLOGY,),
    STEP_REVIEW: (),
}


def get_section(key: str) -> SectionSpec:
    try:
        return SECTIONS_BY_KEY[key]
    except KeyError:
        raise KeyError(f"Unknown requisition section: {key}") from None


def default_requisition() -> Requisition:
    return {section.key: {leaf.key: leaf.default for leaf in section.leaves} for section in SECTIONS}


def normalize_requisition(raw: Mapping[str, Any] | None) -> Requisition:
    """Return a complete record built from ``raw``.

    Only leaves declared in ``SECTIONS`` are kept. Absent or null leaves take
    their default value, so the result never misses a key regardless of which
    revision of the form wrote the stored document.
    """
    raw = raw or {}
    result: Requisition = {}
    for section in SECTIONS:
        source = raw.get(section.key)
        if not isinstance(source, Mapping):
            source = {}
        result[section.key] = {leaf.key: coerce_leaf(leaf, source.get(leaf.key)) for leaf in section.leaves}
    return result


def coerce_leaf(leaf: LeafSpec, value: object) -> bool | str:
    if leaf.kind is bool:
        return _as_bool(value)
    if value is None:
        return ""
    return str(value)


def any_selected(section_data: Mapping[str, Any], section: SectionSpec) -> bool:
    return any(section_data.get(key) is True for key in section.test_keys)


def selected_tests(record: Mapping[str, Any]) -> dict[str, list[str]]:
    """Checked test labels per panel title, with the panel's filled-in details."""
    data = normalize_requisition(record)
    summary: dict[str, list[str]] = {}
    for section in PANEL_SECTIONS:
        section_data = data[section.key]
        lines = [section.leaf(key).label for key in section.test_keys if section_data[key]]
        for key in section.text_keys:
            value = str(section_data[key]).strip()
            if value:
                lines.append(f"{section.leaf(key).label}: {value}")
        if lines:
            summary[section.title] = lines
    return summary


def _as_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, float)):
        return bool(value)
    return str(value).strip().lower() in {"1", "true", "yes", "on"}
