from __future__ import annotations

import os
import shutil
from collections.abc import Generator
from pathlib import Path
from typing import Any
from uuid import uuid4

import pytest

os.environ.setdefault("LABREQ_DATA_DIR", str(Path("pytest_artifacts") / "data"))

from labreq.domain.models.requisition import Requisition, default_requisition  # noqa: E402
from labreq.infrastructure.db.engine import get_engine  # noqa: E402
from labreq.infrastructure.db.models_sqlalchemy import Base  # noqa: E402
from labreq.infrastructure.db.session import SessionScope, build_session_scope  # noqa: E402


@pytest.fixture
def tmp_path() -> Generator[Path, None, None]:
    base = Path("pytest_artifacts")
    base.mkdir(parents=True, exist_ok=True)
    path = base / uuid4().hex
    path.mkdir(parents=True, exist_ok=True)
    try:
        yield path
    finally:
        shutil.rmtree(path, ignore_errors=True)


def make_session_factory(db_path: Path) -> SessionScope:
    engine = get_engine(f"sqlite:///{db_path.as_posix()}", echo=False)
    Base.metadata.create_all(engine)
    return build_session_scope(engine)


@pytest.fixture
def session_factory(tmp_path: Path) -> SessionScope:
    return make_session_factory(tmp_path / "labreq.db")


class FakeConnectivity:
    def __init__(self) -> None:
        self.enabled = 0
        self.disabled = 0

    def enable(self) -> None:
        self.enabled += 1

    def disable(self) -> None:
        self.disabled += 1


@pytest.fixture
def connectivity() -> FakeConnectivity:
    return FakeConnectivity()


def build_valid_record(**overrides: dict[str, Any]) -> Requisition:
    record = default_requisition()
    record["patientInfo"].update(
        clinicName="Downtown Clinic",
        phn="9876543210",
        chartNumber="C-1042",
        lastName="Doe",
        firstName="Jane",
        collectionDate="2024-03-05",
        collectionTime="08:30",
    )
    record["requestingPhysician"].update(firstName="Alan", lastName="Grant")
    record["therapeuticDrugs"].update(digi=True, dosage="0.125 mg", dateTime="2024-03-04 20:00")
    record["hematology"]["cbcDiff"] = True
    record["chemistry"]["lyte4"] = True
    record["lipids"]["lipid"] = True
    record["biochemistry"]["alt"] = True
    record["prenatal"]["preim"] = True
    record["urineTests"]["ua"] = True
    record["hepatitis"]["hcab"] = True
    record["microbiology"].update(throatCAndS=True, source="Throat")
    for section_key, values in overrides.items():
        record[section_key].update(values)
    return record


@pytest.fixture
def valid_record() -> Requisition:
    return build_valid_record()
