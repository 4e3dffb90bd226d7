from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

RequisitionStatus = Literal["draft", "completed", "archived"]


class RequisitionCardDto(BaseModel):
    id: str
    user_id: str
    status: RequisitionStatus
    created_at: datetime
    updated_at: datetime
    form_data: dict[str, dict[str, Any]] = Field(default_factory=dict)


class RequisitionListItemDto(BaseModel):
    id: str
    status: RequisitionStatus
    created_at: datetime
    updated_at: datetime
    patient_name: str
    phn: str
    collection_date: str


class RequisitionUpdateRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    form_data: dict[str, dict[str, Any]] | None = None
    status: RequisitionStatus | None = None
