from datetime import datetime
from typing import Any, Literal

from pydantic import Field, model_validator

from alumni_api.schemas.alumni import CamelModel
from alumni_api.services.workflow import compute_changes

UpdateRequestStatus = Literal["pending", "approved", "rejected"]
UpdateRequestStatusFilter = Literal["pending", "approved", "rejected", "all"]


class UpdateRequestCreate(CamelModel):
    # Loosely typed on purpose; the service reports missing fields as 400.
    roll_number: Any = None
    old_data: Any = None
    new_data: Any = None


class UpdateRequestCreated(CamelModel):
    success: bool = True
    message: str
    request_id: str


class FieldChangeOut(CamelModel):
    old: Any = None
    new: Any = None


class UpdateRequestOut(CamelModel):
    id: str
    roll_number: str
    old_data: dict[str, Any] = Field(default_factory=dict)
    new_data: dict[str, Any] = Field(default_factory=dict)
    changes: dict[str, FieldChangeOut] = Field(default_factory=dict)
    status: UpdateRequestStatus
    submitted_at: datetime
    reviewed_at: datetime | None = None
    reviewed_by: str | None = None
    notes: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _derive_changes(cls, data: Any) -> Any:
        if isinstance(data, dict) and "changes" not in data:
            old_data = data.get("old_data") or {}
            new_data = data.get("new_data") or {}
            data = {**data, "changes": compute_changes(old_data, new_data)}
        return data


class UpdateRequestPage(CamelModel):
    data: list[UpdateRequestOut] = Field(default_factory=list)
    page: int
    limit: int
    total_count: int
    has_more: bool


class ReviewDecisionRequest(CamelModel):
    notes: str | None = None


class ApproveResponse(CamelModel):
    success: bool = True
    message: str
    alumni: dict[str, Any]


class RejectResponse(CamelModel):
    success: bool = True
    message: str
