from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from dispute_desk.core.time_utils import parse_timestamp
from dispute_desk.models.dispute import DisputeStatus


class DocumentSchema(BaseModel):
    """camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class Dispute(DocumentSchema):
    """
    Fully populated dispute value. Missing fields are normalized here once,
    so nothing downstream needs fallbacks.
    """
    id: str
    status: str = DisputeStatus.NEW.value

    order_number: Optional[str] = None
    nature_of_dispute: Optional[str] = None
    item_description: Optional[str] = None
    extra_details: Optional[str] = None

    user_id: Optional[str] = None
    user_name: Optional[str] = None
    user_email: Optional[str] = None

    document_url: Optional[str] = Field(default=None, alias="documentURL")

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None

    last_message: Optional[str] = None
    last_message_timestamp: Optional[datetime] = None

    @field_validator("status", mode="before")
    @classmethod
    def default_status(cls, v: Any) -> str:
        if isinstance(v, DisputeStatus):
            return v.value
        if v is None or (isinstance(v, str) and not v.strip()):
            return DisputeStatus.NEW.value
        return v

    @field_validator(
        "created_at", "updated_at", "resolved_at", "last_message_timestamp", mode="before"
    )
    @classmethod
    def coerce_timestamp(cls, v: Any) -> Optional[datetime]:
        # Unparsable values from other writers degrade to "absent"
        return parse_timestamp(v)

    @classmethod
    def from_record(cls, record: Any) -> "Dispute":
        return cls.model_validate(record, from_attributes=True)

    @property
    def is_recognized_status(self) -> bool:
        return self.status in DISPUTE_STATUSES


# Recognized workflow values, in dashboard display order
DISPUTE_STATUSES: List[str] = [s.value for s in DisputeStatus]


class DisputeDraft(DocumentSchema):
    """What the reporting client submits; the store assigns id and status."""
    order_number: Optional[str] = None
    nature_of_dispute: Optional[str] = None
    item_description: Optional[str] = None
    extra_details: Optional[str] = None
    user_id: Optional[str] = None
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    document_url: Optional[str] = Field(default=None, alias="documentURL")
    created_at: Optional[datetime] = None


class StatusUpdateRequest(DocumentSchema):
    status: str = Field(..., examples=["In Progress"])


class StatusChartPoint(DocumentSchema):
    name: str
    value: int


class MonthlyTrendPoint(DocumentSchema):
    month: str
    counts: Dict[str, int]


class DisputeStatistics(DocumentSchema):
    total_disputes: int
    status_counts: Dict[str, int]
    average_resolution_minutes: float


class DashboardSummary(DisputeStatistics):
    status_data: List[StatusChartPoint]
    trend_data: List[MonthlyTrendPoint]
    average_resolution_display: str
