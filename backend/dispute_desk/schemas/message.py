import enum
from datetime import datetime
from typing import Any, List, Optional

from pydantic import Field, field_validator

from dispute_desk.core.time_utils import get_utc_now, parse_timestamp
from dispute_desk.schemas.dispute import DocumentSchema


class SenderRole(str, enum.Enum):
    USER = 'user'
    SUPPORT = 'support'


class Attachment(DocumentSchema):
    url: str
    type: str
    name: str


class Message(DocumentSchema):
    id: str
    dispute_id: str
    message: Optional[str] = None
    sender_id: str
    sender_role: SenderRole
    sender_name: Optional[str] = None
    timestamp: datetime = Field(default_factory=get_utc_now)
    attachments: List[Attachment] = Field(default_factory=list)

    @field_validator("timestamp", mode="before")
    @classmethod
    def default_timestamp(cls, v: Any) -> datetime:
        # Server timestamp may still be pending; fall back to read time
        return parse_timestamp(v) or get_utc_now()

    @field_validator("attachments", mode="before")
    @classmethod
    def default_attachments(cls, v: Any) -> list:
        return v or []

    @classmethod
    def from_record(cls, record: Any) -> "Message":
        return cls.model_validate(record, from_attributes=True)

    @property
    def first_attachment(self) -> Optional[Attachment]:
        return self.attachments[0] if self.attachments else None


class MessageDraft(DocumentSchema):
    sender_id: str
    message: Optional[str] = None
    sender_role: SenderRole = SenderRole.SUPPORT
    sender_name: Optional[str] = None
    attachments: List[Attachment] = Field(default_factory=list)

    @property
    def text(self) -> str:
        return (self.message or "").strip()

    def is_blank(self) -> bool:
        return not self.text and not self.attachments


class SendMessageRequest(DocumentSchema):
    """Body of POST /disputes/{id}/messages; the sender is the signed-in agent."""
    message: Optional[str] = Field(None, examples=["We have issued a refund."])
    attachments: List[Attachment] = Field(default_factory=list)
