"""
Dispute Report Model - one row per customer-reported dispute (`disputeReports`).

Rows are written by the reporting client; this service only changes
`status`, the timestamps that go with it, and the denormalized
last-message fields.
"""

import uuid
import enum
from sqlalchemy import Column, String, Integer, DateTime, Text

from dispute_desk.db.base import Base
from dispute_desk.core.time_utils import get_utc_now


class DisputeStatus(str, enum.Enum):
    NEW = 'New'
    OPEN = 'Open'
    IN_PROGRESS = 'In Progress'
    RESOLVED = 'Resolved'
    ESCALATED = 'Escalated'


class DisputeReport(Base):
    __tablename__ = "dispute_reports"

    # Insertion order; the live dispute list is ordered by it
    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(36), unique=True, nullable=False, index=True, default=lambda: str(uuid.uuid4()))

    # Stored as plain text: documents written by other clients may carry no status
    status = Column(String(32), nullable=True, index=True)

    order_number = Column(String(64), nullable=True)
    nature_of_dispute = Column(String(255), nullable=True)
    item_description = Column(Text, nullable=True)
    extra_details = Column(Text, nullable=True)

    # Reporter identity (denormalized)
    user_id = Column(String(128), nullable=True, index=True)
    user_name = Column(String(255), nullable=True)
    user_email = Column(String(255), nullable=True)

    document_url = Column(String(1024), nullable=True)

    created_at = Column(DateTime(timezone=True), default=get_utc_now, nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)

    last_message = Column(Text, nullable=True)
    last_message_timestamp = Column(DateTime(timezone=True), nullable=True)
