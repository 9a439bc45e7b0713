"""
Dispute Message Model - chat between customer and support (`disputeChats/{id}/messages`).
"""

import uuid
from sqlalchemy import Column, String, Integer, DateTime, Text, JSON

from dispute_desk.db.base import Base


class DisputeMessage(Base):
    __tablename__ = "dispute_messages"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(36), unique=True, nullable=False, default=lambda: str(uuid.uuid4()))
    # No foreign key: messages outlive their dispute and may arrive before it syncs
    dispute_id = Column(String(36), nullable=False, index=True)

    sender_id = Column(String(128), nullable=False)
    sender_role = Column(String(16), nullable=False)  # 'user' or 'support'
    sender_name = Column(String(255), nullable=True)
    message = Column(Text, nullable=True)

    # Attachments: List of {url, type, name}
    attachments = Column(JSON, default=list)

    timestamp = Column(DateTime(timezone=True), nullable=True, index=True)
