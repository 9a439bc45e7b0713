import uuid
from sqlalchemy import Column, String, Boolean, DateTime

from dispute_desk.db.base import Base
from dispute_desk.core.time_utils import get_utc_now

# Marker key written once the first support account exists
INITIAL_SETUP_KEY = "initialSetup"


class SupportUser(Base):
    __tablename__ = "support_users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    display_name = Column(String(255), nullable=True)
    role = Column(String(32), default="support", nullable=False)

    is_active = Column(Boolean, default=True, nullable=False)
    last_login_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=get_utc_now, nullable=False)


class SetupMarker(Base):
    __tablename__ = "setup_markers"

    key = Column(String(64), primary_key=True)
    created_at = Column(DateTime(timezone=True), default=get_utc_now, nullable=False)


class RevokedToken(Base):
    __tablename__ = "revoked_tokens"

    jti = Column(String(36), primary_key=True)
    user_id = Column(String(36), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    revoked_at = Column(DateTime(timezone=True), default=get_utc_now, nullable=False)
