"""
Message Repository - chat messages per dispute (`disputeChats/{id}/messages`)
and their attachments in blob storage.

Sending is two writes: the message itself (the delivery guarantee) and the
parent dispute's lastMessage/lastMessageTimestamp (best effort). A failure
of the second is logged and never rolls back the first.
"""

from typing import List

import structlog
from sqlalchemy import select, update

from dispute_desk.core.exceptions import EmptyMessage, NetworkError, UploadError
from dispute_desk.core.time_utils import get_utc_now
from dispute_desk.db.session import STORE_ERRORS
from dispute_desk.models.dispute import DisputeReport
from dispute_desk.models.message import DisputeMessage
from dispute_desk.schemas.message import Attachment, Message, MessageDraft
from dispute_desk.services.change_feed import DISPUTES_TOPIC, Subscription, messages_topic
from dispute_desk.services.context import ClientContext
from dispute_desk.services.storage_service import safe_filename

logger = structlog.get_logger()

ATTACHMENTS_PREFIX = "dispute_files"


def attachment_key(dispute_id: str, filename: str | None, uploaded_at_ms: int) -> str:
    """dispute_files/<dispute id>/<upload millis>_<original name>"""
    return f"{ATTACHMENTS_PREFIX}/{safe_filename(dispute_id)}/{uploaded_at_ms}_{safe_filename(filename)}"


def last_message_preview(message: Message) -> str:
    if message.message:
        return message.message
    return f"[attachment] {message.first_attachment.name}"


class MessageRepository:

    def __init__(self, context: ClientContext):
        self._sessions = context.session_factory
        self._feed = context.feed
        self._storage = context.storage
        self._max_attachment_bytes = context.settings.max_attachment_bytes

    async def fetch_all(self, dispute_id: str) -> List[Message]:
        """All messages of one dispute, oldest first."""
        stmt = (
            select(DisputeMessage)
            .where(DisputeMessage.dispute_id == dispute_id)
            # Pending timestamps read as "now", so they sort after every stamped message
            .order_by(DisputeMessage.timestamp.asc().nulls_last(), DisputeMessage.seq.asc())
        )
        try:
            async with self._sessions() as session:
                result = await session.execute(stmt)
                rows = result.scalars().all()
        except STORE_ERRORS as e:
            logger.error("message_fetch_failed", dispute_id=dispute_id, error=str(e))
            raise NetworkError("Failed to read messages") from e
        return [Message.from_record(row) for row in rows]

    def subscribe(self, dispute_id: str) -> Subscription[Message]:
        return Subscription(
            self._feed,
            messages_topic(dispute_id),
            lambda: self.fetch_all(dispute_id),
        )

    async def send(self, dispute_id: str, draft: MessageDraft) -> Message:
        if draft.is_blank():
            raise EmptyMessage()

        now = get_utc_now()
        row = DisputeMessage(
            dispute_id=dispute_id,
            sender_id=draft.sender_id,
            sender_role=draft.sender_role.value,
            sender_name=draft.sender_name,
            message=draft.text or None,
            attachments=[a.model_dump() for a in draft.attachments],
            timestamp=now,
        )
        try:
            async with self._sessions() as session:
                session.add(row)
                await session.commit()
                sent = Message.from_record(row)
        except STORE_ERRORS as e:
            logger.error("message_send_failed", dispute_id=dispute_id, error=str(e))
            raise NetworkError("Failed to send message") from e

        logger.info(
            "message_sent",
            dispute_id=dispute_id,
            message_id=sent.id,
            sender_role=sent.sender_role.value,
            attachments=len(sent.attachments),
        )
        self._feed.publish(messages_topic(dispute_id))

        await self._touch_last_message(dispute_id, last_message_preview(sent), now)
        return sent

    async def _touch_last_message(self, dispute_id: str, preview: str, sent_at) -> None:
        stmt = (
            update(DisputeReport)
            .where(DisputeReport.id == dispute_id)
            .values(last_message=preview, last_message_timestamp=sent_at)
        )
        try:
            async with self._sessions() as session:
                result = await session.execute(stmt)
                await session.commit()
        except STORE_ERRORS as e:
            logger.warning("last_message_update_failed", dispute_id=dispute_id, error=str(e))
            return

        if result.rowcount == 0:
            logger.warning("last_message_update_failed", dispute_id=dispute_id, error="dispute not found")
            return
        self._feed.publish(DISPUTES_TOPIC)

    def check_attachment_size(self, size: int | None) -> None:
        """Unknown sizes pass; upload_attachment checks the bytes it receives."""
        if size is not None and size > self._max_attachment_bytes:
            raise UploadError(
                f"Attachment exceeds the {self._max_attachment_bytes // (1024 * 1024)}MB limit"
            )

    async def upload_attachment(
        self,
        content: bytes,
        filename: str | None,
        content_type: str | None,
        dispute_id: str,
    ) -> Attachment:
        self.check_attachment_size(len(content))

        uploaded_at_ms = int(get_utc_now().timestamp() * 1000)
        key = attachment_key(dispute_id, filename, uploaded_at_ms)
        try:
            url = await self._storage.save_file(content, key)
        except OSError as e:
            logger.error("attachment_upload_failed", dispute_id=dispute_id, key=key, error=str(e))
            raise UploadError() from e

        logger.info("attachment_uploaded", dispute_id=dispute_id, key=key, size_bytes=len(content))
        return Attachment(
            url=url,
            type=content_type or "application/octet-stream",
            name=safe_filename(filename),
        )
