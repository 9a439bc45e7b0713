"""
Chat session for one dispute, as driven by the support dashboard.

    CLOSED -> LOADING -> READY -> (ERROR | CLOSED)

Opening a chat on a dispute that is still New moves it to Open first.
While READY the session holds a live message subscription; close()
releases it.
"""

import asyncio
import enum
from typing import List, Optional

import structlog

from dispute_desk.core.exceptions import DisputeDeskError, ListenerError
from dispute_desk.models.dispute import DisputeStatus
from dispute_desk.schemas.auth import SupportIdentity
from dispute_desk.schemas.dispute import Dispute
from dispute_desk.schemas.message import Attachment, Message, MessageDraft, SenderRole
from dispute_desk.services.change_feed import Subscription, pump
from dispute_desk.services.dispute_repository import DisputeRepository
from dispute_desk.services.message_repository import MessageRepository

logger = structlog.get_logger()


class ChatState(str, enum.Enum):
    CLOSED = 'closed'
    LOADING = 'loading'
    READY = 'ready'
    ERROR = 'error'


class ChatSession:

    def __init__(
        self,
        disputes: DisputeRepository,
        messages: MessageRepository,
        current_user: Optional[SupportIdentity],
    ):
        self._disputes = disputes
        self._messages = messages
        self.current_user = current_user

        self.state = ChatState.CLOSED
        self.dispute: Optional[Dispute] = None
        self.messages: List[Message] = []
        self.error: Optional[str] = None

        self._subscription: Optional[Subscription[Message]] = None
        self._listener: Optional[asyncio.Task] = None

    @property
    def dispute_id(self) -> Optional[str]:
        return self.dispute.id if self.dispute else None

    async def open(self, dispute_id: str) -> None:
        if self.state is ChatState.READY and self.dispute_id == dispute_id:
            return
        await self.close()

        try:
            self.dispute = await self._disputes.get_by_id(dispute_id)
        except DisputeDeskError as e:
            self._fail(dispute_id, e)
            return

        try:
            self.dispute = await mark_opened(self._disputes, self.dispute)
        except DisputeDeskError as e:
            # The chat still opens; the dispute stays New until the next attempt
            logger.error("chat_open_transition_failed", dispute_id=dispute_id, error=str(e))

        self.state = ChatState.LOADING
        self.error = None
        try:
            self.messages = await self._messages.fetch_all(dispute_id)
        except DisputeDeskError as e:
            self._fail(dispute_id, e)
            return

        self._subscription = self._messages.subscribe(dispute_id)
        self._listener = asyncio.create_task(
            pump(self._subscription, self._on_snapshot, self._on_listener_error)
        )
        self.state = ChatState.READY
        logger.info("chat_opened", dispute_id=dispute_id)

    async def send(self, text: str = "", attachments: Optional[List[Attachment]] = None) -> Optional[Message]:
        """
        No-op (returns None) unless the session is READY, someone is signed
        in and there is something to send.
        """
        attachments = attachments or []
        if self.state is not ChatState.READY or self.current_user is None:
            return None
        if not text.strip() and not attachments:
            return None

        draft = MessageDraft(
            sender_id=self.current_user.id,
            sender_role=SenderRole.SUPPORT,
            sender_name=self.current_user.display_name,
            message=text,
            attachments=attachments,
        )
        return await self._messages.send(self.dispute_id, draft)

    async def close(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None
        if self._listener is not None:
            await self._listener
            self._listener = None
        if self.dispute is not None:
            logger.info("chat_closed", dispute_id=self.dispute.id)
        self.state = ChatState.CLOSED
        self.dispute = None
        self.messages = []
        self.error = None

    def _on_snapshot(self, snapshot: List[Message]) -> None:
        self.messages = snapshot

    def _on_listener_error(self, error: ListenerError) -> None:
        logger.error("chat_listener_failed", dispute_id=self.dispute_id, error=str(error))
        self._subscription = None
        self.state = ChatState.ERROR
        self.error = "Failed to listen to messages"

    def _fail(self, dispute_id: str, error: DisputeDeskError) -> None:
        logger.error("chat_open_failed", dispute_id=dispute_id, error=str(error))
        self.state = ChatState.ERROR
        self.error = error.detail


async def mark_opened(disputes: DisputeRepository, dispute: Dispute) -> Dispute:
    """New disputes move to Open the first time support opens their chat."""
    if dispute.status != DisputeStatus.NEW.value:
        return dispute
    return await disputes.update_status(dispute.id, DisputeStatus.OPEN.value)
