import asyncio
from typing import List, Optional

import structlog

from dispute_desk.core.exceptions import ListenerError
from dispute_desk.schemas.dispute import DashboardSummary, Dispute
from dispute_desk.services import statistics
from dispute_desk.services.change_feed import Subscription, pump
from dispute_desk.services.dispute_repository import DisputeRepository

logger = structlog.get_logger()


class DashboardView:
    """
    Live dispute list plus the derived summary (counts, trend, average
    resolution time), recomputed from every snapshot.
    """

    def __init__(self, disputes: DisputeRepository):
        self._disputes = disputes
        self.disputes: List[Dispute] = []
        self.summary: DashboardSummary = statistics.summarize([])
        self.error: Optional[str] = None
        self._subscription: Optional[Subscription[Dispute]] = None
        self._listener: Optional[asyncio.Task] = None

    @property
    def is_live(self) -> bool:
        return self._subscription is not None and not self._subscription.cancelled

    async def start(self) -> None:
        if self.is_live:
            return
        self.error = None
        self._subscription = self._disputes.subscribe()
        self._listener = asyncio.create_task(
            pump(self._subscription, self._apply_snapshot, self._on_listener_error)
        )

    async def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None
        if self._listener is not None:
            await self._listener
            self._listener = None

    async def refresh(self) -> None:
        """One-shot reload for callers running without a subscription."""
        self._apply_snapshot(await self._disputes.list_all())

    async def update_status(self, dispute_id: str, new_status: str) -> Dispute:
        confirmed = await self._disputes.update_status(dispute_id, new_status)
        # A live subscription will deliver this too; merging is idempotent
        self._apply_snapshot([confirmed if d.id == confirmed.id else d for d in self.disputes])
        return confirmed

    def _apply_snapshot(self, snapshot: List[Dispute]) -> None:
        self.disputes = snapshot
        self.summary = statistics.summarize(snapshot)

    def _on_listener_error(self, error: ListenerError) -> None:
        logger.error("dashboard_listener_failed", error=str(error))
        self._subscription = None
        self.error = error.detail
