"""
Dispute Repository - reads, status updates and live subscriptions over
the `disputeReports` collection.

The repository never caches: callers holding a live subscription get
their update through the next snapshot, everyone else merges the
confirmation returned by `update_status` themselves.
"""

from typing import List

import structlog
from sqlalchemy import select

from dispute_desk.core.exceptions import InvalidTransition, NetworkError, NotFound
from dispute_desk.core.time_utils import get_utc_now, to_utc
from dispute_desk.db.session import STORE_ERRORS
from dispute_desk.models.dispute import DisputeReport, DisputeStatus
from dispute_desk.schemas.dispute import Dispute, DisputeDraft, DisputeStatistics
from dispute_desk.services import statistics
from dispute_desk.services.change_feed import DISPUTES_TOPIC, Subscription
from dispute_desk.services.context import ClientContext

logger = structlog.get_logger()


def parse_status(value: str) -> DisputeStatus:
    try:
        return DisputeStatus(value)
    except ValueError:
        raise InvalidTransition(f"Unrecognized dispute status: {value!r}") from None


class DisputeRepository:

    def __init__(self, context: ClientContext):
        self._sessions = context.session_factory
        self._feed = context.feed

    async def list_all(self) -> List[Dispute]:
        """One-shot full read, ordered by insertion."""
        try:
            async with self._sessions() as session:
                result = await session.execute(select(DisputeReport).order_by(DisputeReport.seq))
                rows = result.scalars().all()
        except STORE_ERRORS as e:
            logger.error("dispute_list_failed", error=str(e))
            raise NetworkError("Failed to read disputes") from e
        return [Dispute.from_record(row) for row in rows]

    def subscribe(self) -> Subscription[Dispute]:
        """Live query over every dispute; yields the full list on each change."""
        return Subscription(self._feed, DISPUTES_TOPIC, self.list_all)

    async def get_by_id(self, dispute_id: str) -> Dispute:
        try:
            async with self._sessions() as session:
                row = await self._get_row(session, dispute_id)
        except STORE_ERRORS as e:
            logger.error("dispute_read_failed", dispute_id=dispute_id, error=str(e))
            raise NetworkError("Failed to read dispute") from e
        if row is None:
            raise NotFound("Dispute not found")
        return Dispute.from_record(row)

    async def update_status(self, dispute_id: str, new_status: str) -> Dispute:
        """
        Any recognized status may follow any other. resolvedAt is stamped on
        every move into Resolved and never cleared on the way out.
        """
        status = parse_status(new_status)
        now = get_utc_now()
        try:
            async with self._sessions() as session:
                row = await self._get_row(session, dispute_id)
                if row is None:
                    raise NotFound("Dispute not found")
                previous = row.status
                row.status = status.value
                row.updated_at = now
                if status is DisputeStatus.RESOLVED:
                    row.resolved_at = now
                await session.commit()
                confirmed = Dispute.from_record(row)
        except STORE_ERRORS as e:
            logger.error("dispute_status_update_failed", dispute_id=dispute_id, error=str(e))
            raise NetworkError("Failed to update dispute status") from e

        logger.info(
            "dispute_status_updated",
            dispute_id=dispute_id,
            previous=previous,
            status=status.value,
        )
        self._feed.publish(DISPUTES_TOPIC)
        return confirmed

    async def get_statistics(self) -> DisputeStatistics:
        return statistics.statistics(await self.list_all())

    async def create(self, draft: DisputeDraft) -> Dispute:
        """Insert a new dispute in status New (reporting client / seeding)."""
        row = DisputeReport(
            status=DisputeStatus.NEW.value,
            order_number=draft.order_number,
            nature_of_dispute=draft.nature_of_dispute,
            item_description=draft.item_description,
            extra_details=draft.extra_details,
            user_id=draft.user_id,
            user_name=draft.user_name,
            user_email=draft.user_email,
            document_url=draft.document_url,
            created_at=to_utc(draft.created_at) or get_utc_now(),
        )
        try:
            async with self._sessions() as session:
                session.add(row)
                await session.commit()
                created = Dispute.from_record(row)
        except STORE_ERRORS as e:
            logger.error("dispute_create_failed", error=str(e))
            raise NetworkError("Failed to create dispute") from e

        logger.info("dispute_created", dispute_id=created.id, order_number=created.order_number)
        self._feed.publish(DISPUTES_TOPIC)
        return created

    @staticmethod
    async def _get_row(session, dispute_id: str) -> DisputeReport | None:
        result = await session.execute(select(DisputeReport).where(DisputeReport.id == dispute_id))
        return result.scalar_one_or_none()
