"""
Insert a handful of demo disputes (and one customer message) into the
configured database.

    python backend/scripts/seed_disputes.py
"""

import asyncio
from datetime import timedelta

import structlog

from dispute_desk.core.config import get_settings
from dispute_desk.core.logging import setup_logging
from dispute_desk.core.time_utils import get_utc_now
from dispute_desk.db.init_db import create_tables
from dispute_desk.models.dispute import DisputeStatus
from dispute_desk.schemas.dispute import DisputeDraft
from dispute_desk.schemas.message import MessageDraft, SenderRole
from dispute_desk.services.context import ClientContext
from dispute_desk.services.dispute_repository import DisputeRepository
from dispute_desk.services.message_repository import MessageRepository

logger = structlog.get_logger()

DEMO_DISPUTES = [
    ("ORD-10021", "Item not received", "Wireless headphones", None),
    ("ORD-10034", "Damaged item", "Ceramic vase", DisputeStatus.IN_PROGRESS),
    ("ORD-10047", "Wrong item", "Running shoes, size 42", DisputeStatus.RESOLVED),
    ("ORD-10058", "Refund not processed", "Desk lamp", DisputeStatus.ESCALATED),
]


async def seed_disputes():
    settings = get_settings()
    setup_logging(settings)
    context = ClientContext.from_settings(settings)
    try:
        await create_tables(context.engine)
        disputes = DisputeRepository(context)
        messages = MessageRepository(context)

        for offset, (order_number, nature, item, status) in enumerate(DEMO_DISPUTES):
            dispute = await disputes.create(
                DisputeDraft(
                    order_number=order_number,
                    nature_of_dispute=nature,
                    item_description=item,
                    user_id=f"customer-{offset + 1}",
                    user_name=f"Demo Customer {offset + 1}",
                    user_email=f"customer{offset + 1}@shopper-demo.com",
                    created_at=get_utc_now() - timedelta(days=30 * offset),
                )
            )
            if status is not None:
                await disputes.update_status(dispute.id, status.value)
            await messages.send(
                dispute.id,
                MessageDraft(
                    sender_id=dispute.user_id,
                    sender_role=SenderRole.USER,
                    sender_name=dispute.user_name,
                    message=f"Hello, I need help with order {order_number}.",
                ),
            )
            logger.info("demo_dispute_seeded", dispute_id=dispute.id, order_number=order_number)
    finally:
        await context.aclose()


if __name__ == "__main__":
    asyncio.run(seed_disputes())
