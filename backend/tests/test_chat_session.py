"""Tests for the dispute chat session and the live dashboard view."""

import pytest

from dispute_desk.core.exceptions import NetworkError
from dispute_desk.schemas.auth import SupportIdentity
from dispute_desk.schemas.dispute import DisputeDraft
from dispute_desk.schemas.message import Attachment
from dispute_desk.services.change_feed import DISPUTES_TOPIC, messages_topic
from dispute_desk.services.chat_session import ChatSession, ChatState
from dispute_desk.services.dashboard import DashboardView

AGENT = SupportIdentity(id="agent-1", email="agent@acme-support.com", display_name="Sam Agent")


@pytest.fixture
async def chat(disputes, messages):
    session = ChatSession(disputes, messages, AGENT)
    yield session
    await session.close()


class TestOpen:

    async def test_opening_new_dispute_moves_it_to_open(self, chat, disputes, new_dispute):
        await chat.open(new_dispute.id)

        assert chat.state is ChatState.READY
        assert chat.dispute.status == "Open"
        assert (await disputes.get_by_id(new_dispute.id)).status == "Open"

    async def test_transition_happens_once(self, chat, disputes, new_dispute, monkeypatch):
        await chat.open(new_dispute.id)
        await chat.close()

        calls = []
        original = disputes.update_status

        async def tracking_update(dispute_id, status):
            calls.append(status)
            return await original(dispute_id, status)

        monkeypatch.setattr(disputes, "update_status", tracking_update)
        await chat.open(new_dispute.id)
        assert calls == []

    async def test_other_statuses_untouched(self, chat, disputes, new_dispute):
        await disputes.update_status(new_dispute.id, "Escalated")
        await chat.open(new_dispute.id)
        assert chat.dispute.status == "Escalated"

    async def test_failed_transition_still_opens_chat(self, chat, disputes, new_dispute, monkeypatch):
        async def failing_update(dispute_id, status):
            raise NetworkError()

        monkeypatch.setattr(disputes, "update_status", failing_update)
        await chat.open(new_dispute.id)

        assert chat.state is ChatState.READY
        assert chat.dispute.status == "New"

    async def test_unknown_dispute(self, chat):
        await chat.open("no-such-dispute")
        assert chat.state is ChatState.ERROR
        assert chat.error == "Dispute not found"


class TestSend:

    async def test_send_and_receive_snapshot(self, chat, new_dispute, wait_until):
        await chat.open(new_dispute.id)
        sent = await chat.send("  Refund issued.  ")

        assert sent.sender_id == AGENT.id
        assert sent.sender_name == "Sam Agent"
        await wait_until(lambda: [m.id for m in chat.messages] == [sent.id])

    async def test_attachment_only(self, chat, new_dispute):
        await chat.open(new_dispute.id)
        attachment = Attachment(url="http://testserver/files/x", type="image/png", name="photo.png")
        sent = await chat.send(attachments=[attachment])
        assert sent.attachments == [attachment]

    async def test_nothing_sent_when_blank(self, chat, messages, new_dispute):
        await chat.open(new_dispute.id)
        assert await chat.send("   ") is None
        assert await messages.fetch_all(new_dispute.id) == []

    async def test_nothing_sent_when_closed(self, chat):
        assert await chat.send("hello") is None

    async def test_nothing_sent_when_signed_out(self, disputes, messages, new_dispute):
        chat = ChatSession(disputes, messages, None)
        await chat.open(new_dispute.id)
        try:
            assert await chat.send("hello") is None
        finally:
            await chat.close()


class TestClose:

    async def test_close_releases_listener(self, chat, context, new_dispute):
        await chat.open(new_dispute.id)
        assert context.feed.listener_count(messages_topic(new_dispute.id)) == 1

        await chat.close()

        assert chat.state is ChatState.CLOSED
        assert chat.messages == []
        assert context.feed.listener_count(messages_topic(new_dispute.id)) == 0

    async def test_switching_disputes_releases_previous(self, chat, context, disputes, new_dispute):
        other = await disputes.create(DisputeDraft(order_number="ORD-2002"))
        await chat.open(new_dispute.id)
        await chat.open(other.id)

        assert chat.dispute_id == other.id
        assert context.feed.listener_count(messages_topic(new_dispute.id)) == 0
        assert context.feed.listener_count(messages_topic(other.id)) == 1


class TestDashboardView:

    async def test_live_list_and_summary(self, context, disputes, new_dispute, wait_until):
        view = DashboardView(disputes)
        await view.start()
        try:
            await wait_until(lambda: len(view.disputes) == 1)
            assert view.summary.status_counts["New"] == 1

            await disputes.update_status(new_dispute.id, "Resolved")
            await wait_until(lambda: view.summary.status_counts["Resolved"] == 1)
            assert view.is_live
        finally:
            await view.stop()
        assert context.feed.listener_count(DISPUTES_TOPIC) == 0

    async def test_update_status_merges_confirmation(self, disputes, new_dispute):
        view = DashboardView(disputes)
        await view.refresh()

        confirmed = await view.update_status(new_dispute.id, "Escalated")

        assert view.disputes == [confirmed]
        assert view.summary.status_counts["Escalated"] == 1
