"""End-to-end tests for the dashboard API."""

from datetime import timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from starlette.datastructures import UploadFile

from dispute_desk.core import security
from dispute_desk.main import create_app

API = "/api/v1"


class TestSystem:

    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"


class TestAuth:

    async def test_first_run_registration(self, client):
        response = await client.get(f"{API}/auth/setup-status")
        assert response.json() == {"first_run": True}

        response = await client.post(
            f"{API}/auth/register",
            json={"email": "first@acme-support.com", "password": "s3cret-pass", "display_name": "First"},
        )
        assert response.status_code == 201
        assert response.json()["email"] == "first@acme-support.com"

        response = await client.get(f"{API}/auth/setup-status")
        assert response.json() == {"first_run": False}

    async def test_registration_closed_after_first_run(self, client, agent):
        response = await client.post(
            f"{API}/auth/register",
            json={"email": "intruder@acme-support.com", "password": "s3cret-pass"},
        )
        assert response.status_code == 401

    async def test_signed_in_agent_can_add_accounts(self, client, auth_headers):
        response = await client.post(
            f"{API}/auth/register",
            json={"email": "second@acme-support.com", "password": "s3cret-pass"},
            headers=auth_headers,
        )
        assert response.status_code == 201

    async def test_short_password_rejected(self, client):
        response = await client.post(
            f"{API}/auth/register",
            json={"email": "first@acme-support.com", "password": "short"},
        )
        assert response.status_code == 422

    async def test_login_failure(self, client, agent):
        response = await client.post(
            f"{API}/auth/login",
            data={"username": "agent@acme-support.com", "password": "wrong-password"},
        )
        assert response.status_code == 401
        assert response.json()["error"] == "InvalidCredentials"
        assert response.headers["www-authenticate"] == "Bearer"

    async def test_me_and_logout(self, client, auth_headers):
        response = await client.get(f"{API}/auth/me", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["display_name"] == "Sam Agent"

        response = await client.post(f"{API}/auth/logout", headers=auth_headers)
        assert response.status_code == 204

        response = await client.get(f"{API}/auth/me", headers=auth_headers)
        assert response.status_code == 401


class TestDisputes:

    async def test_requires_sign_in(self, client):
        response = await client.get(f"{API}/disputes")
        assert response.status_code == 401

    async def test_list_uses_document_field_names(self, client, auth_headers, new_dispute):
        response = await client.get(f"{API}/disputes", headers=auth_headers)
        assert response.status_code == 200
        [dispute] = response.json()
        assert dispute["id"] == new_dispute.id
        assert dispute["orderNumber"] == "ORD-1001"
        assert dispute["status"] == "New"
        assert "documentURL" in dispute

    async def test_status_update(self, client, auth_headers, new_dispute):
        response = await client.put(
            f"{API}/disputes/{new_dispute.id}/status",
            json={"status": "Resolved"},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json()["status"] == "Resolved"
        assert response.json()["resolvedAt"] is not None

        response = await client.get(f"{API}/disputes/statistics", headers=auth_headers)
        assert response.json()["statusCounts"]["Resolved"] == 1

    async def test_unrecognized_status(self, client, auth_headers, new_dispute):
        response = await client.put(
            f"{API}/disputes/{new_dispute.id}/status",
            json={"status": "Closed"},
            headers=auth_headers,
        )
        assert response.status_code == 422
        assert response.json()["error"] == "InvalidTransition"

    async def test_missing_dispute(self, client, auth_headers):
        response = await client.get(f"{API}/disputes/no-such-dispute", headers=auth_headers)
        assert response.status_code == 404

    async def test_dashboard_summary(self, client, auth_headers, new_dispute):
        response = await client.get(f"{API}/disputes/dashboard", headers=auth_headers)
        body = response.json()
        assert body["totalDisputes"] == 1
        assert body["averageResolutionDisplay"] == "N/A"
        assert {"name": "New", "value": 1} in body["statusData"]
        assert sum(sum(point["counts"].values()) for point in body["trendData"]) == 1

    async def test_opening_chat_marks_dispute_open(self, client, auth_headers, new_dispute):
        response = await client.post(f"{API}/disputes/{new_dispute.id}/chat/open", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["status"] == "Open"


class TestMessages:

    async def test_send_and_list(self, client, auth_headers, agent, new_dispute):
        response = await client.post(
            f"{API}/disputes/{new_dispute.id}/messages",
            json={"message": "We have issued a refund."},
            headers=auth_headers,
        )
        assert response.status_code == 201
        sent = response.json()
        assert sent["senderRole"] == "support"
        assert sent["senderId"] == agent.id

        response = await client.get(f"{API}/disputes/{new_dispute.id}/messages", headers=auth_headers)
        assert [m["id"] for m in response.json()] == [sent["id"]]

        response = await client.get(f"{API}/disputes/{new_dispute.id}", headers=auth_headers)
        assert response.json()["lastMessage"] == "We have issued a refund."

    async def test_empty_message(self, client, auth_headers, new_dispute):
        response = await client.post(
            f"{API}/disputes/{new_dispute.id}/messages",
            json={"message": "   "},
            headers=auth_headers,
        )
        assert response.status_code == 422
        assert response.json()["error"] == "EmptyMessage"

    async def test_unknown_dispute(self, client, auth_headers):
        response = await client.post(
            f"{API}/disputes/no-such-dispute/messages",
            json={"message": "hello"},
            headers=auth_headers,
        )
        assert response.status_code == 404

    async def test_upload_then_send_attachment(self, client, auth_headers, new_dispute):
        response = await client.post(
            f"{API}/disputes/{new_dispute.id}/attachments",
            files={"file": ("receipt.pdf", b"%PDF-1.4", "application/pdf")},
            headers=auth_headers,
        )
        assert response.status_code == 201
        attachment = response.json()
        assert attachment["name"] == "receipt.pdf"

        response = await client.get(attachment["url"])
        assert response.status_code == 200
        assert response.content == b"%PDF-1.4"
        assert response.headers["content-type"] == "application/pdf"

        response = await client.post(
            f"{API}/disputes/{new_dispute.id}/messages",
            json={"attachments": [attachment]},
            headers=auth_headers,
        )
        assert response.status_code == 201
        assert response.json()["attachments"] == [attachment]

    async def test_oversized_upload(self, client, auth_headers, settings, new_dispute):
        response = await client.post(
            f"{API}/disputes/{new_dispute.id}/attachments",
            files={"file": ("big.bin", b"x" * (settings.max_attachment_bytes + 1))},
            headers=auth_headers,
        )
        assert response.status_code == 502
        assert response.json()["error"] == "UploadError"


class TestFiles:

    @pytest.mark.parametrize("path", ["/files/secrets.txt", "/files/dispute_files/nope/1_a.pdf"])
    async def test_unknown_files(self, client, path):
        response = await client.get(path)
        assert response.status_code == 404


class TestUnreachableStore:

    async def test_store_outage_is_service_unavailable(self, unreachable_context):
        token, _, _ = security.create_access_token(
            "agent-1", unreachable_context.settings.SECRET_KEY, timedelta(minutes=5)
        )
        app = create_app(context=unreachable_context)
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as client:
            response = await client.get(f"{API}/disputes", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 503
        assert response.json()["error"] == "NetworkError"


class TestUploadLimit:

    async def test_declared_size_rejected_before_reading(self, client, auth_headers, settings, new_dispute, monkeypatch):
        async def unexpected_read(self, size=-1):
            raise AssertionError("oversized upload was read into memory")

        monkeypatch.setattr(UploadFile, "read", unexpected_read)
        response = await client.post(
            f"{API}/disputes/{new_dispute.id}/attachments",
            files={"file": ("big.bin", b"x" * (settings.max_attachment_bytes + 1))},
            headers=auth_headers,
        )
        assert response.status_code == 502
        assert response.json()["error"] == "UploadError"
