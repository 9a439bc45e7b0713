"""Tests for support agent sign-in."""

import pytest

from dispute_desk.core.exceptions import AuthError, InvalidCredentials, NetworkError
from dispute_desk.services.session_store import SessionStore

EMAIL = "agent@acme-support.com"
PASSWORD = "correct-horse-battery"


class TestRegister:

    async def test_first_run_until_first_account(self, session_store):
        assert await session_store.is_first_run() is True
        identity = await session_store.register(EMAIL, PASSWORD, "Sam Agent")
        assert identity.email == EMAIL
        assert identity.role == "support"
        assert await session_store.is_first_run() is False

    async def test_email_is_case_insensitive(self, session_store):
        await session_store.register("Agent@Acme-Support.com", PASSWORD)
        with pytest.raises(AuthError, match="already exists"):
            await session_store.register(EMAIL, PASSWORD)

    async def test_password_over_bcrypt_limit_rejected(self, session_store):
        with pytest.raises(AuthError):
            await session_store.register(EMAIL, "é" * 40)


class TestLogin:

    async def test_login_and_resolve_current_user(self, session_store):
        await session_store.register(EMAIL, PASSWORD, "Sam Agent")
        session = await session_store.login(EMAIL.upper(), PASSWORD)

        assert session.token_type == "bearer"
        current = await session_store.get_current_user(session.access_token)
        assert current == session.user
        assert current.display_name == "Sam Agent"

    @pytest.mark.parametrize(
        "email, password",
        [(EMAIL, "wrong-password"), ("nobody@acme-support.com", PASSWORD)],
    )
    async def test_bad_credentials(self, session_store, email, password):
        await session_store.register(EMAIL, PASSWORD)
        with pytest.raises(InvalidCredentials):
            await session_store.login(email, password)

    @pytest.mark.parametrize("token", [None, "", "not-a-jwt"])
    async def test_unusable_token_is_signed_out(self, session_store, token):
        assert await session_store.get_current_user(token) is None


class TestLogout:

    async def test_logout_revokes_token(self, session_store):
        await session_store.register(EMAIL, PASSWORD)
        session = await session_store.login(EMAIL, PASSWORD)

        await session_store.logout(session.access_token)
        await session_store.logout(session.access_token)

        assert await session_store.get_current_user(session.access_token) is None

    async def test_other_sessions_survive_logout(self, session_store):
        await session_store.register(EMAIL, PASSWORD)
        first = await session_store.login(EMAIL, PASSWORD)
        second = await session_store.login(EMAIL, PASSWORD)

        await session_store.logout(first.access_token)

        assert await session_store.get_current_user(second.access_token) is not None


class TestUnreachableStore:

    async def test_identity_calls_raise_network_error(self, unreachable_context):
        store = SessionStore(unreachable_context)
        with pytest.raises(NetworkError):
            await store.is_first_run()
        with pytest.raises(NetworkError):
            await store.login(EMAIL, PASSWORD)
        with pytest.raises(NetworkError):
            await store.register(EMAIL, PASSWORD)
