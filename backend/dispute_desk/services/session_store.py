from datetime import datetime, timedelta
from typing import Optional

import structlog
from jose import JWTError
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from dispute_desk.core import security
from dispute_desk.core.exceptions import AuthError, InvalidCredentials, NetworkError
from dispute_desk.core.time_utils import UTC, get_utc_now
from dispute_desk.db.session import STORE_ERRORS
from dispute_desk.models.support_user import INITIAL_SETUP_KEY, RevokedToken, SetupMarker, SupportUser
from dispute_desk.schemas.auth import AuthSession, SupportIdentity, TokenPayload
from dispute_desk.services.context import ClientContext

logger = structlog.get_logger()


def _identity(user: SupportUser) -> SupportIdentity:
    return SupportIdentity(
        id=user.id,
        email=user.email,
        display_name=user.display_name,
        role=user.role,
    )


class SessionStore:
    """
    Email/password identity for support agents, issued as JWT bearer tokens.
    """

    def __init__(self, context: ClientContext):
        self._sessions = context.session_factory
        self._secret_key = context.settings.SECRET_KEY
        self._token_ttl = timedelta(minutes=context.settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    async def is_first_run(self) -> bool:
        """True until the first support account has been registered."""
        try:
            async with self._sessions() as session:
                marker = await session.get(SetupMarker, INITIAL_SETUP_KEY)
        except STORE_ERRORS as e:
            logger.error("first_run_check_failed", error=str(e))
            raise NetworkError("Failed to check setup status") from e
        return marker is None

    async def register(self, email: str, password: str, display_name: Optional[str] = None) -> SupportIdentity:
        try:
            password_hash = security.get_password_hash(password)
        except ValueError as e:
            raise AuthError(str(e)) from e

        user = SupportUser(
            email=email.lower(),
            password_hash=password_hash,
            display_name=display_name,
            role="support",
        )
        try:
            async with self._sessions() as session:
                session.add(user)
                if await session.get(SetupMarker, INITIAL_SETUP_KEY) is None:
                    session.add(SetupMarker(key=INITIAL_SETUP_KEY))
                await session.commit()
        except IntegrityError as e:
            raise AuthError("An account with this email already exists") from e
        except STORE_ERRORS as e:
            logger.error("support_registration_failed", error=str(e))
            raise NetworkError("Failed to register support user") from e

        logger.info("support_user_registered", user_id=user.id)
        return _identity(user)

    async def login(self, email: str, password: str) -> AuthSession:
        try:
            async with self._sessions() as session:
                result = await session.execute(
                    select(SupportUser).where(SupportUser.email == email.lower())
                )
                user = result.scalar_one_or_none()

                if not user or not security.verify_password(password, user.password_hash):
                    logger.warning("login_failed", reason="bad_credentials")
                    raise InvalidCredentials()
                if not user.is_active:
                    logger.warning("login_failed", reason="inactive", user_id=user.id)
                    raise InvalidCredentials("Inactive user")

                user.last_login_at = get_utc_now()
                await session.commit()
        except STORE_ERRORS as e:
            logger.error("login_lookup_failed", error=str(e))
            raise NetworkError("Failed to reach identity store") from e

        token, _, _ = security.create_access_token(user.id, self._secret_key, self._token_ttl)
        logger.info("login_succeeded", user_id=user.id)
        return AuthSession(user=_identity(user), access_token=token)

    async def get_current_user(self, token: Optional[str]) -> Optional[SupportIdentity]:
        """
        Resolve a bearer token to the signed-in identity, or None when the
        token is missing, malformed, expired, revoked or names no active user.
        """
        if not token:
            return None
        try:
            payload = TokenPayload(**security.decode_access_token(token, self._secret_key))
        except (JWTError, ValidationError):
            return None
        if not payload.sub or not payload.jti:
            return None

        try:
            async with self._sessions() as session:
                if await session.get(RevokedToken, payload.jti) is not None:
                    return None
                user = await session.get(SupportUser, payload.sub)
        except STORE_ERRORS as e:
            logger.error("current_user_lookup_failed", error=str(e))
            raise NetworkError("Failed to reach identity store") from e

        if user is None or not user.is_active:
            return None
        return _identity(user)

    async def logout(self, token: str) -> None:
        try:
            claims = security.decode_access_token(token, self._secret_key)
        except JWTError:
            # Already unusable
            return
        payload = TokenPayload(**claims)
        if not payload.jti:
            return

        try:
            async with self._sessions() as session:
                if await session.get(RevokedToken, payload.jti) is None:
                    session.add(
                        RevokedToken(
                            jti=payload.jti,
                            user_id=payload.sub or "",
                            expires_at=datetime.fromtimestamp(claims["exp"], UTC),
                        )
                    )
                    await session.commit()
        except STORE_ERRORS as e:
            logger.error("logout_failed", error=str(e))
            raise NetworkError("Failed to end session") from e

        logger.info("logout_succeeded", user_id=payload.sub)
