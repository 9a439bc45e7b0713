from typing import Optional
from fastapi import Depends
from fastapi.requests import HTTPConnection
from fastapi.security import OAuth2PasswordBearer

from dispute_desk.core.config import Settings
from dispute_desk.core.exceptions import AuthError
from dispute_desk.schemas.auth import SupportIdentity
from dispute_desk.services.context import ClientContext
from dispute_desk.services.dispute_repository import DisputeRepository
from dispute_desk.services.message_repository import MessageRepository
from dispute_desk.services.session_store import SessionStore

TOKEN_URL = f"{Settings.model_fields['API_V1_STR'].default}/auth/login"

reusable_oauth2 = OAuth2PasswordBearer(tokenUrl=TOKEN_URL)
optional_oauth2 = OAuth2PasswordBearer(tokenUrl=TOKEN_URL, auto_error=False)


def get_context(connection: HTTPConnection) -> ClientContext:
    return connection.app.state.context


def get_session_store(context: ClientContext = Depends(get_context)) -> SessionStore:
    return SessionStore(context)


def get_dispute_repository(context: ClientContext = Depends(get_context)) -> DisputeRepository:
    return DisputeRepository(context)


def get_message_repository(context: ClientContext = Depends(get_context)) -> MessageRepository:
    return MessageRepository(context)


async def get_current_support_user(
    token: str = Depends(reusable_oauth2),
    store: SessionStore = Depends(get_session_store),
) -> SupportIdentity:
    user = await store.get_current_user(token)
    if user is None:
        raise AuthError("Could not validate credentials")
    return user


async def get_optional_support_user(
    token: Optional[str] = Depends(optional_oauth2),
    store: SessionStore = Depends(get_session_store),
) -> Optional[SupportIdentity]:
    return await store.get_current_user(token)
