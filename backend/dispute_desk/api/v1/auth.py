from typing import Any, Optional
from fastapi import APIRouter, Depends, status
from fastapi.security import OAuth2PasswordRequestForm

from dispute_desk.api import deps
from dispute_desk.core.exceptions import AuthError
from dispute_desk.schemas.auth import RegisterRequest, SetupStatus, SupportIdentity, Token
from dispute_desk.services.session_store import SessionStore

router = APIRouter()


@router.get("/setup-status", response_model=SetupStatus)
async def setup_status(store: SessionStore = Depends(deps.get_session_store)) -> Any:
    """
    First-run detection: with no support account yet, the dashboard shows
    registration instead of login.
    """
    return SetupStatus(first_run=await store.is_first_run())


@router.post("/register", response_model=SupportIdentity, status_code=status.HTTP_201_CREATED)
async def register_support_user(
    request: RegisterRequest,
    store: SessionStore = Depends(deps.get_session_store),
    current_user: Optional[SupportIdentity] = Depends(deps.get_optional_support_user),
) -> Any:
    """
    Open during first run; afterwards only a signed-in agent can add accounts.
    """
    if current_user is None and not await store.is_first_run():
        raise AuthError("Registration requires a signed-in support agent")
    return await store.register(request.email, request.password, request.display_name)


@router.post("/login", response_model=Token)
async def login_access_token(
    form_data: OAuth2PasswordRequestForm = Depends(),
    store: SessionStore = Depends(deps.get_session_store),
) -> Any:
    """
    OAuth2 compatible token login, get an access token for future requests.
    """
    session = await store.login(form_data.username, form_data.password)
    return Token(access_token=session.access_token, token_type=session.token_type)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    token: str = Depends(deps.reusable_oauth2),
    store: SessionStore = Depends(deps.get_session_store),
    current_user: SupportIdentity = Depends(deps.get_current_support_user),
) -> None:
    await store.logout(token)


@router.get("/me", response_model=SupportIdentity)
async def read_current_user(
    current_user: SupportIdentity = Depends(deps.get_current_support_user),
) -> Any:
    return current_user
