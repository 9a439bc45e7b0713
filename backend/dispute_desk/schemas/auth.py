from typing import Optional
from pydantic import BaseModel, EmailStr, Field


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class TokenPayload(BaseModel):
    sub: Optional[str] = None
    jti: Optional[str] = None


class SupportIdentity(BaseModel):
    """The `currentUser` every view and mutation works with."""
    id: str
    email: EmailStr
    display_name: Optional[str] = None
    role: str = "support"


class AuthSession(BaseModel):
    user: SupportIdentity
    access_token: str
    token_type: str = "bearer"


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=72)
    display_name: Optional[str] = None


class SetupStatus(BaseModel):
    first_run: bool
