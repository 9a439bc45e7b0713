import uuid
from datetime import datetime, timedelta
from typing import Any, Union

from jose import jwt
from passlib.context import CryptContext

from dispute_desk.core.time_utils import get_utc_now

ALGORITHM = "HS256"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# bcrypt only looks at the first 72 bytes
MAX_PASSWORD_BYTES = 72


def password_too_long(password: str) -> bool:
    return len(password.encode("utf-8")) > MAX_PASSWORD_BYTES


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if password_too_long(plain_password):
        return False
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    if password_too_long(password):
        raise ValueError("Password exceeds bcrypt 72-byte limit")
    return pwd_context.hash(password)


def create_access_token(
    subject: Union[str, Any], secret_key: str, expires_delta: timedelta
) -> tuple[str, str, datetime]:
    """
    Returns (token, jti, expires_at). The jti is what logout revokes.
    """
    expire = get_utc_now() + expires_delta
    jti = str(uuid.uuid4())
    to_encode = {"exp": expire, "sub": str(subject), "jti": jti}
    encoded_jwt = jwt.encode(to_encode, secret_key, algorithm=ALGORITHM)
    return encoded_jwt, jti, expire


def decode_access_token(token: str, secret_key: str) -> dict:
    """Raises jose.JWTError on bad signature or expiry."""
    return jwt.decode(token, secret_key, algorithms=[ALGORITHM])
