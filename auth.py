import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Header
from jose import jwt, JWTError
from passlib.context import CryptContext

from config import JWT_SECRET, JWT_ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES
from exceptions import AuthenticationError
from storage import Storage, get_storage

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    return pwd_context.verify(password, password_hash)


def create_access_token(user_id: int, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    return jwt.encode({"sub": str(user_id), "exp": expire}, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> int:
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
        return int(payload["sub"])
    except (JWTError, KeyError, TypeError, ValueError):
        raise AuthenticationError("Invalid token")


def require_authenticated(user_id: Optional[int]) -> int:
    """Rejects a missing caller identity before any owner-scoped operation."""
    if user_id is None:
        raise AuthenticationError("Unauthorized")
    return user_id


async def get_current_user_id(
    authorization: Optional[str] = Header(None),
    storage: Storage = Depends(get_storage),
) -> int:
    if not authorization:
        raise AuthenticationError("Unauthorized")
    try:
        scheme, token = authorization.split()
    except ValueError:
        raise AuthenticationError("Invalid authorization header")
    if scheme.lower() != "bearer":
        raise AuthenticationError("Invalid auth scheme")

    user_id = decode_access_token(token)
    if await storage.get_user(user_id) is None:
        logger.warning("Token presented for unknown user %s", user_id)
        raise AuthenticationError("User not found")
    return user_id
