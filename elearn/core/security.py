"""Password hashing and JWT access/refresh tokens."""
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext

from elearn.core.config import Settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=10)

ACCESS = "access"
REFRESH = "refresh"


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def generate_verification_code() -> str:
    """Six decimal digits, never starting with 0."""
    return str(100000 + secrets.randbelow(900000))


def _encode(settings: Settings, user_id: int, role: str, token_type: str, lifetime: timedelta) -> str:
    expire = datetime.now(timezone.utc) + lifetime
    to_encode: dict[str, Any] = {
        "id": user_id,
        "role": role,
        "type": token_type,
        "exp": expire,
        # two tokens minted in the same second must still differ
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def create_access_token(settings: Settings, user_id: int, role: str) -> str:
    return _encode(
        settings, user_id, role, ACCESS, timedelta(minutes=settings.access_token_expire_minutes)
    )


def create_refresh_token(settings: Settings, user_id: int, role: str) -> str:
    return _encode(
        settings, user_id, role, REFRESH, timedelta(days=settings.refresh_token_expire_days)
    )


def decode_token(settings: Settings, token: str, expected_type: str = ACCESS) -> dict | None:
    """Return the claims of a valid, unexpired token of the given type; None otherwise."""
    try:
        claims = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
    if claims.get("type") != expected_type or "id" not in claims:
        return None
    return claims
