"""Token issuer: access/refresh pairs and the persisted refresh-token store."""
import logging
from dataclasses import dataclass

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from elearn.core.clock import utcnow
from elearn.core.config import Settings
from elearn.core.security import create_access_token, create_refresh_token
from elearn.models.token import REFRESH_TOKEN_TTL, RefreshToken
from elearn.models.user import User

logger = logging.getLogger(__name__)


@dataclass
class IssuedTokens:
    access_token: str
    refresh_token: str


async def issue_tokens(db: AsyncSession, settings: Settings, user: User) -> IssuedTokens:
    """Mint both tokens and store the refresh token. Earlier sessions stay valid."""
    access = create_access_token(settings, user.id, user.role)
    refresh = create_refresh_token(settings, user.id, user.role)
    db.add(RefreshToken(user_id=user.id, token=refresh))
    await db.flush()
    return IssuedTokens(access_token=access, refresh_token=refresh)


async def find_refresh_token(db: AsyncSession, token: str) -> RefreshToken | None:
    result = await db.execute(select(RefreshToken).where(RefreshToken.token == token))
    return result.scalar_one_or_none()


async def revoke_refresh_token(db: AsyncSession, token: str | None) -> bool:
    """Delete-if-exists; returns whether a record was removed."""
    if not token:
        return False
    result = await db.execute(delete(RefreshToken).where(RefreshToken.token == token))
    return result.rowcount > 0


async def revoke_user_tokens(db: AsyncSession, user_id: int) -> int:
    result = await db.execute(delete(RefreshToken).where(RefreshToken.user_id == user_id))
    return result.rowcount


async def purge_expired_refresh_tokens(db: AsyncSession) -> int:
    cutoff = utcnow() - REFRESH_TOKEN_TTL
    result = await db.execute(delete(RefreshToken).where(RefreshToken.created_at <= cutoff))
    if result.rowcount:
        logger.info("Purged %d expired refresh tokens", result.rowcount)
    return result.rowcount
