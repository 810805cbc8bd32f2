"""Persisted refresh tokens; deleting a row revokes that session."""
from datetime import datetime, timedelta

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String

from elearn.core.clock import utcnow
from elearn.db.session import Base

REFRESH_TOKEN_TTL = timedelta(days=30)


class RefreshToken(Base):
    __tablename__ = "refresh_tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    token = Column(String(512), unique=True, nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or utcnow()) >= self.created_at + REFRESH_TOKEN_TTL
