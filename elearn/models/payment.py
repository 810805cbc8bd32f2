"""Payment ledger: gateway-confirmed transactions and whether they were applied."""
from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, Text

from elearn.core.clock import utcnow
from elearn.db.session import Base

GATEWAY_ESEWA_V2 = "esewa-v2"
GATEWAY_ESEWA_LEGACY = "esewa-legacy"

STATUS_VERIFIED = "verified"  # gateway confirmed, enrollment not applied yet
STATUS_APPLIED = "applied"


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    transaction_uuid = Column(String(255), unique=True, nullable=False, index=True)
    transaction_code = Column(String(255), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Float, nullable=False)
    gateway = Column(String(32), nullable=False)
    status = Column(String(16), nullable=False, default=STATUS_VERIFIED, index=True)
    last_error = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    applied_at = Column(DateTime, nullable=True)
