"""Per-user, per-course progress: enrollment, premium flag, completed lessons."""
from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint

from elearn.core.clock import utcnow
from elearn.db.session import Base


class UserProgress(Base):
    __tablename__ = "user_progress"
    __table_args__ = (UniqueConstraint("user_id", "course_id", name="uq_user_progress_user_course"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)

    # sub-topic ids as strings; always reassigned, never mutated in place
    completed_lessons = Column(JSON, nullable=False, default=list)
    last_accessed_lesson = Column(String(64), nullable=True)

    enrolled_at = Column(DateTime, nullable=True)  # null until the user enrolls or buys
    is_premium = Column(Boolean, nullable=False, default=False)
    premium_purchased_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
