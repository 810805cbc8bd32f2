"""User model: credentials, verification code, lockout counters and course sets."""
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from elearn.core.clock import utcnow
from elearn.core.security import hash_password, verify_password
from elearn.db.session import Base

ROLE_USER = "user"
ROLE_ADMIN = "admin"
ROLES = (ROLE_USER, ROLE_ADMIN)

ENROLLED = "enrolled"
PREMIUM = "premium"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    role = Column(String(16), nullable=False, default=ROLE_USER)
    hashed_password = Column(String(255), nullable=False)

    verification_code = Column(String(6), nullable=True)
    verification_code_expiry = Column(DateTime, nullable=True)
    is_verified = Column(Boolean, nullable=False, default=False)

    login_attempt = Column(Integer, nullable=False, default=0)
    lock_until = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)

    courses = relationship(
        "UserCourse",
        back_populates="user",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    def set_password(self, password: str) -> None:
        self.hashed_password = hash_password(password)

    def check_password(self, password: str) -> bool:
        return verify_password(password, self.hashed_password)

    def is_locked(self, now: datetime | None = None) -> bool:
        return self.lock_until is not None and self.lock_until > (now or utcnow())

    def verification_code_matches(self, code: str, now: datetime | None = None) -> bool:
        """Exact match and strictly before expiry."""
        if not self.verification_code or self.verification_code_expiry is None:
            return False
        return self.verification_code == code and (now or utcnow()) < self.verification_code_expiry

    def course_ids(self, kind: str) -> list[int]:
        return sorted(c.course_id for c in self.courses if c.kind == kind)

    @property
    def enrolled_course_ids(self) -> list[int]:
        return self.course_ids(ENROLLED)

    @property
    def premium_course_ids(self) -> list[int]:
        return self.course_ids(PREMIUM)


class UserCourse(Base):
    """One row per (user, course, kind); the unique key gives set semantics."""

    __tablename__ = "user_courses"
    __table_args__ = (UniqueConstraint("user_id", "course_id", "kind", name="uq_user_courses"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    kind = Column(String(16), nullable=False)  # enrolled | premium

    user = relationship("User", back_populates="courses")
