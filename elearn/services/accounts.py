"""Account lifecycle: registration, e-mail verification, login lockout, sessions."""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from elearn.core.clock import utcnow
from elearn.core.config import Settings
from elearn.core.errors import (
    Conflict,
    Forbidden,
    InvalidInput,
    InvalidToken,
    Locked,
    NotFound,
    ServerError,
    Unauthorized,
)
from elearn.core.security import REFRESH, create_access_token, decode_token, generate_verification_code
from elearn.models.progress import UserProgress
from elearn.models.token import RefreshToken
from elearn.models.user import ROLE_ADMIN, User
from elearn.services.mailer import Mailer, MailDeliveryError
from elearn.services.tokens import (
    IssuedTokens,
    find_refresh_token,
    issue_tokens,
    purge_expired_refresh_tokens,
    revoke_refresh_token,
    revoke_user_tokens,
)

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def public_user(user: User) -> dict:
    """User fields safe to send to the client."""
    return {
        "_id": user.id,
        "name": user.full_name,
        "email": user.email,
        "role": user.role,
        "isVerified": user.is_verified,
        "premiumCourses": user.premium_course_ids,
        "enrolledCourses": user.enrolled_course_ids,
    }


@dataclass
class SessionResult:
    user: User
    tokens: IssuedTokens


class AccountService:
    def __init__(self, db: AsyncSession, settings: Settings, mailer: Mailer):
        self.db = db
        self.settings = settings
        self.mailer = mailer

    async def get_by_email(self, email: str) -> User | None:
        result = await self.db.execute(select(User).where(User.email == normalize_email(email)))
        return result.scalar_one_or_none()

    async def get_by_id(self, user_id: int) -> User:
        user = await self.db.get(User, user_id)
        if user is None:
            raise NotFound("User not found!")
        return user

    def _new_code(self, user: User, now: datetime | None = None) -> str:
        code = generate_verification_code()
        user.verification_code = code
        user.verification_code_expiry = (now or utcnow()) + timedelta(
            minutes=self.settings.verification_code_ttl_minutes
        )
        return code

    # ---------- registration / verification ----------

    async def register(self, full_name: str, email: str, password: str, role: str = "user") -> User:
        email = normalize_email(email)
        if role == ROLE_ADMIN and not self.settings.allow_admin_registration:
            raise Forbidden("Role 'admin' cannot be self-registered")
        if await self.get_by_email(email):
            raise Conflict("User already exists with this email!")

        user = User(full_name=full_name.strip(), email=email, role=role, is_verified=False, login_attempt=0)
        user.set_password(password)
        code = self._new_code(user)
        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError:
            # lost a race against a concurrent registration
            await self.db.rollback()
            raise Conflict("User already exists with this email!")

        try:
            await self.mailer.send_verification_email(email, code, user.full_name)
        except MailDeliveryError:
            # compensate: no verified path exists for this user without the code
            await self.db.execute(delete(User).where(User.id == user.id))
            await self.db.commit()
            logger.warning("Registration of %s rolled back: verification e-mail failed", email)
            raise ServerError("Failed to send verification email. Please try again!")

        logger.info("Registered user %s (id=%s)", email, user.id)
        return user

    async def verify_email(self, email: str, code: str) -> SessionResult:
        user = await self.get_by_email(email)
        if user is None:
            raise NotFound("User not found!")
        if user.is_verified:
            raise Conflict("User is already verified!")
        if not user.verification_code_matches(code.strip()):
            raise InvalidInput("Invalid or expired verification code!")

        user.is_verified = True
        user.verification_code = None
        user.verification_code_expiry = None
        tokens = await issue_tokens(self.db, self.settings, user)
        await self.db.commit()
        logger.info("Verified user %s", user.email)
        return SessionResult(user=user, tokens=tokens)

    async def resend_verification(self, email: str) -> None:
        user = await self.get_by_email(email)
        if user is None:
            raise NotFound("User not found!")
        if user.is_verified:
            raise Conflict("Email is already verified!")
        code = self._new_code(user)
        await self.db.commit()
        try:
            await self.mailer.send_verification_email(user.email, code, user.full_name)
        except MailDeliveryError:
            raise ServerError("Failed to send verification email. Please try again!")

    # ---------- login / sessions ----------

    async def login(self, email: str, password: str) -> SessionResult:
        user = await self.get_by_email(email)
        if user is None:
            raise NotFound("User not found!")
        now = utcnow()
        if user.is_locked(now):
            raise Locked()
        if not user.is_verified:
            raise Unauthorized("Please verify your email before logging in.", needsVerification=True)

        if not user.check_password(password):
            user.login_attempt = (user.login_attempt or 0) + 1
            if user.login_attempt > self.settings.max_login_attempts:
                user.lock_until = now + timedelta(minutes=self.settings.lockout_minutes)
                logger.warning("Locked %s after %d failed logins", user.email, user.login_attempt)
            await self.db.commit()
            raise InvalidInput("Invalid email or password!")

        user.login_attempt = 0
        user.lock_until = None
        tokens = await issue_tokens(self.db, self.settings, user)
        await self.db.commit()
        logger.info("Login for user id=%s", user.id)
        return SessionResult(user=user, tokens=tokens)

    async def refresh(self, refresh_token: str | None) -> tuple[User, str]:
        """New access token for a stored refresh token; the refresh token is kept as-is."""
        if not refresh_token:
            raise Unauthorized("No refresh token.")
        stored = await find_refresh_token(self.db, refresh_token)
        if stored is None:
            raise NotFound("User not found!")

        claims = decode_token(self.settings, refresh_token, expected_type=REFRESH)
        if claims is None or stored.is_expired():
            await self.db.delete(stored)
            await purge_expired_refresh_tokens(self.db)
            await self.db.commit()
            raise InvalidToken()

        user = await self.db.get(User, claims["id"])
        if user is None:
            raise NotFound("User not found.")
        return user, create_access_token(self.settings, user.id, user.role)

    async def logout(self, refresh_token: str | None) -> None:
        if await revoke_refresh_token(self.db, refresh_token):
            await self.db.commit()
            logger.info("Logged out a session")

    async def change_password(self, user_id: int, current_password: str, new_password: str) -> None:
        user = await self.get_by_id(user_id)
        if not user.check_password(current_password):
            raise InvalidInput("Wrong current password! Please enter a correct current password!")
        user.set_password(new_password)
        revoked = await revoke_user_tokens(self.db, user.id)
        await self.db.commit()
        logger.info("Password changed for user id=%s, %d sessions revoked", user.id, revoked)

    # ---------- administration ----------

    async def list_users(self, page: int, limit: int) -> tuple[list[User], int]:
        total = await self.db.scalar(select(func.count(User.id)))
        result = await self.db.execute(
            select(User).order_by(User.created_at.desc(), User.id.desc()).offset((page - 1) * limit).limit(limit)
        )
        return list(result.scalars().all()), total or 0

    async def delete_user(self, user_id: int) -> None:
        user = await self.get_by_id(user_id)
        await self.db.execute(delete(RefreshToken).where(RefreshToken.user_id == user.id))
        await self.db.execute(delete(UserProgress).where(UserProgress.user_id == user.id))
        await self.db.delete(user)
        await self.db.commit()
        logger.info("Deleted user id=%s", user_id)
