"""Request-scoped dependencies: settings, collaborators, identity and role gates."""
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from elearn.core.config import Settings
from elearn.core.errors import Forbidden, InvalidToken, Unauthorized
from elearn.core.security import ACCESS, decode_token
from elearn.db.session import get_db
from elearn.services.accounts import AccountService
from elearn.services.courses import CourseService
from elearn.services.esewa import EsewaClient
from elearn.services.mailer import Mailer
from elearn.services.payments import PaymentService
from elearn.services.progress import ProgressService


@dataclass(frozen=True)
class Identity:
    """Who made the request, as stated by the access token (not re-fetched)."""

    id: int
    role: str


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_mailer(request: Request) -> Mailer:
    return request.app.state.mailer


def get_gateway(request: Request) -> EsewaClient:
    return request.app.state.gateway


DbSession = Annotated[AsyncSession, Depends(get_db)]
AppSettings = Annotated[Settings, Depends(get_app_settings)]


def _extract_token(request: Request, settings: Settings) -> str | None:
    # cookie wins over the Authorization header
    token = request.cookies.get(settings.access_cookie_name)
    if token:
        return token
    header = request.headers.get("Authorization", "")
    if header.startswith("Bearer "):
        return header[len("Bearer "):].strip() or None
    return None


def get_identity(request: Request, settings: AppSettings) -> Identity:
    token = _extract_token(request, settings)
    if not token:
        raise Unauthorized("Authentication required")
    claims = decode_token(settings, token, expected_type=ACCESS)
    if claims is None:
        raise InvalidToken("Invalid token")
    return Identity(id=int(claims["id"]), role=claims.get("role", "user"))


def get_optional_identity(request: Request, settings: AppSettings) -> Identity | None:
    token = _extract_token(request, settings)
    if not token:
        return None
    claims = decode_token(settings, token, expected_type=ACCESS)
    if claims is None:
        return None
    return Identity(id=int(claims["id"]), role=claims.get("role", "user"))


CurrentIdentity = Annotated[Identity, Depends(get_identity)]
OptionalIdentity = Annotated[Identity | None, Depends(get_optional_identity)]


def require_roles(*roles: str):
    """Dependency factory: flat allow-list of roles, no hierarchy."""

    def checker(identity: CurrentIdentity) -> Identity:
        if identity.role not in roles:
            raise Forbidden(f"Role '{identity.role}' is not allowed to access this resource")
        return identity

    return checker


AdminIdentity = Annotated[Identity, Depends(require_roles("admin"))]


def get_account_service(
    db: DbSession,
    settings: AppSettings,
    mailer: Annotated[Mailer, Depends(get_mailer)],
) -> AccountService:
    return AccountService(db, settings, mailer)


def get_course_service(db: DbSession) -> CourseService:
    return CourseService(db)


def get_progress_service(db: DbSession) -> ProgressService:
    return ProgressService(db)


def get_payment_service(
    db: DbSession,
    settings: AppSettings,
    gateway: Annotated[EsewaClient, Depends(get_gateway)],
) -> PaymentService:
    return PaymentService(db, settings, gateway)


Accounts = Annotated[AccountService, Depends(get_account_service)]
Courses = Annotated[CourseService, Depends(get_course_service)]
Progress = Annotated[ProgressService, Depends(get_progress_service)]
Payments = Annotated[PaymentService, Depends(get_payment_service)]
