"""Auth routes: register, verify e-mail, login, refresh, logout, me.

Session tokens travel both in the JSON body and as httpOnly cookies.
"""
from fastapi import APIRouter, Request, Response, status
from pydantic import ValidationError

from elearn.core.config import Settings
from elearn.dependencies import Accounts, AppSettings, CurrentIdentity
from elearn.schemas.auth import (
    EmailOnlySchema,
    LoginSchema,
    RefreshSchema,
    RegisterSchema,
    VerifyEmailSchema,
)
from elearn.services.accounts import public_user
from elearn.services.tokens import IssuedTokens

router = APIRouter(prefix="/api/auth/v1", tags=["auth"])


def _set_access_cookie(response: Response, settings: Settings, token: str) -> None:
    response.set_cookie(
        key=settings.access_cookie_name,
        value=token,
        max_age=settings.access_cookie_max_age,
        httponly=True,
        secure=settings.is_production,
        samesite=settings.cookie_samesite,
        path="/",
    )


def _set_session_cookies(response: Response, settings: Settings, tokens: IssuedTokens) -> None:
    response.set_cookie(
        key=settings.refresh_cookie_name,
        value=tokens.refresh_token,
        max_age=settings.refresh_cookie_max_age,
        httponly=True,
        secure=settings.is_production,
        samesite=settings.cookie_samesite,
        path="/",
    )
    _set_access_cookie(response, settings, tokens.access_token)


def _clear_session_cookies(response: Response, settings: Settings) -> None:
    # path/flags must match what set_cookie() used
    for name in (settings.refresh_cookie_name, settings.access_cookie_name):
        response.delete_cookie(
            name,
            path="/",
            httponly=True,
            secure=settings.is_production,
            samesite=settings.cookie_samesite,
        )


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(body: RegisterSchema, accounts: Accounts):
    """Create an unverified account and e-mail its verification code."""
    user = await accounts.register(body.full_name, body.email, body.password, role=body.role)
    return {
        "success": True,
        "userId": user.id,
        "email": user.email,
        "message": "Registration successful! Please verify your email.",
    }


@router.post("/verify-email")
async def verify_email(body: VerifyEmailSchema, response: Response, accounts: Accounts, settings: AppSettings):
    session = await accounts.verify_email(body.email, body.verification_code)
    _set_session_cookies(response, settings, session.tokens)
    return {
        "success": True,
        "message": "Email verified successfully!",
        "user": public_user(session.user),
        "token": session.tokens.access_token,
    }


@router.post("/resend-verification-code")
async def resend_verification_code(body: EmailOnlySchema, accounts: Accounts):
    await accounts.resend_verification(body.email)
    return {"success": True, "message": "Verification code sent successfully!"}


@router.post("/login")
async def login(body: LoginSchema, response: Response, accounts: Accounts, settings: AppSettings):
    session = await accounts.login(body.email, body.password)
    _set_session_cookies(response, settings, session.tokens)
    return {
        "success": True,
        "message": "Login successful!",
        "accessToken": session.tokens.access_token,
        "user": public_user(session.user),
    }


async def _presented_refresh_token(request: Request, settings: Settings) -> str | None:
    token = request.cookies.get(settings.refresh_cookie_name)
    if token:
        return token
    # mobile clients have no cookie jar and send it in the body
    if request.headers.get("content-type", "").startswith("application/json"):
        body = await request.body()
        if body:
            try:
                return RefreshSchema.model_validate_json(body).refresh_token
            except ValidationError:
                return None
    return None


@router.post("/refresh-token")
async def refresh_token(request: Request, response: Response, accounts: Accounts, settings: AppSettings):
    token = await _presented_refresh_token(request, settings)
    user, access_token = await accounts.refresh(token)
    _set_access_cookie(response, settings, access_token)
    return {
        "success": True,
        "message": "Access token refreshed.",
        "token": access_token,
        "user": public_user(user),
    }


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(request: Request, accounts: Accounts, settings: AppSettings):
    await accounts.logout(await _presented_refresh_token(request, settings))
    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    _clear_session_cookies(response, settings)
    return response


@router.get("/me")
async def me(identity: CurrentIdentity, accounts: Accounts):
    user = await accounts.get_by_id(identity.id)
    return {"success": True, "user": public_user(user)}
