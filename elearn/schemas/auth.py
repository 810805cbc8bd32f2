"""Pydantic schemas for the account endpoints."""
from typing import Literal

from pydantic import EmailStr, Field

from elearn.schemas.base import CamelSchema


class RegisterSchema(CamelSchema):
    full_name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    role: Literal["user", "admin"] = "user"
    password: str = Field(min_length=1)


class VerifyEmailSchema(CamelSchema):
    email: EmailStr
    verification_code: str = Field(min_length=1, max_length=16)


class EmailOnlySchema(CamelSchema):
    email: EmailStr


class LoginSchema(CamelSchema):
    email: EmailStr
    password: str = Field(min_length=1)


class RefreshSchema(CamelSchema):
    refresh_token: str | None = None


class ChangePasswordSchema(CamelSchema):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=1)
