"""Pydantic schemas for eSewa payment confirmation."""
from pydantic import field_validator

from elearn.schemas.base import CamelSchema


def _stringify(value):
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


class EsewaPaymentDataSchema(CamelSchema):
    """Fields eSewa v2 reports back to the success URL (all checked by the service)."""

    transaction_code: str | None = None
    status: str | None = None
    total_amount: str | None = None
    transaction_uuid: str | None = None
    product_code: str | None = None
    signed_field_names: str | None = None
    signature: str | None = None

    @field_validator("total_amount", "transaction_code", mode="before")
    @classmethod
    def numbers_as_text(cls, value):
        return _stringify(value)


class VerifyEsewaV2Schema(CamelSchema):
    # either the decoded fields or the raw base64 `data` blob from the redirect
    payment_data: EsewaPaymentDataSchema | str
    course_id: int


class VerifyEsewaLegacySchema(CamelSchema):
    oid: str | None = None
    amt: str | None = None
    ref_id: str | None = None

    @field_validator("amt", "ref_id", mode="before")
    @classmethod
    def numbers_as_text(cls, value):
        return _stringify(value)
