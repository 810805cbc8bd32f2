"""Pydantic schemas for progress tracking."""
from pydantic import Field, field_validator

from elearn.schemas.base import CamelSchema


class ProgressUpdateSchema(CamelSchema):
    sub_topic_id: str = Field(min_length=1, max_length=64)
    completed: bool = True

    @field_validator("sub_topic_id", mode="before")
    @classmethod
    def _coerce_id(cls, value):
        # clients send numeric ids as numbers or strings
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value
