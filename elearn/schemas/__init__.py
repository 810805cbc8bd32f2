from elearn.schemas.auth import (
    ChangePasswordSchema,
    EmailOnlySchema,
    LoginSchema,
    RefreshSchema,
    RegisterSchema,
    VerifyEmailSchema,
)
from elearn.schemas.course import (
    CourseInSchema,
    CourseOutSchema,
    CourseUpdateSchema,
    SubTopicInSchema,
    SubTopicUpdateSchema,
    TopicInSchema,
    TopicUpdateSchema,
)
from elearn.schemas.payment import EsewaPaymentDataSchema, VerifyEsewaLegacySchema, VerifyEsewaV2Schema
from elearn.schemas.progress import ProgressUpdateSchema

__all__ = [
    "ChangePasswordSchema",
    "EmailOnlySchema",
    "LoginSchema",
    "RefreshSchema",
    "RegisterSchema",
    "VerifyEmailSchema",
    "CourseInSchema",
    "CourseOutSchema",
    "CourseUpdateSchema",
    "SubTopicInSchema",
    "SubTopicUpdateSchema",
    "TopicInSchema",
    "TopicUpdateSchema",
    "EsewaPaymentDataSchema",
    "VerifyEsewaLegacySchema",
    "VerifyEsewaV2Schema",
    "ProgressUpdateSchema",
]
