"""Pydantic schemas for courses, topics and sub-topics."""
from datetime import datetime
from typing import Literal

from pydantic import Field

from elearn.schemas.base import CamelSchema

Category = Literal[
    "Programming",
    "Web Development",
    "Data Science",
    "Mobile Development",
    "DevOps",
    "Design",
    "Other",
]
Level = Literal["Beginner", "Intermediate", "Advanced"]
Tier = Literal["free", "premium"]


class SubTopicInSchema(CamelSchema):
    title: str = Field(min_length=3, max_length=200)
    video_content: str = Field(min_length=10, max_length=1000)
    video_url: str = ""
    duration: int = Field(15, ge=1)
    order: int = 0
    tier: Tier = "free"


class SubTopicUpdateSchema(CamelSchema):
    title: str | None = Field(None, min_length=3, max_length=200)
    video_content: str | None = Field(None, min_length=10, max_length=1000)
    video_url: str | None = None
    duration: int | None = Field(None, ge=1)
    order: int | None = None
    tier: Tier | None = None


class TopicInSchema(CamelSchema):
    title: str = Field(min_length=3, max_length=200)
    description: str = Field("", max_length=500)
    order: int | None = None
    sub_topics: list[SubTopicInSchema] = Field(default_factory=list)


class TopicUpdateSchema(CamelSchema):
    title: str | None = Field(None, min_length=3, max_length=200)
    description: str | None = Field(None, max_length=500)
    order: int | None = None


class CourseInSchema(CamelSchema):
    title: str = Field(min_length=3, max_length=200)
    description: str = Field(min_length=10, max_length=1000)
    instructor: str = "Admin"
    category: Category = "Other"
    level: Level = "Beginner"
    price: float = Field(0, ge=0)
    premium_price: float = Field(1000, ge=0)
    tier: Tier = "free"
    is_published: bool = True
    rating: float = Field(0, ge=0, le=5)
    tags: list[str] = Field(default_factory=list)
    thumbnail: str = ""
    topics: list[TopicInSchema] = Field(default_factory=list)


class CourseUpdateSchema(CamelSchema):
    title: str | None = Field(None, min_length=3, max_length=200)
    description: str | None = Field(None, min_length=10, max_length=1000)
    instructor: str | None = None
    category: Category | None = None
    level: Level | None = None
    price: float | None = Field(None, ge=0)
    premium_price: float | None = Field(None, ge=0)
    tier: Tier | None = None
    is_published: bool | None = None
    rating: float | None = Field(None, ge=0, le=5)
    tags: list[str] | None = None
    thumbnail: str | None = None
    topics: list[TopicInSchema] | None = None


class SubTopicOutSchema(CamelSchema):
    id: int = Field(serialization_alias="_id")
    title: str
    video_content: str
    video_url: str
    duration: int
    order: int
    tier: str


class TopicOutSchema(CamelSchema):
    id: int = Field(serialization_alias="_id")
    title: str
    description: str
    order: int
    sub_topics: list[SubTopicOutSchema]


class CourseOutSchema(CamelSchema):
    id: int = Field(serialization_alias="_id")
    title: str
    description: str
    instructor: str
    category: str
    level: str
    price: float
    premium_price: float
    tier: str
    is_published: bool
    enrollment_count: int
    rating: float
    tags: list[str]
    thumbnail: str
    topics: list[TopicOutSchema]
    total_lessons: int
    total_duration: int
    free_lessons: int
    premium_lessons: int
    created_at: datetime
    updated_at: datetime
