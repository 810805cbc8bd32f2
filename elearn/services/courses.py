"""Course catalogue: courses with nested topics and sub-topics."""
import logging
import math

from sqlalchemy import asc, desc, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from elearn.core.errors import NotFound, ValidationFailed
from elearn.models.course import Course, SubTopic, Topic
from elearn.schemas.course import (
    CourseInSchema,
    CourseOutSchema,
    CourseUpdateSchema,
    SubTopicInSchema,
    SubTopicOutSchema,
    SubTopicUpdateSchema,
    TopicInSchema,
    TopicOutSchema,
    TopicUpdateSchema,
)

logger = logging.getLogger(__name__)

SORTABLE = {
    "createdAt": Course.created_at,
    "updatedAt": Course.updated_at,
    "title": Course.title,
    "price": Course.price,
    "rating": Course.rating,
    "enrollmentCount": Course.enrollment_count,
}


def serialize_course(course: Course) -> dict:
    return CourseOutSchema.model_validate(course).model_dump(by_alias=True)


def serialize_topic(topic: Topic) -> dict:
    return TopicOutSchema.model_validate(topic).model_dump(by_alias=True)


def serialize_sub_topic(sub_topic: SubTopic) -> dict:
    return SubTopicOutSchema.model_validate(sub_topic).model_dump(by_alias=True)


def _build_sub_topic(data: SubTopicInSchema, default_order: int = 0) -> SubTopic:
    sub_topic = SubTopic(**data.model_dump())
    if "order" not in data.model_fields_set:
        sub_topic.order = default_order
    return sub_topic


def _build_topic(data: TopicInSchema, default_order: int) -> Topic:
    return Topic(
        title=data.title,
        description=data.description,
        order=data.order if data.order is not None else default_order,
        sub_topics=[_build_sub_topic(st, i) for i, st in enumerate(data.sub_topics)],
    )


class CourseService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, course_id: int) -> Course:
        course = await self.db.get(Course, course_id)
        if course is None:
            raise NotFound("Course not found")
        return course

    async def _reload(self, course_id: int) -> Course:
        # populate_existing re-runs the selectin loaders after nested changes
        result = await self.db.execute(
            select(Course).where(Course.id == course_id).execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def list_courses(
        self,
        page: int = 1,
        limit: int = 10,
        category: str | None = None,
        level: str | None = None,
        search: str | None = None,
        sort_by: str = "createdAt",
        sort_order: str = "desc",
    ) -> dict:
        conditions = [Course.is_published.is_(True)]
        if category and category != "all":
            conditions.append(Course.category == category)
        if level and level != "all":
            conditions.append(Course.level == level)
        if search:
            pattern = f"%{search.lower()}%"
            conditions.append(or_(func.lower(Course.title).like(pattern), func.lower(Course.description).like(pattern)))

        if sort_by not in SORTABLE:
            raise ValidationFailed(f"Cannot sort by '{sort_by}'")
        column = SORTABLE[sort_by]
        ordering = desc(column) if sort_order == "desc" else asc(column)

        total = await self.db.scalar(select(func.count(Course.id)).where(*conditions)) or 0
        result = await self.db.execute(
            select(Course).where(*conditions).order_by(ordering, Course.id).offset((page - 1) * limit).limit(limit)
        )
        courses = result.scalars().all()
        return {
            "data": [serialize_course(c) for c in courses],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": math.ceil(total / limit) if limit else 0,
            },
        }

    async def stats(self) -> dict:
        total = await self.db.scalar(select(func.count(Course.id))) or 0
        published = await self.db.scalar(select(func.count(Course.id)).where(Course.is_published.is_(True))) or 0
        enrollments = await self.db.scalar(select(func.coalesce(func.sum(Course.enrollment_count), 0))) or 0

        async def grouped(column):
            rows = await self.db.execute(
                select(column, func.count(Course.id).label("count")).group_by(column).order_by(desc("count"))
            )
            return [{"_id": key, "count": count} for key, count in rows.all()]

        return {
            "totalCourses": total,
            "publishedCourses": published,
            "totalEnrollments": enrollments,
            "categoryStats": await grouped(Course.category),
            "levelStats": await grouped(Course.level),
        }

    async def create(self, data: CourseInSchema) -> Course:
        fields = data.model_dump(exclude={"topics"})
        course = Course(**fields, enrollment_count=0)
        course.topics = [_build_topic(t, i) for i, t in enumerate(data.topics)]
        self.db.add(course)
        await self.db.commit()
        logger.info("Created course %s (%s)", course.id, course.title)
        return await self._reload(course.id)

    async def update(self, course_id: int, data: CourseUpdateSchema) -> Course:
        course = await self.get(course_id)
        changes = data.model_dump(exclude_unset=True, exclude={"topics"})
        for name, value in changes.items():
            if value is None:
                raise ValidationFailed(f"'{name}' cannot be null")
            setattr(course, name, value)
        if data.topics is not None:
            course.topics = [_build_topic(t, i) for i, t in enumerate(data.topics)]
        await self.db.commit()
        return await self._reload(course_id)

    async def delete(self, course_id: int) -> None:
        course = await self.get(course_id)
        await self.db.delete(course)
        await self.db.commit()
        logger.info("Deleted course %s", course_id)

    # ---------- topics ----------

    async def _get_topic(self, course_id: int, topic_id: int) -> Topic:
        await self.get(course_id)
        topic = await self.db.get(Topic, topic_id)
        if topic is None or topic.course_id != course_id:
            raise NotFound("Topic not found")
        return topic

    async def add_topic(self, course_id: int, data: TopicInSchema) -> Topic:
        course = await self.get(course_id)
        topic = _build_topic(data, default_order=len(course.topics))
        course.topics.append(topic)
        await self.db.commit()
        return await self._reload_topic(topic.id)

    async def update_topic(self, course_id: int, topic_id: int, data: TopicUpdateSchema) -> Topic:
        topic = await self._get_topic(course_id, topic_id)
        for name, value in data.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(topic, name, value)
        await self.db.commit()
        return await self._reload_topic(topic_id)

    async def delete_topic(self, course_id: int, topic_id: int) -> None:
        topic = await self._get_topic(course_id, topic_id)
        await self.db.delete(topic)
        await self.db.commit()

    async def _reload_topic(self, topic_id: int) -> Topic:
        result = await self.db.execute(
            select(Topic).where(Topic.id == topic_id).execution_options(populate_existing=True)
        )
        return result.scalar_one()

    # ---------- sub-topics ----------

    async def _get_sub_topic(self, course_id: int, topic_id: int, sub_topic_id: int) -> SubTopic:
        await self._get_topic(course_id, topic_id)
        sub_topic = await self.db.get(SubTopic, sub_topic_id)
        if sub_topic is None or sub_topic.topic_id != topic_id:
            raise NotFound("Sub-topic not found")
        return sub_topic

    async def add_sub_topic(self, course_id: int, topic_id: int, data: SubTopicInSchema) -> SubTopic:
        topic = await self._get_topic(course_id, topic_id)
        sub_topic = _build_sub_topic(data, default_order=len(topic.sub_topics))
        topic.sub_topics.append(sub_topic)
        await self.db.commit()
        return sub_topic

    async def update_sub_topic(
        self, course_id: int, topic_id: int, sub_topic_id: int, data: SubTopicUpdateSchema
    ) -> SubTopic:
        sub_topic = await self._get_sub_topic(course_id, topic_id, sub_topic_id)
        for name, value in data.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(sub_topic, name, value)
        await self.db.commit()
        return sub_topic

    async def delete_sub_topic(self, course_id: int, topic_id: int, sub_topic_id: int) -> None:
        sub_topic = await self._get_sub_topic(course_id, topic_id, sub_topic_id)
        await self.db.delete(sub_topic)
        await self.db.commit()
