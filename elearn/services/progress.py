"""Progress tracker: enrollment, lesson completion and the shared upsert primitives."""
import logging
from dataclasses import dataclass

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from elearn.core.clock import utcnow
from elearn.core.errors import NotFound
from elearn.models.course import Course
from elearn.models.progress import UserProgress
from elearn.models.user import ENROLLED, UserCourse

logger = logging.getLogger(__name__)


@dataclass
class Upserted:
    progress: UserProgress
    inserted: bool


async def upsert_progress(db: AsyncSession, user_id: int, course_id: int) -> Upserted:
    """Fetch the (user, course) progress row under a row lock, creating it if absent.

    ``inserted`` is True only for the call that actually created the row; a
    concurrent insert that loses on the unique key re-reads the winner's row.
    """
    stmt = (
        select(UserProgress)
        .where(UserProgress.user_id == user_id, UserProgress.course_id == course_id)
        .with_for_update()
    )
    progress = (await db.execute(stmt)).scalar_one_or_none()
    if progress is not None:
        return Upserted(progress, inserted=False)

    progress = UserProgress(user_id=user_id, course_id=course_id, completed_lessons=[], is_premium=False)
    try:
        async with db.begin_nested():
            db.add(progress)
    except IntegrityError:
        progress = (await db.execute(stmt)).scalar_one()
        return Upserted(progress, inserted=False)
    return Upserted(progress, inserted=True)


async def add_user_course(db: AsyncSession, user_id: int, course_id: int, kind: str) -> bool:
    """Set-add of a course to one of the user's course lists."""
    exists = await db.scalar(
        select(UserCourse.id).where(
            UserCourse.user_id == user_id, UserCourse.course_id == course_id, UserCourse.kind == kind
        )
    )
    if exists:
        return False
    try:
        async with db.begin_nested():
            db.add(UserCourse(user_id=user_id, course_id=course_id, kind=kind))
    except IntegrityError:
        return False
    return True


async def mark_enrolled(db: AsyncSession, progress: UserProgress) -> bool:
    """Stamp the enrollment time once and count the enrollee once.

    Returns True when this call was the user's first enrollment in the course.
    """
    if progress.enrolled_at is not None:
        return False
    progress.enrolled_at = utcnow()
    await db.execute(
        update(Course)
        .where(Course.id == progress.course_id)
        .values(enrollment_count=Course.enrollment_count + 1)
    )
    return True


def progress_percentage(completed: list[str], course: Course | None) -> float:
    if course is None:
        return 0
    lesson_ids = course.lesson_ids()
    if not lesson_ids:
        return 0
    done = len(lesson_ids.intersection(completed))
    return round(done / len(lesson_ids) * 100, 1)


def serialize_progress(progress: UserProgress, course: Course | None) -> dict:
    return {
        "_id": progress.id,
        "userId": progress.user_id,
        "courseId": progress.course_id,
        "completedLessons": list(progress.completed_lessons or []),
        "lastAccessedLesson": progress.last_accessed_lesson,
        "enrolledAt": progress.enrolled_at,
        "isPremium": progress.is_premium,
        "premiumPurchasedAt": progress.premium_purchased_at,
        "progressPercentage": progress_percentage(progress.completed_lessons or [], course),
        "createdAt": progress.created_at,
        "updatedAt": progress.updated_at,
    }


def empty_progress(course_id: int) -> dict:
    return {
        "courseId": course_id,
        "completedLessons": [],
        "progressPercentage": 0,
        "enrolledAt": None,
        "isPremium": False,
    }


class ProgressService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_course(self, course_id: int) -> Course:
        course = await self.db.get(Course, course_id)
        if course is None:
            raise NotFound("Course not found")
        return course

    async def get_progress(self, user_id: int, course_id: int) -> dict:
        result = await self.db.execute(
            select(UserProgress).where(UserProgress.user_id == user_id, UserProgress.course_id == course_id)
        )
        progress = result.scalar_one_or_none()
        if progress is None:
            return empty_progress(course_id)
        course = await self.db.get(Course, course_id)
        return serialize_progress(progress, course)

    async def update_progress(self, user_id: int, course_id: int, sub_topic_id: str, completed: bool) -> dict:
        upserted = await upsert_progress(self.db, user_id, course_id)
        progress = upserted.progress
        lessons = list(progress.completed_lessons or [])
        if completed and sub_topic_id not in lessons:
            lessons.append(sub_topic_id)
        elif not completed:
            lessons = [lesson for lesson in lessons if lesson != sub_topic_id]
        # new list object so the JSON column is flagged dirty
        progress.completed_lessons = lessons
        progress.last_accessed_lesson = sub_topic_id
        await self.db.commit()
        course = await self.db.get(Course, course_id)
        return serialize_progress(progress, course)

    async def enroll(self, user_id: int, course_id: int) -> dict:
        course = await self._get_course(course_id)
        upserted = await upsert_progress(self.db, user_id, course_id)
        first = await mark_enrolled(self.db, upserted.progress)
        await add_user_course(self.db, user_id, course_id, ENROLLED)
        await self.db.commit()
        if first:
            logger.info("User %s enrolled in course %s", user_id, course_id)
        return serialize_progress(upserted.progress, course)
