"""Course catalogue routes."""
from typing import Literal

from fastapi import APIRouter, Query, status

from elearn.core.errors import NotFound
from elearn.dependencies import AdminIdentity, Courses, OptionalIdentity
from elearn.models.user import ROLE_ADMIN
from elearn.schemas.course import CourseInSchema, CourseUpdateSchema
from elearn.services.courses import serialize_course

router = APIRouter(prefix="/api/courses", tags=["courses"])


@router.get("")
async def list_courses(
    courses: Courses,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    category: str | None = None,
    level: str | None = None,
    search: str | None = None,
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder"),
):
    listing = await courses.list_courses(page, limit, category, level, search, sort_by, sort_order)
    return {"success": True, **listing}


@router.get("/stats")
async def course_stats(_: AdminIdentity, courses: Courses):
    return {"success": True, "data": await courses.stats()}


@router.get("/{course_id}")
async def get_course(course_id: int, courses: Courses, identity: OptionalIdentity):
    course = await courses.get(course_id)
    # drafts are visible to admins only
    if not course.is_published and (identity is None or identity.role != ROLE_ADMIN):
        raise NotFound("Course not found")
    return {"success": True, "data": serialize_course(course)}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_course(body: CourseInSchema, _: AdminIdentity, courses: Courses):
    course = await courses.create(body)
    return {"success": True, "message": "Course created successfully", "data": serialize_course(course)}


@router.put("/{course_id}")
async def update_course(course_id: int, body: CourseUpdateSchema, _: AdminIdentity, courses: Courses):
    course = await courses.update(course_id, body)
    return {"success": True, "message": "Course updated successfully", "data": serialize_course(course)}


@router.delete("/{course_id}")
async def delete_course(course_id: int, _: AdminIdentity, courses: Courses):
    await courses.delete(course_id)
    return {"success": True, "message": "Course deleted successfully"}
