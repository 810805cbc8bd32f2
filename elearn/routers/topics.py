"""Routes for editing a course's topics and their sub-topics (admin only)."""
from fastapi import APIRouter, status

from elearn.dependencies import AdminIdentity, Courses
from elearn.schemas.course import SubTopicInSchema, SubTopicUpdateSchema, TopicInSchema, TopicUpdateSchema
from elearn.services.courses import serialize_sub_topic, serialize_topic

router = APIRouter(prefix="/api", tags=["topics"])


@router.post("/topics/{course_id}", status_code=status.HTTP_201_CREATED)
async def add_topic(course_id: int, body: TopicInSchema, _: AdminIdentity, courses: Courses):
    topic = await courses.add_topic(course_id, body)
    return {"success": True, "message": "Topic added successfully", "data": serialize_topic(topic)}


@router.put("/topics/{course_id}/{topic_id}")
async def update_topic(course_id: int, topic_id: int, body: TopicUpdateSchema, _: AdminIdentity, courses: Courses):
    topic = await courses.update_topic(course_id, topic_id, body)
    return {"success": True, "message": "Topic updated successfully", "data": serialize_topic(topic)}


@router.delete("/topics/{course_id}/{topic_id}")
async def delete_topic(course_id: int, topic_id: int, _: AdminIdentity, courses: Courses):
    await courses.delete_topic(course_id, topic_id)
    return {"success": True, "message": "Topic deleted successfully"}


@router.post("/subtopics/{course_id}/{topic_id}", status_code=status.HTTP_201_CREATED)
async def add_sub_topic(course_id: int, topic_id: int, body: SubTopicInSchema, _: AdminIdentity, courses: Courses):
    sub_topic = await courses.add_sub_topic(course_id, topic_id, body)
    return {"success": True, "message": "Sub-topic added successfully", "data": serialize_sub_topic(sub_topic)}


@router.put("/subtopics/{course_id}/{topic_id}/{sub_topic_id}")
async def update_sub_topic(
    course_id: int,
    topic_id: int,
    sub_topic_id: int,
    body: SubTopicUpdateSchema,
    _: AdminIdentity,
    courses: Courses,
):
    sub_topic = await courses.update_sub_topic(course_id, topic_id, sub_topic_id, body)
    return {"success": True, "message": "Sub-topic updated successfully", "data": serialize_sub_topic(sub_topic)}


@router.delete("/subtopics/{course_id}/{topic_id}/{sub_topic_id}")
async def delete_sub_topic(course_id: int, topic_id: int, sub_topic_id: int, _: AdminIdentity, courses: Courses):
    await courses.delete_sub_topic(course_id, topic_id, sub_topic_id)
    return {"success": True, "message": "Sub-topic deleted successfully"}
