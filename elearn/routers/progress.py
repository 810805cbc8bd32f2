"""Per-user course progress and enrollment."""
from fastapi import APIRouter

from elearn.dependencies import CurrentIdentity, Progress
from elearn.schemas.progress import ProgressUpdateSchema

router = APIRouter(prefix="/api/courses", tags=["progress"])


@router.get("/{course_id}/progress")
async def get_progress(course_id: int, identity: CurrentIdentity, progress: Progress):
    """Never 404s: a user with no record gets the zero-valued shape."""
    return {"success": True, "data": await progress.get_progress(identity.id, course_id)}


@router.post("/{course_id}/progress")
async def update_progress(course_id: int, body: ProgressUpdateSchema, identity: CurrentIdentity, progress: Progress):
    data = await progress.update_progress(identity.id, course_id, body.sub_topic_id, body.completed)
    return {"success": True, "message": "Progress updated successfully", "data": data}


@router.post("/{course_id}/enroll")
async def enroll(course_id: int, identity: CurrentIdentity, progress: Progress):
    data = await progress.enroll(identity.id, course_id)
    return {"success": True, "message": "Enrolled successfully", "data": data}
