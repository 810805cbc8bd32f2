from elearn.models.course import Course, SubTopic, Topic
from elearn.models.payment import Payment
from elearn.models.progress import UserProgress
from elearn.models.token import RefreshToken
from elearn.models.user import User, UserCourse

__all__ = ["User", "UserCourse", "RefreshToken", "Course", "Topic", "SubTopic", "UserProgress", "Payment"]
