"""SQLAlchemy declarative base and model imports for Alembic."""
from elearn.db.session import Base

# Import all models so Alembic can see them
from elearn.models.course import Course, SubTopic, Topic  # noqa: F401
from elearn.models.payment import Payment  # noqa: F401
from elearn.models.progress import UserProgress  # noqa: F401
from elearn.models.token import RefreshToken  # noqa: F401
from elearn.models.user import User, UserCourse  # noqa: F401

__all__ = ["Base", "User", "UserCourse", "RefreshToken", "Course", "Topic", "SubTopic", "UserProgress", "Payment"]
