"""Course catalogue: course -> topics -> sub-topics (lessons)."""
from sqlalchemy import JSON, Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from elearn.core.clock import utcnow
from elearn.db.session import Base

CATEGORIES = (
    "Programming",
    "Web Development",
    "Data Science",
    "Mobile Development",
    "DevOps",
    "Design",
    "Other",
)
LEVELS = ("Beginner", "Intermediate", "Advanced")
TIERS = ("free", "premium")

DEFAULT_LESSON_MINUTES = 15


class Course(Base):
    __tablename__ = "courses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    instructor = Column(String(255), nullable=False, default="Admin")
    category = Column(String(32), nullable=False, default="Other", index=True)
    level = Column(String(16), nullable=False, default="Beginner", index=True)
    price = Column(Float, nullable=False, default=0)
    premium_price = Column(Float, nullable=False, default=1000)
    tier = Column(String(16), nullable=False, default="free")
    is_published = Column(Boolean, nullable=False, default=True)
    enrollment_count = Column(Integer, nullable=False, default=0)
    rating = Column(Float, nullable=False, default=0)
    tags = Column(JSON, nullable=False, default=list)
    thumbnail = Column(String(1024), nullable=False, default="")
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    topics = relationship(
        "Topic",
        back_populates="course",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="Topic.order",
    )

    def sub_topics(self) -> list["SubTopic"]:
        return [st for topic in self.topics for st in topic.sub_topics]

    @property
    def total_lessons(self) -> int:
        return len(self.sub_topics())

    @property
    def total_duration(self) -> int:
        return sum(st.duration or DEFAULT_LESSON_MINUTES for st in self.sub_topics())

    @property
    def free_lessons(self) -> int:
        return sum(1 for st in self.sub_topics() if st.tier == "free")

    @property
    def premium_lessons(self) -> int:
        return sum(1 for st in self.sub_topics() if st.tier == "premium")

    def lesson_ids(self) -> set[str]:
        return {str(st.id) for st in self.sub_topics()}


class Topic(Base):
    __tablename__ = "topics"

    id = Column(Integer, primary_key=True, autoincrement=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(String(500), nullable=False, default="")
    order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    course = relationship("Course", back_populates="topics")
    sub_topics = relationship(
        "SubTopic",
        back_populates="topic",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="SubTopic.order",
    )


class SubTopic(Base):
    __tablename__ = "sub_topics"

    id = Column(Integer, primary_key=True, autoincrement=True)
    topic_id = Column(Integer, ForeignKey("topics.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    video_content = Column(String(1000), nullable=False)
    video_url = Column(String(1024), nullable=False, default="")
    duration = Column(Integer, nullable=False, default=DEFAULT_LESSON_MINUTES)  # minutes
    order = Column(Integer, nullable=False, default=0)
    tier = Column(String(16), nullable=False, default="free")
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    topic = relationship("Topic", back_populates="sub_topics")
