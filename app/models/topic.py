# app/models/topic.py
import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.sql import func

from app.core.database import Base


class Topic(Base):
    __tablename__ = "topics"

    id = Column(String(36), primary_key=True, default=lambda: uuid.uuid4().hex)

    # Module relationship
    module_id = Column(
        String(36), ForeignKey("modules.id"), nullable=False, index=True
    )

    # Basic Info
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=True)

    # Order/Position in module
    order_index = Column(Integer, default=0, nullable=False)

    # Completion rules
    is_required = Column(Boolean, default=True, nullable=False)
    allow_skip = Column(Boolean, default=False, nullable=False)
    passing_score = Column(Integer, default=70, nullable=False)
    max_attempts = Column(
        Integer, nullable=True
    )  # Default quota for quizzes without their own (null = unlimited)
    prerequisite_topic_id = Column(String(36), ForeignKey("topics.id"), nullable=True)

    # Timestamps
    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self):
        return f"<Topic(id={self.id}, title='{self.title}', module_id={self.module_id})>"
