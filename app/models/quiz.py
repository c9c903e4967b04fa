# app/models/quiz.py
import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.sql import func

from app.core.database import Base


class Quiz(Base):
    __tablename__ = "quizzes"

    id = Column(String(36), primary_key=True, default=lambda: uuid.uuid4().hex)

    # Topic relationship
    topic_id = Column(String(36), ForeignKey("topics.id"), nullable=False, index=True)

    # Basic Info
    title = Column(String(255), nullable=False, default="")
    description = Column(Text, nullable=True)

    # Quiz settings
    passing_score = Column(
        Integer, default=70, nullable=False
    )  # Passing score percentage (e.g., 70 for 70%)
    max_attempts = Column(
        Integer, nullable=True
    )  # Maximum number of attempts allowed (null = fall back to the topic)
    shuffle_questions = Column(Boolean, default=False, nullable=False)
    shuffle_options = Column(Boolean, default=False, nullable=False)
    allow_partial_credit = Column(Boolean, default=False, nullable=False)

    # Timestamps
    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self):
        return f"<Quiz(id={self.id}, title='{self.title}', topic_id={self.topic_id})>"
