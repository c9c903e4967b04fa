# app/models/topic_progress.py
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)

from app.core.database import Base


class TopicProgress(Base):
    __tablename__ = "topic_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "topic_id", name="uq_topic_progress_user_topic"),
    )

    id = Column(Integer, primary_key=True, index=True)

    user_id = Column(String(64), nullable=False, index=True)
    topic_id = Column(String(36), ForeignKey("topics.id"), nullable=False, index=True)

    # NOT_STARTED, IN_PROGRESS, COMPLETED, NEEDS_REVIEW
    status = Column(String(20), default="NOT_STARTED", nullable=False)

    # Assessment results
    best_score = Column(Integer, nullable=True)  # Best passing attempt score
    mastery_achieved = Column(Boolean, default=False, nullable=False)
    completion_rate = Column(Integer, default=0, nullable=False)

    # Access tracking
    view_count = Column(Integer, default=0, nullable=False)
    attempt_count = Column(Integer, default=0, nullable=False)

    # Timestamps
    started_at = Column(DateTime(timezone=True), nullable=True)
    last_access_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<TopicProgress(user_id={self.user_id}, topic_id={self.topic_id}, status={self.status})>"
