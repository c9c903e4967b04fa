# app/models/quiz_attempt.py
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func

from app.core.database import Base


class QuizAttempt(Base):
    """Append-only: rows are inserted once per submission and never updated."""

    __tablename__ = "quiz_attempts"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "quiz_id", "attempt_number", name="uq_quiz_attempt_sequence"
        ),
    )

    id = Column(Integer, primary_key=True, index=True)

    # Relationships
    user_id = Column(String(64), nullable=False, index=True)
    quiz_id = Column(String(36), ForeignKey("quizzes.id"), nullable=False, index=True)
    topic_id = Column(String(36), ForeignKey("topics.id"), nullable=True, index=True)
    attempt_number = Column(Integer, nullable=False)  # 1-based per (user, quiz)

    # Attempt data
    answers = Column(
        JSON().with_variant(JSONB, "postgresql"), nullable=True
    )  # Per-question results: [{"question_id": ..., "points_earned": ...}, ...]
    score = Column(Integer, nullable=False)  # Percentage 0-100
    passed = Column(Boolean, default=False, nullable=False)
    earned_points = Column(Integer, default=0, nullable=False)
    total_points = Column(Integer, default=0, nullable=False)
    questions_correct = Column(Integer, default=0, nullable=False)
    questions_total = Column(Integer, default=0, nullable=False)
    questions_skipped = Column(Integer, default=0, nullable=False)
    is_practice = Column(
        Boolean, default=False, nullable=False
    )  # Practice attempts never count toward quota or progress

    # Time tracking
    time_spent = Column(Integer, default=0, nullable=False)  # Seconds
    completed_at = Column(DateTime(timezone=True), nullable=False)

    # Timestamps
    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self):
        return (
            f"<QuizAttempt(id={self.id}, user_id={self.user_id}, score={self.score})>"
        )
