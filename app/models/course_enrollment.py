# app/models/course_enrollment.py
from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from app.core.database import Base


class CourseEnrollment(Base):
    """
    Tracks a user's enrollment in a course and the rolled-up course progress.
    Status moves ACTIVE -> COMPLETED once and never back.
    """

    __tablename__ = "course_enrollments"
    __table_args__ = (
        UniqueConstraint("user_id", "course_id", name="uq_enrollment_user_course"),
    )

    id = Column(Integer, primary_key=True, index=True)

    # User and Course relationship
    user_id = Column(String(64), nullable=False, index=True)
    course_id = Column(
        String(36), ForeignKey("courses.id"), nullable=False, index=True
    )

    # Progress tracking
    status = Column(String(20), default="ACTIVE", nullable=False)  # ACTIVE, COMPLETED
    overall_progress = Column(Integer, default=0, nullable=False)
    final_grade = Column(Integer, nullable=True)

    # Timestamps
    enrolled_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    last_access_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(
        DateTime(timezone=True), nullable=True
    )  # Set exactly once, on the ACTIVE -> COMPLETED transition

    def __repr__(self):
        return f"<CourseEnrollment(id={self.id}, user_id={self.user_id}, course_id={self.course_id}, status={self.status})>"
