# app/models/course.py
import uuid

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from app.core.database import Base


class Course(Base):
    __tablename__ = "courses"

    id = Column(String(36), primary_key=True, default=lambda: uuid.uuid4().hex)

    # Basic Info
    title = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=True)

    # Grading rules
    passing_score = Column(
        Integer, nullable=True
    )  # Final grade threshold (0-100), null = completion alone passes
    require_sequential_completion = Column(Boolean, default=False, nullable=False)

    # Timestamps
    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def __repr__(self):
        return f"<Course(id={self.id}, title='{self.title}')>"
