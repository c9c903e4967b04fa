# app/models/module.py
import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.sql import func

from app.core.database import Base


class Module(Base):
    __tablename__ = "modules"

    id = Column(String(36), primary_key=True, default=lambda: uuid.uuid4().hex)

    # Course relationship
    course_id = Column(
        String(36), ForeignKey("courses.id"), nullable=False, index=True
    )

    # Basic Info
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    # Order/Position in course
    order = Column(Integer, default=0, nullable=False)

    # Completion rules
    is_required = Column(Boolean, default=True, nullable=False)
    passing_score = Column(Integer, default=70, nullable=False)
    prerequisite_module_id = Column(
        String(36), ForeignKey("modules.id"), nullable=True
    )  # Must be completed before any topic here opens

    # Timestamps
    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self):
        return f"<Module(id={self.id}, title='{self.title}', course_id={self.course_id})>"
