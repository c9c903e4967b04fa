# app/models/module_progress.py
from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)

from app.core.database import Base


class ModuleProgress(Base):
    __tablename__ = "module_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "module_id", name="uq_module_progress_user_module"),
    )

    id = Column(Integer, primary_key=True, index=True)

    user_id = Column(String(64), nullable=False, index=True)
    module_id = Column(
        String(36), ForeignKey("modules.id"), nullable=False, index=True
    )

    # NOT_STARTED, IN_PROGRESS, COMPLETED
    status = Column(String(20), default="NOT_STARTED", nullable=False)
    progress_percentage = Column(Integer, default=0, nullable=False)

    # Scores
    current_score = Column(Integer, nullable=True)  # Mean best score of completed topics
    best_score = Column(Integer, nullable=True)  # Never decreases

    # Timestamps
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<ModuleProgress(user_id={self.user_id}, module_id={self.module_id}, status={self.status})>"
