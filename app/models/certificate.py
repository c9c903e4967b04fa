# app/models/certificate.py
from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)

from app.core.database import Base


class Certificate(Base):
    __tablename__ = "certificates"
    __table_args__ = (
        UniqueConstraint("user_id", "course_id", name="uq_certificate_user_course"),
    )

    id = Column(Integer, primary_key=True, index=True)

    user_id = Column(String(64), nullable=False, index=True)
    course_id = Column(
        String(36), ForeignKey("courses.id"), nullable=False, index=True
    )
    certificate_number = Column(String(64), unique=True, nullable=False)
    final_grade = Column(Integer, nullable=True)
    issued_at = Column(DateTime(timezone=True), nullable=False)

    def __repr__(self):
        return f"<Certificate(number='{self.certificate_number}', user_id={self.user_id})>"
