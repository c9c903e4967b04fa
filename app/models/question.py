# app/models/question.py
import uuid

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Text

from app.core.database import Base


class Question(Base):
    __tablename__ = "questions"

    id = Column(String(36), primary_key=True, default=lambda: uuid.uuid4().hex)

    # Quiz relationship
    quiz_id = Column(String(36), ForeignKey("quizzes.id"), nullable=False, index=True)

    # Content
    text = Column(Text, nullable=False, default="")
    question_type = Column(
        String(20), nullable=False
    )  # SINGLE_CHOICE, MULTI_SELECT, TEXT_SHORT, TEXT_LONG
    points = Column(Integer, default=1, nullable=False)
    order_index = Column(Integer, default=0, nullable=False)

    # Grading flags
    allow_partial_credit = Column(
        Boolean, nullable=True
    )  # Null = use the quiz setting
    case_sensitive = Column(Boolean, default=False, nullable=False)

    def __repr__(self):
        return f"<Question(id={self.id}, type='{self.question_type}', quiz_id={self.quiz_id})>"


class QuestionOption(Base):
    __tablename__ = "question_options"

    id = Column(String(36), primary_key=True, default=lambda: uuid.uuid4().hex)

    question_id = Column(
        String(36), ForeignKey("questions.id"), nullable=False, index=True
    )
    text = Column(Text, nullable=False, default="")
    is_correct = Column(Boolean, default=False, nullable=False)
    order_index = Column(Integer, default=0, nullable=False)

    def __repr__(self):
        return f"<QuestionOption(id={self.id}, question_id={self.question_id}, correct={self.is_correct})>"
