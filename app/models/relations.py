# app/models/relations.py

from sqlalchemy.orm import relationship

# Import all relevant models
from .course import Course
from .module import Module
from .question import Question, QuestionOption
from .quiz import Quiz
from .topic import Topic


def setup_relationships():
    """
    Configure the catalog relationships: course -> modules -> topics ->
    quizzes -> questions -> options, each ordered the way students see it.
    Progress tables reference the catalog by id only.
    """

    # 1. Course to Modules (One-to-Many)
    Course.modules = relationship(
        "Module",
        back_populates="course",
        cascade="all, delete-orphan",
        order_by="Module.order",
        foreign_keys="Module.course_id",
    )
    Module.course = relationship(
        "Course", back_populates="modules", foreign_keys="Module.course_id"
    )

    # 2. Module prerequisite (self-referential)
    Module.prerequisite_module = relationship(
        "Module",
        remote_side=[Module.id],
        foreign_keys=[Module.prerequisite_module_id],
    )

    # 3. Module to Topics (One-to-Many)
    Module.topics = relationship(
        "Topic",
        back_populates="module",
        cascade="all, delete-orphan",
        order_by="Topic.order_index",
        foreign_keys="Topic.module_id",
    )
    Topic.module = relationship(
        "Module", back_populates="topics", foreign_keys="Topic.module_id"
    )

    # 4. Topic prerequisite (self-referential)
    Topic.prerequisite_topic = relationship(
        "Topic",
        remote_side=[Topic.id],
        foreign_keys=[Topic.prerequisite_topic_id],
    )

    # 5. Topic to Quizzes (One-to-Many)
    Topic.quizzes = relationship(
        "Quiz",
        back_populates="topic",
        cascade="all, delete-orphan",
        order_by="Quiz.created_at",
    )
    Quiz.topic = relationship("Topic", back_populates="quizzes")

    # 6. Quiz to Questions (One-to-Many)
    Quiz.questions = relationship(
        "Question",
        back_populates="quiz",
        cascade="all, delete-orphan",
        order_by="Question.order_index",
    )
    Question.quiz = relationship("Quiz", back_populates="questions")

    # 7. Question to Options (One-to-Many)
    Question.options = relationship(
        "QuestionOption",
        back_populates="question",
        cascade="all, delete-orphan",
        order_by="QuestionOption.order_index",
    )
    QuestionOption.question = relationship("Question", back_populates="options")
