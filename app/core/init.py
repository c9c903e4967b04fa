"""
Application initialization module
Handles initial setup tasks like seeding a demo course catalog
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.course import Course
from app.models.module import Module
from app.models.question import Question, QuestionOption
from app.models.quiz import Quiz
from app.models.topic import Topic

logger = logging.getLogger(__name__)

DEMO_COURSE_TITLE = "Python Foundations (demo)"


def _choice_question(text, options, correct, order_index, question_type, points=10):
    question = Question(
        text=text,
        question_type=question_type,
        points=points,
        order_index=order_index,
    )
    question.options = [
        QuestionOption(text=option, is_correct=option in correct, order_index=i)
        for i, option in enumerate(options)
    ]
    return question


def seed_demo_catalog(db: Session) -> Optional[Course]:
    """
    Create a small demo course if it is not there yet.

    Two modules, the second gated on the first, with a mix of quiz-less
    topics and topics carrying quizzes of every question type.

    Args:
        db: Database session

    Returns:
        The created course, or None when it already existed
    """
    existing = db.query(Course).filter(Course.title == DEMO_COURSE_TITLE).first()
    if existing:
        logger.info(f"✅ Demo course already exists (ID: {existing.id})")
        return None

    try:
        course = Course(
            title=DEMO_COURSE_TITLE,
            description="Sample content for trying out the progress engine",
            passing_score=70,
            require_sequential_completion=True,
        )

        basics = Module(title="Basics", order=1, passing_score=70)
        basics.topics = [
            Topic(title="Installing Python", order_index=1, allow_skip=True),
            Topic(title="Variables and types", order_index=2, max_attempts=3),
        ]
        types_quiz = Quiz(title="Types check", passing_score=70, allow_partial_credit=True)
        types_quiz.questions = [
            _choice_question(
                "Which of these is immutable?",
                ["list", "tuple", "dict"],
                {"tuple"},
                1,
                "SINGLE_CHOICE",
            ),
            _choice_question(
                "Select the numeric types",
                ["int", "str", "float", "bytes"],
                {"int", "float"},
                2,
                "MULTI_SELECT",
            ),
            Question(
                text="In one sentence, what does a variable hold?",
                question_type="TEXT_SHORT",
                points=5,
                order_index=3,
            ),
        ]
        basics.topics[1].quizzes = [types_quiz]

        control_flow = Module(title="Control flow", order=2, passing_score=70)
        control_flow.topics = [
            Topic(title="Conditionals", order_index=1),
            Topic(title="Loops", order_index=2),
        ]
        loops_quiz = Quiz(title="Loops check", passing_score=60, max_attempts=2)
        loops_quiz.questions = [
            _choice_question(
                "Which keyword exits a loop early?",
                ["continue", "break", "pass"],
                {"break"},
                1,
                "SINGLE_CHOICE",
            ),
        ]
        control_flow.topics[1].quizzes = [loops_quiz]

        course.modules = [basics, control_flow]
        db.add(course)
        db.flush()

        control_flow.prerequisite_module_id = basics.id
        db.commit()
        db.refresh(course)

        logger.info("=" * 60)
        logger.info(f"🎉 Demo course created (ID: {course.id})")
        logger.info("=" * 60)
        return course

    except Exception as e:
        logger.error(f"❌ Failed to seed demo catalog: {e}")
        db.rollback()
        raise


def initialize_application(db: Session) -> None:
    """
    Run all application initialization tasks.

    Args:
        db: Database session
    """
    logger.info("🚀 Starting application initialization...")

    if settings.seed_demo_catalog:
        seed_demo_catalog(db)

    logger.info("✅ Application initialization completed!")
