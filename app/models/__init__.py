"""
Models package initialization
Import all models and setup relationships
"""

from .certificate import Certificate
from .course import Course
from .course_enrollment import CourseEnrollment
from .module import Module
from .module_progress import ModuleProgress
from .question import Question, QuestionOption
from .quiz import Quiz
from .quiz_attempt import QuizAttempt

# Import and setup relationships
from .relations import setup_relationships
from .topic import Topic
from .topic_progress import TopicProgress

# Setup all relationships after models are imported
setup_relationships()

# Make models available at package level
__all__ = [
    "Certificate",
    "Course",
    "CourseEnrollment",
    "Module",
    "ModuleProgress",
    "Question",
    "QuestionOption",
    "Quiz",
    "QuizAttempt",
    "Topic",
    "TopicProgress",
]
