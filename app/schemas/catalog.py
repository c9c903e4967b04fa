# app/schemas/catalog.py
from enum import Enum
from typing import Iterator, List, Optional

from pydantic import BaseModel, ConfigDict, Field

# ==================== Content Catalog Definitions ====================
# Read-only views of authored content. The engine treats them as immutable
# input for the duration of one operation.


class QuestionType(str, Enum):
    SINGLE_CHOICE = "SINGLE_CHOICE"
    MULTI_SELECT = "MULTI_SELECT"
    TEXT_SHORT = "TEXT_SHORT"
    TEXT_LONG = "TEXT_LONG"


class OptionDefinition(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    text: str = ""
    is_correct: bool = False


class QuestionDefinition(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    quiz_id: str
    text: str = ""
    question_type: QuestionType
    points: int = Field(1, gt=0)
    order_index: int = 0
    options: List[OptionDefinition] = Field(default_factory=list)
    allow_partial_credit: Optional[bool] = Field(
        None, description="Overrides the quiz setting when set"
    )
    case_sensitive: bool = False

    @property
    def correct_option_ids(self) -> List[str]:
        return [option.id for option in self.options if option.is_correct]


class QuizDefinition(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    topic_id: str
    title: str = ""
    passing_score: int = Field(70, ge=0, le=100)
    max_attempts: Optional[int] = Field(None, ge=1, description="null = unlimited")
    shuffle_questions: bool = False
    shuffle_options: bool = False
    allow_partial_credit: bool = False
    questions: List[QuestionDefinition] = Field(default_factory=list)


class TopicDefinition(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    module_id: str
    title: str = ""
    order_index: int = 0
    is_required: bool = True
    allow_skip: bool = False
    passing_score: int = Field(70, ge=0, le=100)
    max_attempts: Optional[int] = Field(None, ge=1)
    prerequisite_topic_id: Optional[str] = None
    quizzes: List[QuizDefinition] = Field(default_factory=list)

    @property
    def has_quizzes(self) -> bool:
        return len(self.quizzes) > 0

    @property
    def quiz_ids(self) -> List[str]:
        return [quiz.id for quiz in self.quizzes]


class ModuleDefinition(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    course_id: str
    title: str = ""
    order: int = 0
    is_required: bool = True
    passing_score: int = Field(70, ge=0, le=100)
    prerequisite_module_id: Optional[str] = None
    topics: List[TopicDefinition] = Field(default_factory=list)

    @property
    def has_assessments(self) -> bool:
        return any(topic.has_quizzes for topic in self.topics)


class CourseDefinition(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    title: str = ""
    passing_score: Optional[int] = Field(
        None, ge=0, le=100, description="null = completion alone passes"
    )
    require_sequential_completion: bool = False
    modules: List[ModuleDefinition] = Field(default_factory=list)

    def iter_topics(self) -> Iterator[TopicDefinition]:
        """Topics in the order a student walks through the course."""
        for module in sorted(self.modules, key=lambda m: m.order):
            for topic in sorted(module.topics, key=lambda t: t.order_index):
                yield topic
