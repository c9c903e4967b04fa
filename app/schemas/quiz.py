# app/schemas/quiz.py
from datetime import datetime
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.catalog import QuestionType
from app.schemas.progress import ProgressStatus, QuizAttemptRecord, Rejection

# A single option id, a list of option ids, or free text.
AnswerValue = Union[str, List[str], None]

# ==================== Scoring Schemas ====================


class QuestionResult(BaseModel):
    """Grading outcome for one question"""

    question_id: str
    question_type: QuestionType
    answer: AnswerValue = None
    is_correct: bool
    points_possible: int
    points_earned: int
    skipped: bool = False
    requires_manual_review: bool = False


class QuizScore(BaseModel):
    """Pure scoring output for one submission"""

    quiz_id: str
    total_points: int
    earned_points: int
    score_percent: int
    passed: bool
    questions_total: int
    questions_correct: int
    questions_skipped: int
    needs_manual_review: bool = False
    per_question: List[QuestionResult] = Field(default_factory=list)


# ==================== Attempt View Schemas ====================


class OptionForAttempt(BaseModel):
    """Option shown during an attempt - WITHOUT correctness flag"""

    id: str
    text: str


class QuestionForAttempt(BaseModel):
    """Question shown during an attempt - WITHOUT correct answers"""

    id: str
    text: str
    question_type: QuestionType
    points: int
    options: List[OptionForAttempt] = Field(default_factory=list)


class QuizForAttempt(BaseModel):
    quiz_id: str
    topic_id: str
    title: str
    passing_score: int
    questions: List[QuestionForAttempt]
    remaining_attempts: int = Field(..., description="-1 = unlimited")


class QuizAccessResult(BaseModel):
    success: bool
    quiz: Optional[QuizForAttempt] = None
    rejection: Optional[Rejection] = None


# ==================== Submission Schemas ====================


class QuizSubmission(BaseModel):
    answers: Dict[str, AnswerValue] = Field(
        default_factory=dict, description="Answers keyed by question id"
    )
    time_spent: int = Field(0, ge=0, description="Time spent in seconds")
    topic_id: Optional[str] = None
    is_practice: bool = False


class AttemptResult(BaseModel):
    attempt_number: int
    quiz_id: str
    topic_id: Optional[str] = None
    score: int
    passed: bool
    earned_points: int
    total_points: int
    questions_correct: int
    questions_total: int
    questions_skipped: int
    time_spent: int
    is_practice: bool = False
    needs_manual_review: bool = False
    per_question: List[QuestionResult] = Field(default_factory=list)
    topic_status: Optional[ProgressStatus] = None
    remaining_attempts: int = Field(-1, description="-1 = unlimited")
    completed_at: datetime


class SubmissionResult(BaseModel):
    success: bool
    attempt: Optional[AttemptResult] = None
    rejection: Optional[Rejection] = None


# ==================== Attempt History Schemas ====================


class AttemptHistory(BaseModel):
    """Statistics derived from the append-only attempt trail"""

    model_config = ConfigDict(from_attributes=True)

    quiz_id: str
    total_attempts: int
    best_score: Optional[int] = None
    average_score: Optional[float] = None
    last_attempt_at: Optional[datetime] = None
    passed: bool = False
    remaining_attempts: int = -1
    attempts: List[QuizAttemptRecord] = Field(default_factory=list)
