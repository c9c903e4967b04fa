# app/schemas/progress.py
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

# ==================== Status Enums ====================


class ProgressStatus(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    NEEDS_REVIEW = "NEEDS_REVIEW"


class EnrollmentStatus(str, Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"


# ==================== Progress Records ====================
# One record type per persisted progress entity. Stores hand these out and
# services never mutate them in place; changes go back through upsert().


class EnrollmentRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    course_id: str
    status: EnrollmentStatus = EnrollmentStatus.ACTIVE
    overall_progress: int = Field(0, ge=0, le=100)
    final_grade: Optional[int] = None
    enrolled_at: Optional[datetime] = None
    last_access_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class ModuleProgressRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    module_id: str
    status: ProgressStatus = ProgressStatus.NOT_STARTED
    progress_percentage: int = Field(0, ge=0, le=100)
    current_score: Optional[int] = None
    best_score: Optional[int] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class TopicProgressRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    topic_id: str
    status: ProgressStatus = ProgressStatus.NOT_STARTED
    best_score: Optional[int] = None
    mastery_achieved: bool = False
    completion_rate: int = 0
    view_count: int = 0
    attempt_count: int = 0
    started_at: Optional[datetime] = None
    last_access_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class QuizAttemptRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    user_id: str
    quiz_id: str
    topic_id: Optional[str] = None
    attempt_number: int
    score: int
    passed: bool
    earned_points: int = 0
    total_points: int = 0
    questions_correct: int = 0
    questions_total: int = 0
    questions_skipped: int = 0
    time_spent: int = 0
    is_practice: bool = False
    answers: Optional[List[Dict[str, Any]]] = None
    completed_at: datetime


class CertificateRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    course_id: str
    certificate_number: str
    final_grade: Optional[int] = None
    issued_at: datetime


# ==================== Gate / Rejection Schemas ====================


class RejectionCode(str, Enum):
    NOT_ENROLLED = "NOT_ENROLLED"
    PREREQUISITE_TOPIC_INCOMPLETE = "PREREQUISITE_TOPIC_INCOMPLETE"
    PREREQUISITE_MODULE_INCOMPLETE = "PREREQUISITE_MODULE_INCOMPLETE"
    SEQUENCE_INCOMPLETE = "SEQUENCE_INCOMPLETE"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    ATTEMPT_CONFLICT = "ATTEMPT_CONFLICT"


class Rejection(BaseModel):
    """An expected, user-facing refusal. Always explains what is missing."""

    code: RejectionCode
    message: str
    prerequisite_id: Optional[str] = None
    prerequisite_title: Optional[str] = None
    remaining_attempts: Optional[int] = None
    retryable: bool = False


class TopicAccessibility(BaseModel):
    topic_id: str
    can_access: bool
    reason: Optional[RejectionCode] = None
    message: Optional[str] = None
    prerequisite_id: Optional[str] = None
    prerequisite_title: Optional[str] = None

    def to_rejection(self) -> Optional[Rejection]:
        if self.can_access:
            return None
        return Rejection(
            code=self.reason,
            message=self.message,
            prerequisite_id=self.prerequisite_id,
            prerequisite_title=self.prerequisite_title,
        )


# ==================== Operation Results ====================


class TopicCompletionResult(BaseModel):
    """Result of marking a topic complete.

    success=False with status NEEDS_REVIEW means the topic still has
    assessments without a passing attempt. A set ``rejection`` means the
    topic is locked and nothing was written.
    """

    success: bool
    status: ProgressStatus
    message: Optional[str] = None
    progress: Optional[TopicProgressRecord] = None
    rejection: Optional[Rejection] = None


class TopicOpenResult(BaseModel):
    accessibility: TopicAccessibility
    progress: Optional[TopicProgressRecord] = None


class CourseProgressSnapshot(BaseModel):
    course_id: str
    enrollment: Optional[EnrollmentRecord] = None
    module_progresses: List[ModuleProgressRecord] = Field(default_factory=list)
    topic_progresses: List[TopicProgressRecord] = Field(default_factory=list)
    certificate: Optional[CertificateRecord] = None


class NextTopic(BaseModel):
    topic_id: str
    title: str
    module_id: str
    module_title: str
    status: ProgressStatus


class NextTopicResponse(BaseModel):
    course_id: str
    next_topic: Optional[NextTopic] = None


class RemainingAttemptsResponse(BaseModel):
    topic_id: str
    remaining_attempts: Dict[str, int] = Field(
        ..., description="Remaining attempts per quiz id, -1 = unlimited"
    )
