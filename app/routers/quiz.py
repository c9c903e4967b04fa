# app/routers/quiz.py
from fastapi import APIRouter, Depends, Request

from app.core.config import settings
from app.core.dependencies import get_current_user_id, get_progress_service
from app.core.limiter import limiter
from app.routers.progress import raise_for_rejection
from app.schemas.quiz import AttemptHistory, AttemptResult, QuizForAttempt, QuizSubmission
from app.services.progress import ProgressService

router = APIRouter(
    prefix="/student/quizzes",
    tags=["Student Quizzes"],
    responses={404: {"description": "Not found"}},
)


@router.get("/{quiz_id}", response_model=QuizForAttempt)
def get_quiz_for_attempt(
    quiz_id: str,
    user_id: str = Depends(get_current_user_id),
    service: ProgressService = Depends(get_progress_service),
):
    """
    Get a quiz for taking.
    Correct answers are never included; 403 when the topic is locked and 409
    when no attempts are left.
    """
    result = service.get_quiz_for_attempt(user_id, quiz_id)
    raise_for_rejection(result.rejection)
    return result.quiz


@router.post("/{quiz_id}/submit", response_model=AttemptResult)
@limiter.limit(settings.quiz_submit_rate_limit)
def submit_quiz(
    request: Request,
    quiz_id: str,
    submission: QuizSubmission,
    user_id: str = Depends(get_current_user_id),
    service: ProgressService = Depends(get_progress_service),
):
    """
    Submit answers for a quiz.
    Grades the submission, records the attempt and updates topic, module and
    course progress in one transaction.
    """
    result = service.submit_quiz_attempt(
        user_id,
        quiz_id,
        submission.answers,
        time_spent=submission.time_spent,
        topic_id=submission.topic_id,
        is_practice=submission.is_practice,
    )
    raise_for_rejection(result.rejection)
    return result.attempt


@router.get("/{quiz_id}/attempts", response_model=AttemptHistory)
def get_attempt_history(
    quiz_id: str,
    user_id: str = Depends(get_current_user_id),
    service: ProgressService = Depends(get_progress_service),
):
    """All attempts of the current user on a quiz, with score statistics."""
    return service.get_attempt_history(user_id, quiz_id)
