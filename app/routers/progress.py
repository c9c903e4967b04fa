# app/routers/progress.py
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status

from app.core.dependencies import get_current_user_id, get_progress_service
from app.schemas.progress import (
    CourseProgressSnapshot,
    EnrollmentRecord,
    NextTopicResponse,
    Rejection,
    RejectionCode,
    RemainingAttemptsResponse,
    TopicAccessibility,
    TopicCompletionResult,
    TopicOpenResult,
)
from app.services.progress import ProgressService

router = APIRouter(
    prefix="/student",
    tags=["Student Progress"],
    responses={404: {"description": "Not found"}},
)

# Quota and write conflicts are 409, everything else the gate refuses is 403
CONFLICT_CODES = (RejectionCode.QUOTA_EXCEEDED, RejectionCode.ATTEMPT_CONFLICT)


def raise_for_rejection(rejection: Optional[Rejection]) -> None:
    """Turn a typed rejection into an HTTP error that says what is missing."""
    if rejection is None:
        return
    status_code = (
        status.HTTP_409_CONFLICT
        if rejection.code in CONFLICT_CODES
        else status.HTTP_403_FORBIDDEN
    )
    raise HTTPException(status_code=status_code, detail=rejection.model_dump(mode="json"))


# ==================== Course Endpoints ====================


@router.post(
    "/courses/{course_id}/enroll",
    response_model=EnrollmentRecord,
    status_code=201,
)
def enroll(
    course_id: str,
    user_id: str = Depends(get_current_user_id),
    service: ProgressService = Depends(get_progress_service),
):
    """
    Enroll the current user in a course.
    Enrolling twice returns the existing enrollment.
    """
    return service.enroll(user_id, course_id)


@router.get("/courses/{course_id}/progress", response_model=CourseProgressSnapshot)
def get_course_progress(
    course_id: str,
    user_id: str = Depends(get_current_user_id),
    service: ProgressService = Depends(get_progress_service),
):
    """Enrollment, module and topic progress for one course."""
    return service.get_course_progress_snapshot(user_id, course_id)


@router.get("/courses/{course_id}/next-topic", response_model=NextTopicResponse)
def get_next_topic(
    course_id: str,
    user_id: str = Depends(get_current_user_id),
    service: ProgressService = Depends(get_progress_service),
):
    return service.get_next_topic(user_id, course_id)


@router.post("/courses/{course_id}/recalculate", response_model=CourseProgressSnapshot)
def recalculate_course_progress(
    course_id: str,
    user_id: str = Depends(get_current_user_id),
    service: ProgressService = Depends(get_progress_service),
):
    """
    Recompute module and course progress from the stored topic rows.
    Safe to call any number of times.
    """
    return service.recalculate_course_progress(user_id, course_id)


# ==================== Topic Endpoints ====================


@router.get("/topics/{topic_id}/access", response_model=TopicAccessibility)
def get_topic_access(
    topic_id: str,
    user_id: str = Depends(get_current_user_id),
    service: ProgressService = Depends(get_progress_service),
):
    """Whether the topic is open, and if not, which prerequisite is missing."""
    return service.get_topic_accessibility(user_id, topic_id)


@router.post("/topics/{topic_id}/open", response_model=TopicOpenResult)
def open_topic(
    topic_id: str,
    user_id: str = Depends(get_current_user_id),
    service: ProgressService = Depends(get_progress_service),
):
    """
    Open a topic for the current user.
    Records the view when the topic is accessible, otherwise 403 with the reason.
    """
    result = service.open_topic(user_id, topic_id)
    raise_for_rejection(result.accessibility.to_rejection())
    return result


@router.post("/topics/{topic_id}/mark-complete", response_model=TopicCompletionResult)
def mark_topic_complete(
    topic_id: str,
    user_id: str = Depends(get_current_user_id),
    service: ProgressService = Depends(get_progress_service),
):
    """
    Mark a topic complete.
    Topics with quizzes need a passing attempt first; without one the response
    is success=false with status NEEDS_REVIEW.
    """
    result = service.mark_topic_complete(user_id, topic_id)
    raise_for_rejection(result.rejection)
    return result


@router.get(
    "/topics/{topic_id}/remaining-attempts",
    response_model=RemainingAttemptsResponse,
)
def get_remaining_attempts(
    topic_id: str,
    user_id: str = Depends(get_current_user_id),
    service: ProgressService = Depends(get_progress_service),
):
    return {
        "topic_id": topic_id,
        "remaining_attempts": service.get_remaining_attempts(user_id, topic_id),
    }
