"""
Errors raised by the progress engine.

Routine outcomes (quota reached, prerequisite missing, assessments not yet
passed) are returned as typed results instead. Everything here is either fatal
for the calling operation or an infrastructure failure.
"""

from app.core.decorator import DBException


class ProgressError(Exception):
    code = "progress_error"

    def __init__(self, message: str, status_code: int = 400):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class NotFoundError(ProgressError):
    code = "not_found"

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}", 404)


class NotEnrolledError(ProgressError):
    code = "forbidden"

    def __init__(self, user_id: str, course_id: str):
        self.user_id = user_id
        self.course_id = course_id
        super().__init__("An active enrollment in this course is required", 403)


class QuotaExceededError(ProgressError):
    """Raised by a store when the attempt limit is reached at write time."""

    code = "quota_exceeded"

    def __init__(self, quiz_id: str, max_attempts: int):
        self.quiz_id = quiz_id
        self.max_attempts = max_attempts
        super().__init__(f"Maximum attempts ({max_attempts}) reached", 409)


class AttemptConflictError(ProgressError):
    """Another attempt was written concurrently with the same sequence number."""

    code = "attempt_conflict"

    def __init__(self, quiz_id: str):
        self.quiz_id = quiz_id
        super().__init__("Attempt could not be recorded, please retry", 409)


class CascadeAbortedError(DBException):
    """A topic -> module -> course write failed and was rolled back as a whole."""

    code = "cascade_aborted"

    def __init__(self, message: str = "Progress update failed and was rolled back"):
        super().__init__(message, 503)
