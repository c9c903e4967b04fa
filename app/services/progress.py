# app/services/progress.py
"""
Progress service: the operations students trigger.

Each mutating operation resolves catalog entries, checks the enrollment, asks
the gate and quota tracker, and only then runs the read-compute-write cascade
(topic -> module -> course -> certificate) inside one store transaction.
"""

import logging
from contextlib import contextmanager
from typing import Dict, Iterator, Mapping, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError

from app.core.decorator import DBException
from app.core.exceptions import (
    AttemptConflictError,
    CascadeAbortedError,
    NotEnrolledError,
    NotFoundError,
    QuotaExceededError,
)
from app.schemas.catalog import ModuleDefinition, QuizDefinition, TopicDefinition
from app.schemas.progress import (
    CourseProgressSnapshot,
    EnrollmentRecord,
    EnrollmentStatus,
    NextTopic,
    NextTopicResponse,
    ProgressStatus,
    Rejection,
    RejectionCode,
    TopicAccessibility,
    TopicCompletionResult,
    TopicOpenResult,
)
from app.schemas.quiz import (
    AnswerValue,
    AttemptHistory,
    AttemptResult,
    QuizAccessResult,
    SubmissionResult,
)
from app.services.attempt_quota import UNLIMITED, AttemptQuotaTracker
from app.services.course_progress import CourseProgressAggregator
from app.services.module_progress import ModuleProgressAggregator
from app.services.prerequisites import PrerequisiteGate
from app.services.scoring import answers_for_storage, build_attempt_view, score_quiz
from app.services.topic_progress import TopicProgressTracker
from app.store.base import ContentCatalog, EntityType, ProgressKey, ProgressStore
from app.utils.clock import Clock, utc_now
from app.utils.rounding import mean

logger = logging.getLogger(__name__)


def _quota_rejection(limit: Optional[int]) -> Rejection:
    return Rejection(
        code=RejectionCode.QUOTA_EXCEEDED,
        message=f"Maximum attempts ({limit}) reached",
        remaining_attempts=0,
    )


class ProgressService:
    def __init__(
        self, store: ProgressStore, catalog: ContentCatalog, clock: Clock = utc_now
    ):
        self.store = store
        self.catalog = catalog
        self.clock = clock

        self.courses = CourseProgressAggregator(store, catalog, clock)
        self.modules = ModuleProgressAggregator(store, catalog, self.courses, clock)
        self.topics = TopicProgressTracker(store, self.modules, clock)
        self.gate = PrerequisiteGate(store, catalog)
        self.quota = AttemptQuotaTracker(store)

    # ==================== Helpers ====================

    @contextmanager
    def _cascade(self, operation: str) -> Iterator[None]:
        """Run writes in one transaction; storage failures abort all of it."""
        try:
            with self.store.transaction():
                yield
        except CascadeAbortedError:
            raise
        except (DBException, SQLAlchemyError) as e:
            logger.error(f"{operation} rolled back: {type(e).__name__}")
            raise CascadeAbortedError() from e

    def _resolve_topic(self, topic_id: str) -> Tuple[TopicDefinition, ModuleDefinition]:
        topic = self.catalog.get_topic(topic_id)
        return topic, self.catalog.get_module(topic.module_id)

    def _resolve_quiz(
        self, quiz_id: str, topic_id: Optional[str] = None
    ) -> Tuple[QuizDefinition, TopicDefinition, ModuleDefinition]:
        quiz = self.catalog.get_quiz(quiz_id)
        topic, module = self._resolve_topic(topic_id or quiz.topic_id)
        if quiz.id not in topic.quiz_ids:
            raise NotFoundError("Quiz", quiz_id)
        return quiz, topic, module

    def _require_enrollment(self, user_id: str, course_id: str) -> EnrollmentRecord:
        enrollment = self.store.get(
            EntityType.ENROLLMENT, ProgressKey(user_id, course_id)
        )
        if enrollment is None or enrollment.status != EnrollmentStatus.ACTIVE:
            raise NotEnrolledError(user_id, course_id)
        return enrollment

    # ==================== Enrollment ====================

    def enroll(self, user_id: str, course_id: str) -> EnrollmentRecord:
        """Create the enrollment if it does not exist yet."""
        course = self.catalog.get_course(course_id)
        now = self.clock()

        with self._cascade("Enrollment"):
            enrollment, created = self.store.create_if_absent(
                EntityType.ENROLLMENT,
                ProgressKey(user_id, course.id),
                {
                    "status": EnrollmentStatus.ACTIVE,
                    "overall_progress": 0,
                    "enrolled_at": now,
                    "last_access_at": now,
                },
            )

        if created:
            logger.info(f"User {user_id} enrolled in course {course.id}")
        return enrollment

    # ==================== Topics ====================

    def get_topic_accessibility(
        self, user_id: str, topic_id: str
    ) -> TopicAccessibility:
        topic = self.catalog.get_topic(topic_id)
        return self.gate.check(user_id, topic)

    def open_topic(self, user_id: str, topic_id: str) -> TopicOpenResult:
        """Gate check, then record the access."""
        topic, module = self._resolve_topic(topic_id)

        access = self.gate.check(user_id, topic)
        if not access.can_access:
            logger.info(
                f"Topic {topic.id} locked for user {user_id}: {access.reason.value}"
            )
            return TopicOpenResult(accessibility=access)

        with self._cascade("Topic open"):
            progress = self.topics.get_or_create(user_id, topic)
            self.store.upsert(
                EntityType.ENROLLMENT,
                ProgressKey(user_id, module.course_id),
                {"last_access_at": self.clock()},
            )

        return TopicOpenResult(accessibility=access, progress=progress)

    def mark_topic_complete(self, user_id: str, topic_id: str) -> TopicCompletionResult:
        topic, module = self._resolve_topic(topic_id)
        self._require_enrollment(user_id, module.course_id)

        access = self.gate.check(user_id, topic)
        if not access.can_access:
            current = self.store.get(
                EntityType.TOPIC_PROGRESS, ProgressKey(user_id, topic.id)
            )
            return TopicCompletionResult(
                success=False,
                status=current.status if current else ProgressStatus.NOT_STARTED,
                message=access.message,
                progress=current,
                rejection=access.to_rejection(),
            )

        with self._cascade("Topic completion"):
            return self.topics.mark_complete(user_id, topic, requested_by_user=True)

    def get_remaining_attempts(self, user_id: str, topic_id: str) -> Dict[str, int]:
        topic = self.catalog.get_topic(topic_id)
        return self.quota.remaining(user_id, topic)

    # ==================== Quizzes ====================

    def get_quiz_for_attempt(self, user_id: str, quiz_id: str) -> QuizAccessResult:
        quiz, topic, module = self._resolve_quiz(quiz_id)
        self._require_enrollment(user_id, module.course_id)

        access = self.gate.check(user_id, topic)
        if not access.can_access:
            return QuizAccessResult(success=False, rejection=access.to_rejection())

        remaining = self.quota.remaining_for_quiz(user_id, topic, quiz)
        if remaining == 0:
            limit = self.quota.effective_limit(topic, quiz)
            return QuizAccessResult(success=False, rejection=_quota_rejection(limit))

        # Same sheet on every reload until the next attempt is submitted
        attempts_made = self.store.count_attempts(
            user_id, quiz.id, include_practice=True
        )
        seed = f"{user_id}:{quiz.id}:{attempts_made + 1}"
        return QuizAccessResult(
            success=True,
            quiz=build_attempt_view(quiz, seed=seed, remaining_attempts=remaining),
        )

    def submit_quiz_attempt(
        self,
        user_id: str,
        quiz_id: str,
        answers: Optional[Mapping[str, AnswerValue]],
        time_spent: int = 0,
        topic_id: Optional[str] = None,
        is_practice: bool = False,
    ) -> SubmissionResult:
        """Grade a submission, append the attempt and cascade progress."""
        quiz, topic, module = self._resolve_quiz(quiz_id, topic_id)
        self._require_enrollment(user_id, module.course_id)

        access = self.gate.check(user_id, topic)
        if not access.can_access:
            logger.info(
                f"Submission on quiz {quiz.id} by user {user_id} rejected: "
                f"{access.reason.value}"
            )
            return SubmissionResult(success=False, rejection=access.to_rejection())

        limit = None if is_practice else self.quota.effective_limit(topic, quiz)
        if limit is not None and self.quota.remaining_for_quiz(user_id, topic, quiz) == 0:
            logger.info(f"User {user_id} has no attempts left on quiz {quiz.id}")
            return SubmissionResult(success=False, rejection=_quota_rejection(limit))

        score = score_quiz(quiz, answers)
        completed_at = self.clock()

        try:
            with self._cascade("Quiz submission"):
                attempt = self.store.append_attempt(
                    {
                        "user_id": user_id,
                        "quiz_id": quiz.id,
                        "topic_id": topic.id,
                        "score": score.score_percent,
                        "passed": score.passed,
                        "earned_points": score.earned_points,
                        "total_points": score.total_points,
                        "questions_correct": score.questions_correct,
                        "questions_total": score.questions_total,
                        "questions_skipped": score.questions_skipped,
                        "time_spent": time_spent,
                        "is_practice": is_practice,
                        "answers": answers_for_storage(score),
                        "completed_at": completed_at,
                    },
                    max_attempts=limit,
                )
                if is_practice:
                    progress = self.store.get(
                        EntityType.TOPIC_PROGRESS, ProgressKey(user_id, topic.id)
                    )
                else:
                    progress = self.topics.record_quiz_attempt(
                        user_id, topic, quiz, attempt
                    )
        except QuotaExceededError:
            logger.info(f"Quota for quiz {quiz.id} used up concurrently by {user_id}")
            return SubmissionResult(success=False, rejection=_quota_rejection(limit))
        except AttemptConflictError as e:
            return SubmissionResult(
                success=False,
                rejection=Rejection(
                    code=RejectionCode.ATTEMPT_CONFLICT,
                    message=e.message,
                    retryable=True,
                ),
            )

        remaining = (
            UNLIMITED if limit is None else self.quota.remaining_for_quiz(user_id, topic, quiz)
        )

        return SubmissionResult(
            success=True,
            attempt=AttemptResult(
                attempt_number=attempt.attempt_number,
                quiz_id=quiz.id,
                topic_id=topic.id,
                score=score.score_percent,
                passed=score.passed,
                earned_points=score.earned_points,
                total_points=score.total_points,
                questions_correct=score.questions_correct,
                questions_total=score.questions_total,
                questions_skipped=score.questions_skipped,
                time_spent=time_spent,
                is_practice=is_practice,
                needs_manual_review=score.needs_manual_review,
                per_question=score.per_question,
                topic_status=progress.status if progress else None,
                remaining_attempts=remaining,
                completed_at=attempt.completed_at,
            ),
        )

    def get_attempt_history(self, user_id: str, quiz_id: str) -> AttemptHistory:
        """Attempt trail with stats over scored (non-practice) attempts."""
        quiz, topic, _ = self._resolve_quiz(quiz_id)

        attempts = self.store.list_attempts(user_id, [quiz.id], include_practice=True)
        scored = [attempt for attempt in attempts if not attempt.is_practice]

        return AttemptHistory(
            quiz_id=quiz.id,
            total_attempts=len(scored),
            best_score=max((a.score for a in scored), default=None),
            average_score=mean(a.score for a in scored),
            last_attempt_at=attempts[-1].completed_at if attempts else None,
            passed=any(a.passed for a in scored),
            remaining_attempts=self.quota.remaining_for_quiz(user_id, topic, quiz),
            attempts=attempts,
        )

    # ==================== Courses ====================

    def get_course_progress_snapshot(
        self, user_id: str, course_id: str
    ) -> CourseProgressSnapshot:
        course = self.catalog.get_course(course_id)
        modules = sorted(course.modules, key=lambda m: m.order)
        topics = list(course.iter_topics())

        module_rows = self.store.list_for_user(
            EntityType.MODULE_PROGRESS, user_id, [m.id for m in modules]
        )
        topic_rows = self.store.list_for_user(
            EntityType.TOPIC_PROGRESS, user_id, [t.id for t in topics]
        )

        return CourseProgressSnapshot(
            course_id=course.id,
            enrollment=self.store.get(
                EntityType.ENROLLMENT, ProgressKey(user_id, course.id)
            ),
            module_progresses=[module_rows[m.id] for m in modules if m.id in module_rows],
            topic_progresses=[topic_rows[t.id] for t in topics if t.id in topic_rows],
            certificate=self.store.get(
                EntityType.CERTIFICATE, ProgressKey(user_id, course.id)
            ),
        )

    def get_next_topic(self, user_id: str, course_id: str) -> NextTopicResponse:
        """First topic in course order that is unfinished and open to the user."""
        course = self.catalog.get_course(course_id)
        modules = {module.id: module for module in course.modules}
        topics = list(course.iter_topics())
        rows = self.store.list_for_user(
            EntityType.TOPIC_PROGRESS, user_id, [t.id for t in topics]
        )

        for topic in topics:
            row = rows.get(topic.id)
            status = row.status if row else ProgressStatus.NOT_STARTED
            if status == ProgressStatus.COMPLETED:
                continue
            if not self.gate.check(user_id, topic).can_access:
                continue
            module = modules[topic.module_id]
            return NextTopicResponse(
                course_id=course.id,
                next_topic=NextTopic(
                    topic_id=topic.id,
                    title=topic.title,
                    module_id=module.id,
                    module_title=module.title,
                    status=status,
                ),
            )

        return NextTopicResponse(course_id=course.id)

    def recalculate_course_progress(
        self, user_id: str, course_id: str
    ) -> CourseProgressSnapshot:
        """Recompute every module and then the course from persisted rows."""
        course = self.catalog.get_course(course_id)
        enrollment = self.store.get(
            EntityType.ENROLLMENT, ProgressKey(user_id, course.id)
        )
        if enrollment is None:
            raise NotEnrolledError(user_id, course.id)

        with self._cascade("Course recalculation"):
            for module in course.modules:
                self.modules.recompute(user_id, module.id, cascade=False)
            self.courses.recompute(user_id, course.id)

        logger.info(f"Progress recalculated for user {user_id} in course {course.id}")
        return self.get_course_progress_snapshot(user_id, course.id)
