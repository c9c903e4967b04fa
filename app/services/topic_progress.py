# app/services/topic_progress.py
import logging
from typing import Optional

from app.schemas.catalog import QuizDefinition, TopicDefinition
from app.schemas.progress import (
    ProgressStatus,
    QuizAttemptRecord,
    TopicCompletionResult,
    TopicProgressRecord,
)
from app.services.module_progress import ModuleProgressAggregator
from app.store.base import EntityType, ProgressKey, ProgressStore
from app.utils.clock import Clock, utc_now

logger = logging.getLogger(__name__)


class TopicProgressTracker:
    """Per-(user, topic) state: access, attempts and completion."""

    def __init__(
        self,
        store: ProgressStore,
        module_aggregator: ModuleProgressAggregator,
        clock: Clock = utc_now,
    ):
        self.store = store
        self.module_aggregator = module_aggregator
        self.clock = clock

    def _ensure(self, user_id: str, topic: TopicDefinition) -> TopicProgressRecord:
        """Fetch or lazily create the row without counting it as a view."""
        now = self.clock()
        record, created = self.store.create_if_absent(
            EntityType.TOPIC_PROGRESS,
            ProgressKey(user_id, topic.id),
            {
                "status": ProgressStatus.IN_PROGRESS,
                "started_at": now,
                "last_access_at": now,
            },
        )
        if created:
            logger.info(f"Topic {topic.id} started by user {user_id}")
        return record

    def get_or_create(self, user_id: str, topic: TopicDefinition) -> TopicProgressRecord:
        """Fetch or create the row and record one access."""
        record = self._ensure(user_id, topic)
        return self.store.upsert(
            EntityType.TOPIC_PROGRESS,
            ProgressKey(user_id, topic.id),
            {"view_count": record.view_count + 1, "last_access_at": self.clock()},
        )

    def best_passing_score(
        self, user_id: str, topic: TopicDefinition
    ) -> Optional[int]:
        """Highest passing non-practice score across the topic's quizzes."""
        attempts = self.store.list_attempts(
            user_id, topic.quiz_ids, include_practice=False
        )
        passing = [attempt.score for attempt in attempts if attempt.passed]
        return max(passing) if passing else None

    def record_quiz_attempt(
        self,
        user_id: str,
        topic: TopicDefinition,
        quiz: QuizDefinition,
        attempt: QuizAttemptRecord,
    ) -> TopicProgressRecord:
        """
        Fold an already appended attempt into the topic row.

        A passing attempt raises best_score, re-evaluates mastery and completes
        the topic, which cascades up to the module and course.
        """
        progress = self._ensure(user_id, topic)
        patch = {
            "attempt_count": progress.attempt_count + 1,
            "last_access_at": self.clock(),
        }

        if attempt.passed:
            best_score = attempt.score
            if progress.best_score is not None:
                best_score = max(progress.best_score, attempt.score)
            patch["best_score"] = best_score
            patch["mastery_achieved"] = (
                progress.mastery_achieved or best_score >= topic.passing_score
            )

        progress = self.store.upsert(
            EntityType.TOPIC_PROGRESS, ProgressKey(user_id, topic.id), patch
        )
        logger.info(
            f"Attempt {attempt.attempt_number} on quiz {quiz.id} recorded for "
            f"user {user_id}: score={attempt.score} passed={attempt.passed}"
        )

        if attempt.passed:
            return self.mark_complete(user_id, topic, requested_by_user=False).progress
        return progress

    def mark_complete(
        self, user_id: str, topic: TopicDefinition, requested_by_user: bool = True
    ) -> TopicCompletionResult:
        if requested_by_user:
            progress = self.get_or_create(user_id, topic)
        else:
            progress = self._ensure(user_id, topic)
        key = ProgressKey(user_id, topic.id)

        # Already completed: nothing to write, but the cascade still runs so
        # module and course converge on the current state.
        if progress.status == ProgressStatus.COMPLETED:
            self.module_aggregator.recompute(user_id, topic.module_id)
            return TopicCompletionResult(
                success=True,
                status=ProgressStatus.COMPLETED,
                message="Topic already completed",
                progress=progress,
            )

        now = self.clock()

        if not topic.has_quizzes:
            patch = {
                "status": ProgressStatus.COMPLETED,
                "completion_rate": 100,
                "mastery_achieved": True,
                "completed_at": progress.completed_at or now,
            }
        else:
            best_score = self.best_passing_score(user_id, topic)
            if best_score is None:
                if requested_by_user:
                    progress = self.store.upsert(
                        EntityType.TOPIC_PROGRESS,
                        key,
                        {"status": ProgressStatus.NEEDS_REVIEW},
                    )
                logger.info(
                    f"Topic {topic.id} not completed for user {user_id}: "
                    f"no passing attempt"
                )
                return TopicCompletionResult(
                    success=False,
                    status=ProgressStatus.NEEDS_REVIEW,
                    message="Pass at least one quiz in this topic to complete it",
                    progress=progress,
                )

            if progress.best_score is not None:
                best_score = max(best_score, progress.best_score)
            patch = {
                "status": ProgressStatus.COMPLETED,
                "completion_rate": 100,
                "best_score": best_score,
                "mastery_achieved": progress.mastery_achieved
                or best_score >= topic.passing_score,
                "completed_at": progress.completed_at or now,
            }

        progress = self.store.upsert(EntityType.TOPIC_PROGRESS, key, patch)
        logger.info(f"Topic {topic.id} completed by user {user_id}")

        self.module_aggregator.recompute(user_id, topic.module_id)

        return TopicCompletionResult(
            success=True,
            status=ProgressStatus.COMPLETED,
            message="Topic completed",
            progress=progress,
        )
