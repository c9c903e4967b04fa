# app/services/attempt_quota.py
from typing import Dict, Optional

from app.schemas.catalog import QuizDefinition, TopicDefinition
from app.store.base import ProgressStore

UNLIMITED = -1


class AttemptQuotaTracker:
    """Remaining scored attempts per quiz. Practice attempts never count."""

    def __init__(self, store: ProgressStore):
        self.store = store

    @staticmethod
    def effective_limit(
        topic: TopicDefinition, quiz: QuizDefinition
    ) -> Optional[int]:
        # quiz-level limit overrides the topic default
        if quiz.max_attempts is not None:
            return quiz.max_attempts
        return topic.max_attempts

    def remaining_for_quiz(
        self, user_id: str, topic: TopicDefinition, quiz: QuizDefinition
    ) -> int:
        limit = self.effective_limit(topic, quiz)
        if limit is None:
            return UNLIMITED
        used = self.store.count_attempts(user_id, quiz.id, include_practice=False)
        return max(0, limit - used)

    def remaining(self, user_id: str, topic: TopicDefinition) -> Dict[str, int]:
        return {
            quiz.id: self.remaining_for_quiz(user_id, topic, quiz)
            for quiz in topic.quizzes
        }
