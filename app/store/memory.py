"""In-memory adapters, used for deterministic engine tests and local tooling."""

import copy
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from app.core.exceptions import NotFoundError, QuotaExceededError
from app.schemas.catalog import (
    CourseDefinition,
    ModuleDefinition,
    QuizDefinition,
    TopicDefinition,
)
from app.schemas.progress import QuizAttemptRecord
from app.store.base import (
    RECORD_TYPES,
    ContentCatalog,
    EntityType,
    ProgressKey,
    ProgressStore,
    key_columns,
)

logger = logging.getLogger(__name__)


class InMemoryProgressStore(ProgressStore):
    def __init__(self):
        self._rows: Dict[EntityType, Dict[ProgressKey, Dict[str, Any]]] = {
            entity: {} for entity in EntityType
        }
        self._attempts: List[Dict[str, Any]] = []
        self._depth = 0

    def _record(self, entity: EntityType, row: Dict[str, Any]):
        return RECORD_TYPES[entity].model_validate(row)

    def get(self, entity: EntityType, key: ProgressKey):
        row = self._rows[entity].get(key)
        return self._record(entity, row) if row is not None else None

    def create_if_absent(
        self, entity: EntityType, key: ProgressKey, initial: Dict[str, Any]
    ) -> Tuple[Any, bool]:
        existing = self.get(entity, key)
        if existing is not None:
            return existing, False
        record = self._record(entity, {**initial, **key_columns(entity, key)})
        self._rows[entity][key] = record.model_dump()
        return record, True

    def upsert(self, entity: EntityType, key: ProgressKey, patch: Dict[str, Any]):
        row = dict(self._rows[entity].get(key) or key_columns(entity, key))
        row.update(patch)
        record = self._record(entity, row)
        self._rows[entity][key] = record.model_dump()
        return record

    def list_for_user(
        self, entity: EntityType, user_id: str, content_ids: Iterable[str]
    ) -> Dict[str, Any]:
        records = {}
        for content_id in content_ids:
            record = self.get(entity, ProgressKey(user_id, content_id))
            if record is not None:
                records[content_id] = record
        return records

    def append_attempt(
        self, attempt: Dict[str, Any], max_attempts: Optional[int] = None
    ) -> QuizAttemptRecord:
        user_id, quiz_id = attempt["user_id"], attempt["quiz_id"]
        existing = self.list_attempts(user_id, [quiz_id], include_practice=True)

        if max_attempts is not None and not attempt.get("is_practice", False):
            counted = sum(1 for a in existing if not a.is_practice)
            if counted >= max_attempts:
                raise QuotaExceededError(quiz_id, max_attempts)

        row = {
            **attempt,
            "id": len(self._attempts) + 1,
            "attempt_number": len(existing) + 1,
        }
        record = QuizAttemptRecord.model_validate(row)
        self._attempts.append(record.model_dump())
        return record

    def list_attempts(
        self,
        user_id: str,
        quiz_ids: Iterable[str],
        include_practice: bool = True,
    ) -> List[QuizAttemptRecord]:
        quiz_ids = set(quiz_ids)
        return [
            QuizAttemptRecord.model_validate(row)
            for row in self._attempts
            if row["user_id"] == user_id
            and row["quiz_id"] in quiz_ids
            and (include_practice or not row["is_practice"])
        ]

    @contextmanager
    def transaction(self) -> Iterator[None]:
        if self._depth > 0:
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            return

        snapshot = (copy.deepcopy(self._rows), copy.deepcopy(self._attempts))
        self._depth = 1
        try:
            yield
        except Exception:
            self._rows, self._attempts = snapshot
            logger.warning("In-memory transaction rolled back")
            raise
        finally:
            self._depth = 0


class InMemoryCatalog(ContentCatalog):
    """Indexes a list of course definitions by every nested id."""

    def __init__(self, courses: Iterable[CourseDefinition] = ()):
        self._courses: Dict[str, CourseDefinition] = {}
        self._modules: Dict[str, ModuleDefinition] = {}
        self._topics: Dict[str, TopicDefinition] = {}
        self._quizzes: Dict[str, QuizDefinition] = {}
        for course in courses:
            self.add_course(course)

    def add_course(self, course: CourseDefinition) -> None:
        self._courses[course.id] = course
        for module in course.modules:
            self._modules[module.id] = module
            for topic in module.topics:
                self._topics[topic.id] = topic
                for quiz in topic.quizzes:
                    self._quizzes[quiz.id] = quiz

    def get_course(self, course_id: str) -> CourseDefinition:
        return self._lookup(self._courses, "Course", course_id)

    def get_module(self, module_id: str) -> ModuleDefinition:
        return self._lookup(self._modules, "Module", module_id)

    def get_topic(self, topic_id: str) -> TopicDefinition:
        return self._lookup(self._topics, "Topic", topic_id)

    def get_quiz(self, quiz_id: str) -> QuizDefinition:
        return self._lookup(self._quizzes, "Quiz", quiz_id)

    @staticmethod
    def _lookup(index: Dict[str, Any], entity: str, entity_id: str):
        try:
            return index[entity_id]
        except KeyError:
            raise NotFoundError(entity, entity_id) from None
