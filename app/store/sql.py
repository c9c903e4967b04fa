# app/store/sql.py
import logging
from contextlib import contextmanager
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from sqlalchemy import and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.decorator import db_exception
from app.core.exceptions import (
    AttemptConflictError,
    NotFoundError,
    QuotaExceededError,
)
from app.models.certificate import Certificate
from app.models.course import Course
from app.models.course_enrollment import CourseEnrollment
from app.models.module import Module
from app.models.module_progress import ModuleProgress
from app.models.quiz import Quiz
from app.models.quiz_attempt import QuizAttempt
from app.models.topic import Topic
from app.models.topic_progress import TopicProgress
from app.schemas.catalog import (
    CourseDefinition,
    ModuleDefinition,
    QuizDefinition,
    TopicDefinition,
)
from app.schemas.progress import QuizAttemptRecord
from app.store.base import (
    KEY_FIELDS,
    RECORD_TYPES,
    ContentCatalog,
    EntityType,
    ProgressKey,
    ProgressStore,
    key_columns,
)

logger = logging.getLogger(__name__)

ORM_MODELS = {
    EntityType.ENROLLMENT: CourseEnrollment,
    EntityType.MODULE_PROGRESS: ModuleProgress,
    EntityType.TOPIC_PROGRESS: TopicProgress,
    EntityType.CERTIFICATE: Certificate,
}


def _column_values(values: Dict[str, Any]) -> Dict[str, Any]:
    """Status enums are stored as their plain string value."""
    return {
        name: value.value if isinstance(value, Enum) else value
        for name, value in values.items()
    }


class SqlProgressStore(ProgressStore):
    """
    ProgressStore backed by a SQLAlchemy session.

    Every write is flushed immediately so later reads in the same cascade see
    it (the session is configured with autoflush=False). Nothing is committed
    until the outermost ``transaction()`` block exits cleanly.
    """

    def __init__(self, db: Session):
        self.db = db
        self._depth = 0

    def _query(self, entity: EntityType, key: ProgressKey):
        model = ORM_MODELS[entity]
        return self.db.query(model).filter(
            and_(
                model.user_id == key.user_id,
                getattr(model, KEY_FIELDS[entity]) == key.content_id,
            )
        )

    def _record(self, entity: EntityType, row):
        return RECORD_TYPES[entity].model_validate(row)

    @db_exception
    def get(self, entity: EntityType, key: ProgressKey):
        row = self._query(entity, key).first()
        return self._record(entity, row) if row else None

    @db_exception
    def create_if_absent(
        self, entity: EntityType, key: ProgressKey, initial: Dict[str, Any]
    ) -> Tuple[Any, bool]:
        row = self._query(entity, key).first()
        if row:
            return self._record(entity, row), False

        row = ORM_MODELS[entity](
            **_column_values({**initial, **key_columns(entity, key)})
        )
        self.db.add(row)
        self.db.flush()
        self.db.refresh(row)
        return self._record(entity, row), True

    @db_exception
    def upsert(self, entity: EntityType, key: ProgressKey, patch: Dict[str, Any]):
        row = self._query(entity, key).first()
        if not row:
            row = ORM_MODELS[entity](**key_columns(entity, key))
            self.db.add(row)

        for field, value in _column_values(patch).items():
            setattr(row, field, value)

        self.db.flush()
        self.db.refresh(row)
        return self._record(entity, row)

    @db_exception
    def list_for_user(
        self, entity: EntityType, user_id: str, content_ids: Iterable[str]
    ) -> Dict[str, Any]:
        content_ids = list(content_ids)
        if not content_ids:
            return {}

        model = ORM_MODELS[entity]
        key_column = getattr(model, KEY_FIELDS[entity])
        rows = (
            self.db.query(model)
            .filter(and_(model.user_id == user_id, key_column.in_(content_ids)))
            .all()
        )
        return {
            getattr(row, KEY_FIELDS[entity]): self._record(entity, row) for row in rows
        }

    def append_attempt(
        self, attempt: Dict[str, Any], max_attempts: Optional[int] = None
    ) -> QuizAttemptRecord:
        user_id, quiz_id = attempt["user_id"], attempt["quiz_id"]

        # Lock the existing trail so the quota check and the sequence number
        # are taken from the same view of the table.
        existing = (
            self.db.query(QuizAttempt.attempt_number, QuizAttempt.is_practice)
            .filter(
                and_(QuizAttempt.user_id == user_id, QuizAttempt.quiz_id == quiz_id)
            )
            .with_for_update()
            .all()
        )

        if max_attempts is not None and not attempt.get("is_practice", False):
            counted = sum(1 for row in existing if not row.is_practice)
            if counted >= max_attempts:
                raise QuotaExceededError(quiz_id, max_attempts)

        next_number = max((row.attempt_number for row in existing), default=0) + 1
        row = QuizAttempt(**attempt, attempt_number=next_number)

        try:
            self.db.add(row)
            self.db.flush()
        except IntegrityError:
            logger.warning(
                f"Attempt sequence conflict for user {user_id} on quiz {quiz_id}"
            )
            raise AttemptConflictError(quiz_id)

        self.db.refresh(row)
        return QuizAttemptRecord.model_validate(row)

    @db_exception
    def list_attempts(
        self,
        user_id: str,
        quiz_ids: Iterable[str],
        include_practice: bool = True,
    ) -> List[QuizAttemptRecord]:
        quiz_ids = list(quiz_ids)
        if not quiz_ids:
            return []

        query = self.db.query(QuizAttempt).filter(
            and_(QuizAttempt.user_id == user_id, QuizAttempt.quiz_id.in_(quiz_ids))
        )
        if not include_practice:
            query = query.filter(QuizAttempt.is_practice == False)  # noqa: E712

        rows = query.order_by(
            QuizAttempt.completed_at.asc(), QuizAttempt.id.asc()
        ).all()
        return [QuizAttemptRecord.model_validate(row) for row in rows]

    @contextmanager
    def transaction(self) -> Iterator[None]:
        if self._depth > 0:
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            return

        self._depth = 1
        try:
            yield
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        finally:
            self._depth = 0


class SqlContentCatalog(ContentCatalog):
    """Reads authored content through the ORM relationships."""

    def __init__(self, db: Session):
        self.db = db

    def _get(self, model, entity: str, entity_id: str):
        row = self.db.query(model).filter(model.id == entity_id).first()
        if not row:
            raise NotFoundError(entity, entity_id)
        return row

    def get_course(self, course_id: str) -> CourseDefinition:
        return CourseDefinition.model_validate(self._get(Course, "Course", course_id))

    def get_module(self, module_id: str) -> ModuleDefinition:
        return ModuleDefinition.model_validate(self._get(Module, "Module", module_id))

    def get_topic(self, topic_id: str) -> TopicDefinition:
        return TopicDefinition.model_validate(self._get(Topic, "Topic", topic_id))

    def get_quiz(self, quiz_id: str) -> QuizDefinition:
        return QuizDefinition.model_validate(self._get(Quiz, "Quiz", quiz_id))
