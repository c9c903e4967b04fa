"""
Persistence contract consumed by the progress engine.

Two seams are defined here:

* ``ProgressStore`` - reads and writes per-user progress rows keyed by
  ``(user_id, content_id)``, the append-only attempt log, and a transaction
  boundary that makes a whole cascade commit or roll back together.
* ``ContentCatalog`` - read-only course/module/topic/quiz definitions.

Services receive both explicitly, so the engine has no hidden global session.
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from enum import Enum
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    Iterator,
    List,
    NamedTuple,
    Optional,
    Tuple,
    Type,
    TypeVar,
)

from pydantic import BaseModel

from app.schemas.catalog import (
    CourseDefinition,
    ModuleDefinition,
    QuizDefinition,
    TopicDefinition,
)
from app.schemas.progress import (
    CertificateRecord,
    EnrollmentRecord,
    ModuleProgressRecord,
    QuizAttemptRecord,
    TopicProgressRecord,
)

T = TypeVar("T")


class EntityType(str, Enum):
    ENROLLMENT = "enrollment"
    MODULE_PROGRESS = "module_progress"
    TOPIC_PROGRESS = "topic_progress"
    CERTIFICATE = "certificate"


class ProgressKey(NamedTuple):
    user_id: str
    content_id: str


# record type and the name of the content-id field for each entity
RECORD_TYPES: Dict[EntityType, Type[BaseModel]] = {
    EntityType.ENROLLMENT: EnrollmentRecord,
    EntityType.MODULE_PROGRESS: ModuleProgressRecord,
    EntityType.TOPIC_PROGRESS: TopicProgressRecord,
    EntityType.CERTIFICATE: CertificateRecord,
}

KEY_FIELDS: Dict[EntityType, str] = {
    EntityType.ENROLLMENT: "course_id",
    EntityType.MODULE_PROGRESS: "module_id",
    EntityType.TOPIC_PROGRESS: "topic_id",
    EntityType.CERTIFICATE: "course_id",
}


def key_columns(entity: EntityType, key: ProgressKey) -> Dict[str, str]:
    return {"user_id": key.user_id, KEY_FIELDS[entity]: key.content_id}


class ProgressStore(ABC):
    @abstractmethod
    def get(self, entity: EntityType, key: ProgressKey) -> Optional[Any]:
        """Return the record for key, or None."""

    @abstractmethod
    def create_if_absent(
        self, entity: EntityType, key: ProgressKey, initial: Dict[str, Any]
    ) -> Tuple[Any, bool]:
        """Insert a row from ``initial`` unless one exists.

        Returns ``(record, created)``.
        """

    @abstractmethod
    def upsert(
        self, entity: EntityType, key: ProgressKey, patch: Dict[str, Any]
    ) -> Any:
        """Apply ``patch`` to the row for key, creating it when missing."""

    @abstractmethod
    def list_for_user(
        self, entity: EntityType, user_id: str, content_ids: Iterable[str]
    ) -> Dict[str, Any]:
        """Records for the given content ids, keyed by content id."""

    @abstractmethod
    def append_attempt(
        self, attempt: Dict[str, Any], max_attempts: Optional[int] = None
    ) -> QuizAttemptRecord:
        """Append an attempt, numbering it after the existing ones.

        When ``max_attempts`` is given the non-practice attempt count is
        re-checked at write time and ``QuotaExceededError`` is raised if the
        quota is already used up.
        """

    @abstractmethod
    def list_attempts(
        self,
        user_id: str,
        quiz_ids: Iterable[str],
        include_practice: bool = True,
    ) -> List[QuizAttemptRecord]:
        """Attempts oldest first."""

    @abstractmethod
    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Group writes so they commit or roll back together.

        Nested blocks join the outermost one.
        """

    def run_transaction(self, operation: Callable[[], T]) -> T:
        with self.transaction():
            return operation()

    def count_attempts(
        self, user_id: str, quiz_id: str, include_practice: bool = False
    ) -> int:
        return len(self.list_attempts(user_id, [quiz_id], include_practice))


class ContentCatalog(ABC):
    """Read-only content definitions. Missing ids raise ``NotFoundError``."""

    @abstractmethod
    def get_course(self, course_id: str) -> CourseDefinition:
        ...

    @abstractmethod
    def get_module(self, module_id: str) -> ModuleDefinition:
        ...

    @abstractmethod
    def get_topic(self, topic_id: str) -> TopicDefinition:
        ...

    @abstractmethod
    def get_quiz(self, quiz_id: str) -> QuizDefinition:
        ...
