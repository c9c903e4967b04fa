# app/services/prerequisites.py
from typing import Optional

from app.schemas.catalog import CourseDefinition, TopicDefinition
from app.schemas.progress import (
    EnrollmentStatus,
    ProgressStatus,
    RejectionCode,
    TopicAccessibility,
)
from app.store.base import ContentCatalog, EntityType, ProgressKey, ProgressStore


class PrerequisiteGate:
    """
    Read-only access check for a topic.

    Rules run in a fixed order and the first failing one wins:
    topic prerequisite, module prerequisite, active enrollment, then course
    sequencing when the course requires it.
    """

    def __init__(self, store: ProgressStore, catalog: ContentCatalog):
        self.store = store
        self.catalog = catalog

    def _status(self, entity: EntityType, user_id: str, content_id: str):
        record = self.store.get(entity, ProgressKey(user_id, content_id))
        return record.status if record is not None else None

    def check(self, user_id: str, topic: TopicDefinition) -> TopicAccessibility:
        if topic.prerequisite_topic_id:
            status = self._status(
                EntityType.TOPIC_PROGRESS, user_id, topic.prerequisite_topic_id
            )
            if status != ProgressStatus.COMPLETED:
                prerequisite = self.catalog.get_topic(topic.prerequisite_topic_id)
                return TopicAccessibility(
                    topic_id=topic.id,
                    can_access=False,
                    reason=RejectionCode.PREREQUISITE_TOPIC_INCOMPLETE,
                    message=f'Complete the topic "{prerequisite.title}" first',
                    prerequisite_id=prerequisite.id,
                    prerequisite_title=prerequisite.title,
                )

        module = self.catalog.get_module(topic.module_id)
        if module.prerequisite_module_id:
            status = self._status(
                EntityType.MODULE_PROGRESS, user_id, module.prerequisite_module_id
            )
            if status != ProgressStatus.COMPLETED:
                prerequisite = self.catalog.get_module(module.prerequisite_module_id)
                return TopicAccessibility(
                    topic_id=topic.id,
                    can_access=False,
                    reason=RejectionCode.PREREQUISITE_MODULE_INCOMPLETE,
                    message=f'Complete the module "{prerequisite.title}" first',
                    prerequisite_id=prerequisite.id,
                    prerequisite_title=prerequisite.title,
                )

        if self._status(EntityType.ENROLLMENT, user_id, module.course_id) != (
            EnrollmentStatus.ACTIVE
        ):
            return TopicAccessibility(
                topic_id=topic.id,
                can_access=False,
                reason=RejectionCode.NOT_ENROLLED,
                message="An active enrollment in this course is required",
            )

        course = self.catalog.get_course(module.course_id)
        if course.require_sequential_completion:
            blocking = self._first_incomplete_before(user_id, course, topic)
            if blocking is not None:
                return TopicAccessibility(
                    topic_id=topic.id,
                    can_access=False,
                    reason=RejectionCode.SEQUENCE_INCOMPLETE,
                    message=f'Complete the topic "{blocking.title}" first',
                    prerequisite_id=blocking.id,
                    prerequisite_title=blocking.title,
                )

        return TopicAccessibility(topic_id=topic.id, can_access=True)

    def _first_incomplete_before(
        self, user_id: str, course: CourseDefinition, topic: TopicDefinition
    ) -> Optional[TopicDefinition]:
        """First earlier required, non-skippable topic that is not completed."""
        earlier = []
        for candidate in course.iter_topics():
            if candidate.id == topic.id:
                break
            if candidate.is_required and not candidate.allow_skip:
                earlier.append(candidate)

        if not earlier:
            return None

        rows = self.store.list_for_user(
            EntityType.TOPIC_PROGRESS, user_id, [t.id for t in earlier]
        )
        for candidate in earlier:
            row = rows.get(candidate.id)
            if row is None or row.status != ProgressStatus.COMPLETED:
                return candidate
        return None
