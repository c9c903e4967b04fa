# app/services/module_progress.py
import logging
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from app.schemas.catalog import ModuleDefinition
from app.schemas.progress import (
    ModuleProgressRecord,
    ProgressStatus,
    TopicProgressRecord,
)
from app.services.course_progress import CourseProgressAggregator
from app.store.base import ContentCatalog, EntityType, ProgressKey, ProgressStore
from app.utils.clock import Clock, utc_now
from app.utils.rounding import percentage, rounded_mean

logger = logging.getLogger(__name__)


def reduce_module_progress(
    module: ModuleDefinition,
    topic_rows: Mapping[str, TopicProgressRecord],
    previous: Optional[ModuleProgressRecord],
    now: datetime,
) -> Dict[str, Any]:
    """
    Derive a module row from its topics' rows.

    Pure: the same inputs always give the same patch, and feeding the result
    back in as ``previous`` gives the same patch again.
    """
    required = [topic for topic in module.topics if topic.is_required]
    completed = [
        topic
        for topic in required
        if topic.id in topic_rows
        and topic_rows[topic.id].status == ProgressStatus.COMPLETED
    ]

    progress_percentage = percentage(len(completed), len(required))
    all_required_completed = len(completed) == len(required)

    # Topics without a score do not drag the average down
    average_score = rounded_mean(
        topic_rows[topic.id].best_score
        for topic in completed
        if topic_rows[topic.id].best_score is not None
    )

    if module.has_assessments and average_score is not None:
        passed = average_score >= module.passing_score
    else:
        passed = all_required_completed

    if all_required_completed and passed:
        status = ProgressStatus.COMPLETED
    elif progress_percentage > 0:
        status = ProgressStatus.IN_PROGRESS
    else:
        status = ProgressStatus.NOT_STARTED

    best_score = average_score
    if previous is not None and previous.best_score is not None:
        best_score = (
            previous.best_score
            if best_score is None
            else max(previous.best_score, best_score)
        )

    started_at = previous.started_at if previous is not None else None
    if started_at is None and status != ProgressStatus.NOT_STARTED:
        started_at = now

    completed_at = None
    if status == ProgressStatus.COMPLETED:
        completed_at = (previous.completed_at if previous is not None else None) or now

    return {
        "status": status,
        "progress_percentage": progress_percentage,
        "current_score": average_score,
        "best_score": best_score,
        "started_at": started_at,
        "completed_at": completed_at,
    }


class ModuleProgressAggregator:
    def __init__(
        self,
        store: ProgressStore,
        catalog: ContentCatalog,
        course_aggregator: CourseProgressAggregator,
        clock: Clock = utc_now,
    ):
        self.store = store
        self.catalog = catalog
        self.course_aggregator = course_aggregator
        self.clock = clock

    def recompute(
        self, user_id: str, module_id: str, cascade: bool = True
    ) -> ModuleProgressRecord:
        """Recompute one module row and, when it matters, the course above it."""
        module = self.catalog.get_module(module_id)
        key = ProgressKey(user_id, module.id)

        previous = self.store.get(EntityType.MODULE_PROGRESS, key)
        topic_rows = self.store.list_for_user(
            EntityType.TOPIC_PROGRESS, user_id, [topic.id for topic in module.topics]
        )

        patch = reduce_module_progress(module, topic_rows, previous, self.clock())
        record = self.store.upsert(EntityType.MODULE_PROGRESS, key, patch)

        was_completed = (
            previous is not None and previous.status == ProgressStatus.COMPLETED
        )
        is_completed = record.status == ProgressStatus.COMPLETED

        if is_completed and not was_completed:
            logger.info(
                f"Module {module.id} completed by user {user_id} "
                f"(score={record.current_score})"
            )
        elif was_completed and not is_completed:
            logger.warning(
                f"Module {module.id} no longer complete for user {user_id}"
            )

        if cascade and (is_completed or was_completed):
            self.course_aggregator.recompute(user_id, module.course_id)

        return record
