# app/services/course_progress.py
import logging
from datetime import datetime
from typing import Any, Dict, Mapping, Tuple

from app.core.exceptions import NotEnrolledError
from app.schemas.catalog import CourseDefinition
from app.schemas.progress import (
    CertificateRecord,
    EnrollmentRecord,
    EnrollmentStatus,
    ModuleProgressRecord,
    ProgressStatus,
)
from app.store.base import ContentCatalog, EntityType, ProgressKey, ProgressStore
from app.utils.clock import Clock, utc_now
from app.utils.rounding import percentage, rounded_mean

logger = logging.getLogger(__name__)


def reduce_course_progress(
    course: CourseDefinition,
    module_rows: Mapping[str, ModuleProgressRecord],
    previous: EnrollmentRecord,
    now: datetime,
) -> Dict[str, Any]:
    """Derive the enrollment patch from module rows.

    COMPLETED is terminal: once reached, status and completed_at are kept and
    only overall_progress and final_grade follow the modules.
    """
    required = [module for module in course.modules if module.is_required]
    completed = [
        module
        for module in required
        if module.id in module_rows
        and module_rows[module.id].status == ProgressStatus.COMPLETED
    ]

    overall_progress = percentage(len(completed), len(required))
    all_required_completed = len(completed) == len(required)

    final_grade = rounded_mean(
        module_rows[module.id].current_score
        for module in completed
        if module_rows[module.id].current_score is not None
    )

    if final_grade is not None and course.passing_score is not None:
        passed = final_grade >= course.passing_score
    else:
        passed = all_required_completed

    patch = {"overall_progress": overall_progress, "final_grade": final_grade}

    if previous.status == EnrollmentStatus.COMPLETED:
        return patch

    if all_required_completed and passed:
        patch["status"] = EnrollmentStatus.COMPLETED
        patch["completed_at"] = previous.completed_at or now

    return patch


def certificate_number(course_id: str, user_id: str, issued_at: datetime) -> str:
    epoch_ms = int(issued_at.timestamp() * 1000)
    return f"CERT-{course_id[-6:]}-{user_id[-6:]}-{epoch_ms}".upper()


class CourseProgressAggregator:
    def __init__(
        self, store: ProgressStore, catalog: ContentCatalog, clock: Clock = utc_now
    ):
        self.store = store
        self.catalog = catalog
        self.clock = clock

    def recompute(self, user_id: str, course_id: str) -> EnrollmentRecord:
        course = self.catalog.get_course(course_id)
        key = ProgressKey(user_id, course.id)

        previous = self.store.get(EntityType.ENROLLMENT, key)
        if previous is None:
            raise NotEnrolledError(user_id, course.id)

        module_rows = self.store.list_for_user(
            EntityType.MODULE_PROGRESS,
            user_id,
            [module.id for module in course.modules],
        )

        patch = reduce_course_progress(course, module_rows, previous, self.clock())
        record = self.store.upsert(EntityType.ENROLLMENT, key, patch)

        if (
            record.status == EnrollmentStatus.COMPLETED
            and previous.status != EnrollmentStatus.COMPLETED
        ):
            logger.info(
                f"Course {course.id} completed by user {user_id} "
                f"(final_grade={record.final_grade})"
            )

        if record.status == EnrollmentStatus.COMPLETED:
            self.issue_certificate(user_id, course, record)

        return record

    def issue_certificate(
        self, user_id: str, course: CourseDefinition, enrollment: EnrollmentRecord
    ) -> Tuple[CertificateRecord, bool]:
        """Create the (user, course) certificate unless it already exists."""
        issued_at = self.clock()
        certificate, created = self.store.create_if_absent(
            EntityType.CERTIFICATE,
            ProgressKey(user_id, course.id),
            {
                "certificate_number": certificate_number(course.id, user_id, issued_at),
                "final_grade": enrollment.final_grade,
                "issued_at": issued_at,
            },
        )
        if created:
            logger.info(
                f"Certificate {certificate.certificate_number} issued to user "
                f"{user_id} for course {course.id}"
            )
        return certificate, created
