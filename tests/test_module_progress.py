from datetime import datetime, timedelta, timezone

from app.schemas.progress import (
    ModuleProgressRecord,
    ProgressStatus,
    TopicProgressRecord,
)
from app.services.module_progress import reduce_module_progress
from app.store.base import EntityType, ProgressKey
from tests.factories import USER, answers_for, four_point_quiz, module, topic

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def completed(topic_id, best_score=None):
    return TopicProgressRecord(
        user_id=USER,
        topic_id=topic_id,
        status=ProgressStatus.COMPLETED,
        best_score=best_score,
    )


def in_progress(topic_id):
    return TopicProgressRecord(
        user_id=USER, topic_id=topic_id, status=ProgressStatus.IN_PROGRESS
    )


def as_record(patch, module_id="m"):
    return ModuleProgressRecord(user_id=USER, module_id=module_id, **patch)


def assessed_module(passing_score=75, count=3):
    return module(
        "m",
        "c",
        [
            topic(f"t{i}", "m", [four_point_quiz(f"q{i}", f"t{i}")])
            for i in range(1, count + 1)
        ],
        passing_score=passing_score,
    )


def test_two_of_three_required_topics_is_in_progress():
    rows = {"t1": completed("t1", 80), "t2": completed("t2", 90), "t3": in_progress("t3")}

    patch = reduce_module_progress(assessed_module(), rows, None, NOW)

    assert patch["progress_percentage"] == 67
    assert patch["status"] == ProgressStatus.IN_PROGRESS
    assert patch["started_at"] == NOW
    assert patch["completed_at"] is None


def test_all_required_topics_at_passing_average_completes_module():
    rows = {"t1": completed("t1", 100), "t2": completed("t2", 75), "t3": completed("t3", 50)}

    patch = reduce_module_progress(assessed_module(passing_score=75), rows, None, NOW)

    assert patch["progress_percentage"] == 100
    assert patch["current_score"] == 75
    assert patch["status"] == ProgressStatus.COMPLETED
    assert patch["completed_at"] == NOW


def test_average_below_passing_score_keeps_module_open():
    rows = {"t1": completed("t1", 70), "t2": completed("t2", 70), "t3": completed("t3", 70)}

    patch = reduce_module_progress(assessed_module(passing_score=75), rows, None, NOW)

    assert patch["progress_percentage"] == 100
    assert patch["status"] == ProgressStatus.IN_PROGRESS


def test_optional_topics_do_not_count():
    definition = module(
        "m",
        "c",
        [topic("t1", "m"), topic("t2", "m", is_required=False)],
    )

    patch = reduce_module_progress(definition, {"t1": completed("t1")}, None, NOW)

    assert patch["progress_percentage"] == 100
    assert patch["status"] == ProgressStatus.COMPLETED


def test_module_without_required_topics_reports_zero_progress():
    definition = module("m", "c", [topic("t1", "m", is_required=False)])

    patch = reduce_module_progress(definition, {}, None, NOW)

    assert patch["progress_percentage"] == 0


def test_unscored_topics_are_left_out_of_the_average():
    definition = module(
        "m",
        "c",
        [topic("t1", "m"), topic("t2", "m", [four_point_quiz("q2", "t2")])],
        passing_score=80,
    )
    rows = {"t1": completed("t1"), "t2": completed("t2", 90)}

    patch = reduce_module_progress(definition, rows, None, NOW)

    assert patch["current_score"] == 90
    assert patch["status"] == ProgressStatus.COMPLETED


def test_module_without_assessments_completes_on_completion_alone():
    definition = module("m", "c", [topic("t1", "m"), topic("t2", "m")], passing_score=90)
    rows = {"t1": completed("t1"), "t2": completed("t2")}

    patch = reduce_module_progress(definition, rows, None, NOW)

    assert patch["current_score"] is None
    assert patch["status"] == ProgressStatus.COMPLETED


def test_assessments_only_on_optional_topics_fall_back_to_completion():
    definition = module(
        "m",
        "c",
        [
            topic("t1", "m"),
            topic("t2", "m", [four_point_quiz("q2", "t2")], is_required=False),
        ],
        passing_score=90,
    )

    patch = reduce_module_progress(definition, {"t1": completed("t1")}, None, NOW)

    assert patch["status"] == ProgressStatus.COMPLETED


def test_recompute_is_idempotent():
    rows = {"t1": completed("t1", 100), "t2": completed("t2", 80), "t3": in_progress("t3")}
    definition = assessed_module()

    first = reduce_module_progress(definition, rows, None, NOW)
    second = reduce_module_progress(
        definition, rows, as_record(first), NOW + timedelta(hours=1)
    )

    assert second == first
    assert as_record(second).model_dump_json() == as_record(first).model_dump_json()


def test_best_score_never_decreases():
    definition = assessed_module(passing_score=50)
    previous = as_record(
        reduce_module_progress(
            definition,
            {"t1": completed("t1", 100), "t2": completed("t2", 100), "t3": completed("t3", 100)},
            None,
            NOW,
        )
    )

    patch = reduce_module_progress(
        definition,
        {"t1": completed("t1", 60), "t2": completed("t2", 60), "t3": completed("t3", 60)},
        previous,
        NOW + timedelta(days=1),
    )

    assert patch["current_score"] == 60
    assert patch["best_score"] == 100
    assert patch["completed_at"] == NOW


def test_aggregator_recompute_twice_gives_identical_rows(service, store, enrolled):
    service.mark_topic_complete(USER, "t1")
    key = ProgressKey(USER, "m1")

    first = service.modules.recompute(USER, "m1")
    second = service.modules.recompute(USER, "m1")

    assert first == second
    assert store.get(EntityType.MODULE_PROGRESS, key).model_dump() == first.model_dump()


def test_completing_last_topic_completes_module_in_same_operation(
    service, catalog, store, enrolled
):
    service.mark_topic_complete(USER, "t1")
    module_row = store.get(EntityType.MODULE_PROGRESS, ProgressKey(USER, "m1"))
    assert module_row.status == ProgressStatus.IN_PROGRESS

    quiz = catalog.get_quiz("q2")
    service.submit_quiz_attempt(USER, "q2", answers_for(quiz, 3))

    module_row = store.get(EntityType.MODULE_PROGRESS, ProgressKey(USER, "m1"))
    assert module_row.status == ProgressStatus.COMPLETED
    assert module_row.progress_percentage == 100
    assert module_row.current_score == 75


def test_average_is_rounded_half_up_before_the_pass_decision():
    rows = {"t1": completed("t1", 74), "t2": completed("t2", 75)}

    patch = reduce_module_progress(assessed_module(passing_score=75, count=2), rows, None, NOW)

    assert patch["current_score"] == 75
    assert patch["status"] == ProgressStatus.COMPLETED
