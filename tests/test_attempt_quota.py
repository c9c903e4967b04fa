from datetime import datetime, timezone

from app.services.attempt_quota import UNLIMITED, AttemptQuotaTracker
from app.store.memory import InMemoryProgressStore
from tests.factories import USER, four_point_quiz, topic

DONE = datetime(2026, 2, 1, tzinfo=timezone.utc)


def add_attempts(store, quiz_id, count, is_practice=False):
    for _ in range(count):
        store.append_attempt(
            {
                "user_id": USER,
                "quiz_id": quiz_id,
                "score": 10,
                "passed": False,
                "is_practice": is_practice,
                "completed_at": DONE,
            }
        )


def test_unlimited_quiz_reports_minus_one():
    store = InMemoryProgressStore()
    definition = topic("t", "m", [four_point_quiz("q", "t")])
    add_attempts(store, "q", 5)

    assert AttemptQuotaTracker(store).remaining(USER, definition) == {"q": UNLIMITED}


def test_quiz_limit_overrides_topic_limit():
    store = InMemoryProgressStore()
    definition = topic(
        "t",
        "m",
        [four_point_quiz("q1", "t", max_attempts=5), four_point_quiz("q2", "t")],
        max_attempts=2,
    )
    add_attempts(store, "q1", 1)
    add_attempts(store, "q2", 1)

    assert AttemptQuotaTracker(store).remaining(USER, definition) == {"q1": 4, "q2": 1}


def test_practice_attempts_do_not_use_quota():
    store = InMemoryProgressStore()
    definition = topic("t", "m", [four_point_quiz("q", "t", max_attempts=3)])
    add_attempts(store, "q", 1)
    add_attempts(store, "q", 4, is_practice=True)

    assert AttemptQuotaTracker(store).remaining(USER, definition) == {"q": 2}


def test_remaining_never_goes_negative():
    store = InMemoryProgressStore()
    definition = topic("t", "m", [four_point_quiz("q", "t", max_attempts=2)], max_attempts=1)
    add_attempts(store, "q", 2)
    # a later limit change must not produce negative values
    shrunk = definition.model_copy(
        update={"quizzes": [four_point_quiz("q", "t", max_attempts=1)]}
    )

    assert AttemptQuotaTracker(store).remaining(USER, shrunk) == {"q": 0}


def test_attempts_are_numbered_per_user_and_quiz():
    store = InMemoryProgressStore()
    add_attempts(store, "q", 2)
    add_attempts(store, "other", 1)

    numbers = [a.attempt_number for a in store.list_attempts(USER, ["q"])]

    assert numbers == [1, 2]
    assert store.list_attempts(USER, ["other"])[0].attempt_number == 1
