import pytest
from fastapi.testclient import TestClient

from app.core.init import seed_demo_catalog
from app.core.security import jwt_manager
from app.store.sql import SqlContentCatalog
from main import app

STUDENT = "student-42"


def auth(user_id=STUDENT):
    token = jwt_manager.create_access_token(user_id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def demo(db):
    course = SqlContentCatalog(db).get_course(seed_demo_catalog(db).id)
    db.close()
    return course


@pytest.fixture
def client():
    # no lifespan: tables come from the db fixture
    return TestClient(app)


def enroll(client, course_id, user_id=STUDENT):
    return client.post(f"/student/courses/{course_id}/enroll", headers=auth(user_id))


def option_id(question, text):
    return next(option.id for option in question.options if option.text == text)


def test_health(client, db):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["database"] == "healthy"


def test_requests_without_token_are_rejected(client, demo):
    response = client.post(f"/student/courses/{demo.id}/enroll")

    assert response.status_code == 401


def test_invalid_token_is_rejected(client, demo):
    response = client.get(
        f"/student/courses/{demo.id}/progress",
        headers={"Authorization": "Bearer not-a-token"},
    )

    assert response.status_code == 401


def test_unknown_course_is_not_found(client, db):
    response = enroll(client, "no-such-course")

    assert response.status_code == 404
    assert response.json()["type"] == "not_found"


def test_enroll_is_idempotent(client, demo):
    first = enroll(client, demo.id)
    second = enroll(client, demo.id)

    assert first.status_code == 201
    assert first.json()["status"] == "ACTIVE"
    assert second.json() == first.json()


def test_quiz_sheet_hides_answers(client, demo):
    enroll(client, demo.id)
    quiz = demo.modules[0].topics[1].quizzes[0]

    response = client.get(f"/student/quizzes/{quiz.id}", headers=auth())

    assert response.status_code == 200
    body = response.json()
    assert body["remaining_attempts"] == 3
    assert len(body["questions"]) == 3
    assert "is_correct" not in response.text


def test_quiz_requires_enrollment(client, demo):
    quiz = demo.modules[0].topics[1].quizzes[0]

    response = client.post(
        f"/student/quizzes/{quiz.id}/submit", json={"answers": {}}, headers=auth()
    )

    assert response.status_code == 403
    assert response.json()["type"] == "forbidden"


def test_locked_topic_returns_reason(client, demo):
    enroll(client, demo.id)
    loops = demo.modules[1].topics[1]

    access = client.get(f"/student/topics/{loops.id}/access", headers=auth())
    submit = client.post(
        f"/student/quizzes/{loops.quizzes[0].id}/submit",
        json={"answers": {}},
        headers=auth(),
    )

    assert access.json()["can_access"] is False
    assert access.json()["reason"] == "PREREQUISITE_MODULE_INCOMPLETE"
    assert submit.status_code == 403
    assert submit.json()["detail"]["code"] == "PREREQUISITE_MODULE_INCOMPLETE"
    assert submit.json()["detail"]["prerequisite_title"] == "Basics"


def test_submission_updates_progress(client, demo):
    enroll(client, demo.id)
    installing, variables = demo.modules[0].topics
    quiz = variables.quizzes[0]
    single, multi, text = quiz.questions

    opened = client.post(f"/student/topics/{installing.id}/open", headers=auth())
    client.post(f"/student/topics/{installing.id}/mark-complete", headers=auth())
    response = client.post(
        f"/student/quizzes/{quiz.id}/submit",
        json={
            "answers": {
                single.id: option_id(single, "tuple"),
                multi.id: [option_id(multi, "int"), option_id(multi, "float")],
                text.id: "A reference to an object",
            },
            "time_spent": 90,
        },
        headers=auth(),
    )

    assert opened.json()["progress"]["view_count"] == 1
    assert response.status_code == 200
    attempt = response.json()
    assert attempt["score"] == 100
    assert attempt["passed"] is True
    assert attempt["topic_status"] == "COMPLETED"
    assert attempt["needs_manual_review"] is True
    assert attempt["remaining_attempts"] == 2

    progress = client.get(f"/student/courses/{demo.id}/progress", headers=auth()).json()
    assert progress["enrollment"]["overall_progress"] == 50
    assert progress["module_progresses"][0]["status"] == "COMPLETED"

    next_topic = client.get(f"/student/courses/{demo.id}/next-topic", headers=auth())
    assert next_topic.json()["next_topic"]["title"] == "Conditionals"


def test_mark_complete_without_passing_quiz_needs_review(client, demo):
    enroll(client, demo.id)
    variables = demo.modules[0].topics[1]

    response = client.post(f"/student/topics/{variables.id}/mark-complete", headers=auth())

    assert response.status_code == 200
    assert response.json()["success"] is False
    assert response.json()["status"] == "NEEDS_REVIEW"


def test_quota_exceeded_is_conflict(client, demo):
    enroll(client, demo.id)
    installing, variables = demo.modules[0].topics
    conditionals, loops = demo.modules[1].topics
    types_quiz = variables.quizzes[0]
    single, multi, _ = types_quiz.questions

    client.post(f"/student/topics/{installing.id}/mark-complete", headers=auth())
    client.post(
        f"/student/quizzes/{types_quiz.id}/submit",
        json={
            "answers": {
                single.id: option_id(single, "tuple"),
                multi.id: [option_id(multi, "int"), option_id(multi, "float")],
            }
        },
        headers=auth(),
    )
    client.post(f"/student/topics/{conditionals.id}/mark-complete", headers=auth())

    quiz = loops.quizzes[0]
    wrong = {"answers": {quiz.questions[0].id: option_id(quiz.questions[0], "pass")}}
    for _ in range(2):
        response = client.post(f"/student/quizzes/{quiz.id}/submit", json=wrong, headers=auth())
        assert response.status_code == 200
        assert response.json()["passed"] is False

    blocked = client.post(f"/student/quizzes/{quiz.id}/submit", json=wrong, headers=auth())
    remaining = client.get(f"/student/topics/{loops.id}/remaining-attempts", headers=auth())
    history = client.get(f"/student/quizzes/{quiz.id}/attempts", headers=auth())

    assert blocked.status_code == 409
    assert blocked.json()["detail"]["code"] == "QUOTA_EXCEEDED"
    assert remaining.json()["remaining_attempts"] == {quiz.id: 0}
    assert history.json()["total_attempts"] == 2
    assert history.json()["best_score"] == 0
