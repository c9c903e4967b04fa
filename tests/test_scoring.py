import pytest

from app.schemas.catalog import QuestionType, QuizDefinition
from app.services.scoring import (
    build_attempt_view,
    multi_select_points,
    score_question,
    score_quiz,
)
from tests.factories import multi_select, single_choice, text_question


def make_quiz(questions, passing_score=70, allow_partial_credit=False, **kwargs):
    return QuizDefinition(
        id="quiz",
        topic_id="topic",
        passing_score=passing_score,
        allow_partial_credit=allow_partial_credit,
        questions=questions,
        **kwargs,
    )


# ==================== Single choice ====================


def test_single_choice_correct_answer_earns_full_points():
    question = single_choice("q1", correct="B", points=10)

    result = score_question(question, "B")

    assert result.is_correct is True
    assert result.points_earned == 10


def test_single_choice_wrong_answer_earns_nothing_even_with_partial_credit():
    question = single_choice("q1", correct="B", points=10)

    result = score_question(question, "A", quiz_allows_partial_credit=True)

    assert result.is_correct is False
    assert result.points_earned == 0


def test_single_choice_accepts_one_element_list():
    question = single_choice("q1", correct="B")

    assert score_question(question, ["B"]).is_correct is True
    assert score_question(question, ["B", "C"]).is_correct is False


# ==================== Multi select ====================


def test_multi_select_exact_match_earns_full_points():
    question = multi_select("q1", correct=("A", "C"), points=10)

    result = score_question(question, ["C", "A"])

    assert result.is_correct is True
    assert result.points_earned == 10


def test_multi_select_partial_credit_for_subset():
    question = multi_select("q1", correct=("A", "C"), points=10, allow_partial_credit=True)

    result = score_question(question, ["A"])

    assert result.points_earned == 5
    assert result.is_correct is False


def test_multi_select_wrong_pick_cancels_right_pick():
    question = multi_select("q1", correct=("A", "C"), points=10, allow_partial_credit=True)

    assert score_question(question, ["A", "B"]).points_earned == 0


def test_multi_select_without_partial_credit_is_all_or_nothing():
    question = multi_select("q1", correct=("A", "C"), points=10)

    assert score_question(question, ["A"]).points_earned == 0


def test_multi_select_uses_quiz_flag_unless_question_overrides_it():
    inherits = multi_select("q1", correct=("A", "C"), points=10)
    disabled = multi_select("q2", correct=("A", "C"), points=10, allow_partial_credit=False)

    assert score_question(inherits, ["A"], quiz_allows_partial_credit=True).points_earned == 5
    assert score_question(disabled, ["A"], quiz_allows_partial_credit=True).points_earned == 0


def test_multi_select_partial_credit_rounds_half_up():
    # 5 * 1/2 = 2.5 -> 3
    assert multi_select_points(5, {"A", "C"}, {"A"}, True) == 3


def test_multi_select_partial_credit_stays_within_bounds():
    correct = {"A", "B", "C"}
    options = ["A", "B", "C", "D", "E", "F"]

    previous_by_wrong = {}
    for right in range(0, 4):
        previous = None
        for wrong in range(0, 4):
            submitted = set(options[:right]) | set(options[3 : 3 + wrong])
            earned = multi_select_points(9, correct, submitted, True)

            assert 0 <= earned <= 9
            if previous is not None:
                assert earned <= previous  # more wrong picks never help
            if wrong in previous_by_wrong:
                assert earned >= previous_by_wrong[wrong]  # more right picks never hurt
            previous = earned
            previous_by_wrong[wrong] = earned


# ==================== Free text ====================


@pytest.mark.parametrize("long", [False, True])
def test_text_answer_is_accepted_and_flagged_for_review(long):
    question = text_question("q1", points=5, long=long)

    result = score_question(question, "  a variable names a value ")

    assert result.is_correct is True
    assert result.points_earned == 5
    assert result.requires_manual_review is True


def test_blank_text_answer_earns_nothing():
    question = text_question("q1", points=5)

    result = score_question(question, "   ")

    assert result.is_correct is False
    assert result.points_earned == 0
    assert result.skipped is False


# ==================== Whole quiz ====================


def test_empty_answers_score_zero():
    quiz = make_quiz([single_choice("q1"), multi_select("q2")])

    score = score_quiz(quiz, {})

    assert score.score_percent == 0
    assert score.earned_points == 0
    assert score.total_points == 20
    assert score.questions_skipped == 2
    assert score.passed is False


def test_only_missing_answers_are_skipped():
    quiz = make_quiz([single_choice("q1"), single_choice("q2"), single_choice("q3")])

    score = score_quiz(quiz, {"q1": "A", "q2": None})

    assert score.questions_skipped == 1
    assert score.questions_correct == 1
    assert [r.skipped for r in score.per_question] == [False, False, True]
    assert score.per_question[1].is_correct is False
    assert score.per_question[1].points_earned == 0


def test_quiz_without_questions_scores_zero():
    score = score_quiz(make_quiz([], passing_score=0), {})

    assert score.total_points == 0
    assert score.score_percent == 0


def test_pass_threshold_is_inclusive():
    quiz = make_quiz(
        [single_choice(f"q{i}", points=1) for i in range(4)], passing_score=75
    )

    three_right = score_quiz(quiz, {"q0": "A", "q1": "A", "q2": "A", "q3": "B"})
    two_right = score_quiz(quiz, {"q0": "A", "q1": "A", "q2": "B", "q3": "B"})

    assert three_right.score_percent == 75
    assert three_right.passed is True
    assert two_right.passed is False


def test_score_percent_rounds_half_up():
    # 1 of 8 points = 12.5%
    quiz = make_quiz([single_choice("q1", points=1), single_choice("q2", points=7)])

    assert score_quiz(quiz, {"q1": "A"}).score_percent == 13


def test_text_questions_mark_quiz_for_manual_review():
    quiz = make_quiz([single_choice("q1"), text_question("q2")])

    assert score_quiz(quiz, {"q1": "A", "q2": "answer"}).needs_manual_review is True
    assert score_quiz(quiz, {"q1": "A"}).needs_manual_review is False


def test_scoring_is_deterministic():
    quiz = make_quiz(
        [single_choice("q1"), multi_select("q2", allow_partial_credit=True)]
    )
    answers = {"q1": "A", "q2": ["A", "D"]}

    assert score_quiz(quiz, answers) == score_quiz(quiz, answers)


# ==================== Attempt view ====================


def test_attempt_view_hides_correct_answers():
    quiz = make_quiz([single_choice("q1"), multi_select("q2")])

    view = build_attempt_view(quiz, remaining_attempts=2)
    payload = view.model_dump()

    assert view.remaining_attempts == 2
    assert [q.id for q in view.questions] == ["q1", "q2"]
    for question in payload["questions"]:
        for option in question["options"]:
            assert set(option) == {"id", "text"}


def test_attempt_view_shuffle_is_reproducible_for_a_seed():
    questions = [single_choice(f"q{i}", options=tuple("ABCDEF")) for i in range(10)]
    quiz = make_quiz(questions, shuffle_questions=True, shuffle_options=True)

    first = build_attempt_view(quiz, seed="user:quiz:1")
    second = build_attempt_view(quiz, seed="user:quiz:1")

    assert first == second
    assert sorted(q.id for q in first.questions) == sorted(q.id for q in questions)


def test_attempt_view_keeps_order_without_shuffle_flags():
    quiz = make_quiz([single_choice(f"q{i}") for i in range(5)])

    view = build_attempt_view(quiz, seed=42)

    assert [q.id for q in view.questions] == [f"q{i}" for i in range(5)]
    assert [o.id for o in view.questions[0].options] == ["A", "B", "C"]
    assert view.questions[0].question_type == QuestionType.SINGLE_CHOICE
