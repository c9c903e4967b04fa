# app/services/scoring.py
"""
Quiz grading.

Everything here is a pure function of (quiz definition, answers): no store,
no clock, no logging side effects that change results.
"""

import random
from typing import Dict, List, Mapping, Optional, Union

from app.schemas.catalog import QuestionDefinition, QuestionType, QuizDefinition
from app.schemas.quiz import (
    AnswerValue,
    OptionForAttempt,
    QuestionForAttempt,
    QuestionResult,
    QuizForAttempt,
    QuizScore,
)
from app.utils.rounding import percentage, round_half_up

TEXT_TYPES = (QuestionType.TEXT_SHORT, QuestionType.TEXT_LONG)


def _as_id_list(answer: AnswerValue) -> List[str]:
    if answer is None:
        return []
    if isinstance(answer, str):
        return [answer]
    return [str(value) for value in answer]


def _as_text(answer: AnswerValue) -> str:
    if answer is None:
        return ""
    if isinstance(answer, str):
        return answer
    return ",".join(str(value) for value in answer)


def multi_select_points(
    points: int, correct: set, submitted: set, allow_partial_credit: bool
) -> int:
    """Points for a multi-select answer.

    Exact match earns full points. With partial credit each wrong pick cancels
    one right pick: ``round(points * max(0, right - wrong) / len(correct))``.
    """
    if submitted == correct:
        return points
    if not allow_partial_credit or not correct:
        return 0

    right = len(submitted & correct)
    wrong = len(submitted - correct)
    earned = round_half_up(points * max(0, right - wrong) / len(correct))
    return max(0, min(points, earned))


def score_question(
    question: QuestionDefinition,
    answer: AnswerValue,
    quiz_allows_partial_credit: bool = False,
    answered: bool = True,
) -> QuestionResult:
    """Grade one answer. Only a question left out of the submission is skipped;
    an explicit null is graded as an empty answer.
    """
    result = dict(
        question_id=question.id,
        question_type=question.question_type,
        answer=answer,
        points_possible=question.points,
    )

    if not answered:
        return QuestionResult(
            **result, is_correct=False, points_earned=0, skipped=True
        )

    if question.question_type == QuestionType.SINGLE_CHOICE:
        submitted = _as_id_list(answer)
        correct_ids = question.correct_option_ids
        is_correct = (
            len(submitted) == 1
            and len(correct_ids) > 0
            and submitted[0] == correct_ids[0]
        )
        earned = question.points if is_correct else 0

    elif question.question_type == QuestionType.MULTI_SELECT:
        allow_partial = (
            question.allow_partial_credit
            if question.allow_partial_credit is not None
            else quiz_allows_partial_credit
        )
        correct = set(question.correct_option_ids)
        submitted = set(_as_id_list(answer))
        earned = multi_select_points(question.points, correct, submitted, allow_partial)
        is_correct = submitted == correct

    else:
        # Free text is auto-accepted when non-empty and left for a human to
        # grade. case_sensitive has no effect on this policy.
        is_correct = len(_as_text(answer).strip()) > 0
        earned = question.points if is_correct else 0
        return QuestionResult(
            **result,
            is_correct=is_correct,
            points_earned=earned,
            requires_manual_review=True,
        )

    return QuestionResult(**result, is_correct=is_correct, points_earned=earned)


def score_quiz(
    quiz: QuizDefinition, answers: Optional[Mapping[str, AnswerValue]]
) -> QuizScore:
    """Grade a submission against the quiz answer key."""
    answers = answers or {}
    per_question = [
        score_question(
            question,
            answers.get(question.id),
            quiz.allow_partial_credit,
            answered=question.id in answers,
        )
        for question in quiz.questions
    ]

    total_points = sum(result.points_possible for result in per_question)
    earned_points = sum(result.points_earned for result in per_question)
    score_percent = percentage(earned_points, total_points)

    return QuizScore(
        quiz_id=quiz.id,
        total_points=total_points,
        earned_points=earned_points,
        score_percent=score_percent,
        passed=score_percent >= quiz.passing_score,
        questions_total=len(per_question),
        questions_correct=sum(1 for r in per_question if r.is_correct),
        questions_skipped=sum(1 for r in per_question if r.skipped),
        needs_manual_review=any(
            r.requires_manual_review and not r.skipped for r in per_question
        ),
        per_question=per_question,
    )


def build_attempt_view(
    quiz: QuizDefinition,
    seed: Union[int, str, None] = None,
    remaining_attempts: int = -1,
) -> QuizForAttempt:
    """The question sheet shown to a student, without correctness flags.

    Shuffling follows the quiz flags and is reproducible for a given seed.
    """
    rng = random.Random(seed)

    questions = sorted(quiz.questions, key=lambda q: q.order_index)
    if quiz.shuffle_questions:
        questions = list(questions)
        rng.shuffle(questions)

    sheet = []
    for question in questions:
        options = [OptionForAttempt(id=o.id, text=o.text) for o in question.options]
        if quiz.shuffle_options and question.question_type not in TEXT_TYPES:
            rng.shuffle(options)
        sheet.append(
            QuestionForAttempt(
                id=question.id,
                text=question.text,
                question_type=question.question_type,
                points=question.points,
                options=options,
            )
        )

    return QuizForAttempt(
        quiz_id=quiz.id,
        topic_id=quiz.topic_id,
        title=quiz.title,
        passing_score=quiz.passing_score,
        questions=sheet,
        remaining_attempts=remaining_attempts,
    )


def answers_for_storage(score: QuizScore) -> List[Dict]:
    """Per-question results in the JSON shape kept on the attempt row."""
    return [result.model_dump(mode="json") for result in score.per_question]
