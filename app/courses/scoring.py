"""
Answer scoring for quizzes and tests
Pure functions: no database access, no clock
"""

import math
from typing import Any, Dict, List, Tuple

from app.courses.config import DEFAULT_QUESTION_POINTS
from app.courses.models import QuestionType


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative values (Math.round semantics)."""
    return int(math.floor(value + 0.5))


def percentage_of(score: float, total: float) -> int:
    if not total or total <= 0:
        return 0
    return round_half_up(score / total * 100)


def is_passing(percentage: int, passing_score: float) -> bool:
    return percentage >= passing_score


def question_points(question: dict) -> int:
    return question.get("points") or DEFAULT_QUESTION_POINTS


def total_points_of(assessment: dict) -> int:
    """
    Stored total if the content service computed one,
    otherwise the sum of question weights
    """
    stored = assessment.get("total_points")
    if stored:
        return stored
    return sum(question_points(q) for q in assessment.get("questions", []))


# ==================== EQUALITY ====================

def values_match(submitted: Any, expected: Any) -> bool:
    """
    Strict JSON-style equality.

    - bool never equals a number ("true" is not 1)
    - str never equals a number ("1" is not 1)
    - int and float compare numerically (1 == 1.0, as in JSON)
    - lists compare element by element, in order
    """
    if isinstance(submitted, bool) or isinstance(expected, bool):
        return type(submitted) is type(expected) and submitted == expected

    if isinstance(submitted, (int, float)) and isinstance(expected, (int, float)):
        return submitted == expected

    if isinstance(submitted, (list, tuple)) and isinstance(expected, (list, tuple)):
        if len(submitted) != len(expected):
            return False
        return all(values_match(s, e) for s, e in zip(submitted, expected))

    if isinstance(submitted, dict) and isinstance(expected, dict):
        if submitted.keys() != expected.keys():
            return False
        return all(values_match(submitted[k], expected[k]) for k in expected)

    if submitted is None or expected is None:
        return submitted is None and expected is None

    return type(submitted) is type(expected) and submitted == expected


# ==================== RULES PER QUESTION TYPE ====================

def _exact_match(question: dict, submitted_value: Any) -> bool:
    return values_match(submitted_value, question.get("correct_answer"))


def _manual_only(question: dict, submitted_value: Any) -> bool:
    # Graded by a human later; never correct at submission time
    return False


SCORING_RULES = {
    QuestionType.OPTION_INDEX: _exact_match,
    QuestionType.MULTIPLE_CHOICE: _exact_match,
    QuestionType.TRUE_FALSE: _exact_match,
    QuestionType.SHORT_ANSWER: _manual_only,
    QuestionType.ESSAY: _manual_only,
}


def resolve_question_type(question: dict, default: QuestionType) -> QuestionType:
    raw = question.get("question_type")
    if raw is None:
        return default
    try:
        return QuestionType(raw)
    except ValueError:
        return default


def score_answer(
    question: dict,
    submitted_value: Any,
    default_type: QuestionType = QuestionType.OPTION_INDEX
) -> Tuple[bool, int]:
    """
    Score one answer against its question.

    Returns:
        (is_correct, points_earned) where points_earned is the question's
        weight (default 1) when correct, else 0. No partial credit.
    """
    question_type = resolve_question_type(question, default_type)
    rule = SCORING_RULES[question_type]
    is_correct = rule(question, submitted_value)
    return is_correct, question_points(question) if is_correct else 0


def score_answers(
    questions: List[dict],
    answers: List[Dict[str, Any]],
    value_key: str,
    default_type: QuestionType
) -> Tuple[List[dict], int]:
    """
    Score a full answer sheet.

    Answer position i is matched to question i. Answers past the end of the
    question list are skipped and produce no result row.

    Returns:
        (results, score) with one result per scored answer:
        {"question_index", "submitted_value", "is_correct", "points_earned"}
    """
    results = []
    score = 0

    for index, answer in enumerate(answers):
        if index >= len(questions):
            continue

        submitted_value = answer.get(value_key)
        is_correct, points_earned = score_answer(questions[index], submitted_value, default_type)
        score += points_earned

        results.append({
            "question_index": index,
            "submitted_value": submitted_value,
            "is_correct": is_correct,
            "points_earned": points_earned,
        })

    return results, score
