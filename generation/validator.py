"""
Structural validator for generated question sets.

Checks shape only, never factual correctness:
- non-empty list of questions
- every question has non-empty ``question_text``
- exactly 4 options, exactly one with ``is_correct is True``
- every option has non-empty ``option_text`` and a boolean ``is_correct``

Input is whatever the remote service sent, so nothing about its type is
assumed. The whole set is rejected if a single question fails.
"""

from typing import Any, List

from generation.schemas import GeneratedQuestion

OPTIONS_PER_QUESTION = 4


def _is_non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and value.strip() != ""


def _is_valid_option(option: Any) -> bool:
    if not isinstance(option, dict):
        return False
    return _is_non_empty_str(option.get("option_text")) and isinstance(option.get("is_correct"), bool)


def is_valid_question(question: Any) -> bool:
    """Check a single raw question dict."""
    if not isinstance(question, dict):
        return False
    if not _is_non_empty_str(question.get("question_text")):
        return False

    options = question.get("options")
    if not isinstance(options, list) or len(options) != OPTIONS_PER_QUESTION:
        return False

    if not all(_is_valid_option(opt) for opt in options):
        return False

    correct = sum(1 for opt in options if opt["is_correct"] is True)
    return correct == 1


def validate_generated_questions(questions: Any) -> bool:
    """
    All-or-nothing check over a raw question list.

    Returns:
        True only if ``questions`` is a non-empty list and every element
        passes is_valid_question.
    """
    if not isinstance(questions, list) or not questions:
        return False
    return all(is_valid_question(q) for q in questions)


def to_questions(questions: List[dict]) -> List[GeneratedQuestion]:
    """Convert a list that already passed validate_generated_questions."""
    return [GeneratedQuestion.model_validate(q) for q in questions]
