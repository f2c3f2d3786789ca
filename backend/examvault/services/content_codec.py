import json
from typing import Any, Dict, List

from ..exceptions import InvalidContentError

OPTIONS_PER_QUESTION = 4


def _is_int(value: Any) -> bool:
    # bool is a subclass of int, but true/false are not answer ordinals
    return isinstance(value, int) and not isinstance(value, bool)


def validate_questions(questions: Any) -> List[Dict[str, Any]]:
    """
    Check a question list against the question-bank schema.

    Each question needs non-empty ``question`` text, exactly four string
    ``options`` and a 1-based ``correctAnswer`` in [1, 4]. Errors name the
    offending question with its 1-based number.
    """
    if not isinstance(questions, list):
        raise InvalidContentError("Questions must be an array")
    if not questions:
        raise InvalidContentError("Question bank must contain at least one question")

    for index, q in enumerate(questions):
        number = index + 1
        if not isinstance(q, dict):
            raise InvalidContentError(f"Question {number} must be an object", index=number)
        text = q.get("question")
        if not isinstance(text, str) or not text.strip():
            raise InvalidContentError(f"Question {number} is missing question text", index=number)
        options = q.get("options")
        if not isinstance(options, list) or len(options) != OPTIONS_PER_QUESTION:
            raise InvalidContentError(f"Question {number} must have exactly 4 options", index=number)
        if any(not isinstance(option, str) for option in options):
            raise InvalidContentError(f"Question {number} options must be strings", index=number)
        correct = q.get("correctAnswer")
        if not _is_int(correct) or correct < 1 or correct > OPTIONS_PER_QUESTION:
            raise InvalidContentError(
                f"Question {number} has invalid correct answer index (must be 1-4)", index=number
            )
    return questions


def parse_question_bank(raw: bytes) -> Dict[str, Any]:
    """Parse uploaded bytes into a validated ``{"questions": [...]}`` document."""
    try:
        bank = json.loads(raw)
    except (ValueError, TypeError) as e:
        raise InvalidContentError(f"Invalid JSON format: {e}")
    if not isinstance(bank, dict):
        raise InvalidContentError("Question bank must be a JSON object with a 'questions' array")
    validate_questions(bank.get("questions"))
    return bank


def sanitize_for_delivery(questions: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    # drop correctAnswer so the answer key never reaches a student
    return [{"text": q.get("question"), "options": list(q.get("options") or [])} for q in questions]
