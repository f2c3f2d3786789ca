from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Mapping, Optional, Union


@dataclass(frozen=True)
class ScoreResult:
    correct_count: int
    total_questions: int
    percentage: float


def _as_number(value: Any) -> Optional[Union[int, float]]:
    if value is None or isinstance(value, bool):
        return None
    # ints stay ints; float() overflows on very large ones
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_index(key: Any, total: int) -> Optional[int]:
    try:
        index = int(str(key))
    except ValueError:
        return None
    if index < 0 or index >= total:
        return None
    return index


def _percentage(correct: int, total: int) -> float:
    # exact ties round up: 1 of 32 is 3.13
    exact = Decimal(correct / total * 100)
    return float(exact.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def score_answers(answers: Mapping[Any, Any], questions: List[Dict[str, Any]]) -> ScoreResult:
    """
    Grade submitted answers against the authoritative question list.

    - answers: mapping question index (int or str) -> selected option index, 0-based
    - questions: decrypted question-bank entries whose ``correctAnswer`` is 1-based

    A submitted option is correct when it equals ``correctAnswer - 1``. Missing,
    unparsable or out-of-range entries count as wrong. The total always comes
    from ``questions``, never from the submission.
    """
    total = len(questions)
    correct = 0
    seen = set()

    for key, submitted in (answers or {}).items():
        index = _as_index(key, total)
        if index is None or index in seen:
            continue
        seen.add(index)
        submitted_num = _as_number(submitted)
        correct_num = _as_number(questions[index].get("correctAnswer"))
        if submitted_num is None or correct_num is None:
            continue
        if submitted_num == correct_num - 1:
            correct += 1

    percentage = _percentage(correct, total) if total else 0.0
    return ScoreResult(correct_count=correct, total_questions=total, percentage=percentage)
