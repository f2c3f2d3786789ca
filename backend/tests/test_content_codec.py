import json

import pytest
from examvault.exceptions import InvalidContentError
from examvault.services.content_codec import parse_question_bank, sanitize_for_delivery, validate_questions


def q(text="Q?", options=None, correct=1):
    return {"question": text, "options": options if options is not None else ["a", "b", "c", "d"], "correctAnswer": correct}


def test_valid_bank_parses(bank_bytes, sample_bank):
    assert parse_question_bank(bank_bytes) == sample_bank


def test_error_names_the_offending_question():
    questions = [q(), q(), q(), {"question": "Fourth", "correctAnswer": 1}]
    with pytest.raises(InvalidContentError) as exc:
        validate_questions(questions)
    assert exc.value.index == 4
    assert "Question 4" in exc.value.message
    assert "exactly 4 options" in exc.value.message


@pytest.mark.parametrize("question, fragment", [
    (q(text=""), "missing question text"),
    (q(text="   "), "missing question text"),
    (q(options=["a", "b", "c"]), "exactly 4 options"),
    (q(options=["a", "b", "c", "d", "e"]), "exactly 4 options"),
    (q(options=["a", "b", 3, "d"]), "options must be strings"),
    (q(correct=0), "invalid correct answer index"),
    (q(correct=5), "invalid correct answer index"),
    (q(correct="2"), "invalid correct answer index"),
    (q(correct=True), "invalid correct answer index"),
    (q(correct=2.0), "invalid correct answer index"),
    ("not an object", "must be an object"),
])
def test_invalid_questions(question, fragment):
    with pytest.raises(InvalidContentError) as exc:
        validate_questions([question])
    assert fragment in exc.value.message
    assert exc.value.index == 1


def test_questions_must_be_a_non_empty_array():
    with pytest.raises(InvalidContentError, match="must be an array"):
        validate_questions({"0": q()})
    with pytest.raises(InvalidContentError, match="at least one question"):
        validate_questions([])


@pytest.mark.parametrize("raw", [b"", b"{not json", b"\xff\xfe"])
def test_unparsable_upload(raw):
    with pytest.raises(InvalidContentError, match="Invalid JSON format"):
        parse_question_bank(raw)


def test_top_level_must_be_object():
    with pytest.raises(InvalidContentError, match="JSON object"):
        parse_question_bank(json.dumps([q()]).encode())


def test_missing_questions_key():
    with pytest.raises(InvalidContentError, match="must be an array"):
        parse_question_bank(b'{"title": "no questions"}')


def test_sanitize_drops_answer_key(sample_bank):
    delivered = sanitize_for_delivery(sample_bank["questions"])
    assert delivered[0] == {"text": "Capital of France?", "options": ["Berlin", "Paris", "Rome", "Madrid"]}
    assert all("correctAnswer" not in item for item in delivered)
    assert len(delivered) == 3
