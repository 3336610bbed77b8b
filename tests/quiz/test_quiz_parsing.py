from __future__ import annotations

import json

import pytest

from fixtures import make_question
from quizmaster.quiz.models import Flashcard
from quizmaster.quiz.parsing import (
    GenerationError,
    MalformedResponseError,
    QuestionValidationError,
    clean_json_text,
    parse_analysis_payload,
    parse_question_payload,
    validate_questions,
)


def _item(**overrides):
    item = {
        "id": 7,
        "question": "What is 2 + 2?",
        "options": ["3", "4", "5", "6"],
        "answer": "4",
        "explanation": "Basic arithmetic.",
    }
    item.update(overrides)
    return item


@pytest.mark.parametrize(
    "raw",
    [
        '```json\n[{"a": 1}]\n```',
        '```\n[{"a": 1}]\n```',
        '  [{"a": 1}]  ',
    ],
)
def test_clean_json_text_strips_fences(raw):
    assert clean_json_text(raw) == '[{"a": 1}]'


def test_parse_question_payload_renumbers_ids():
    second = _item(id=42, question="What is 3 + 3?", options=["6", "7"])
    second["answer"] = "6"
    raw = json.dumps([_item(id=42), second])

    questions = parse_question_payload(raw)

    assert [q.id for q in questions] == [1, 2]
    assert questions[0].options == ("3", "4", "5", "6")
    assert questions[0].answer == "4"
    assert questions[0].explanation == "Basic arithmetic."


def test_parse_question_payload_accepts_fenced_array():
    raw = "```json\n" + json.dumps([_item()]) + "\n```"

    assert len(parse_question_payload(raw)) == 1


def test_parse_question_payload_strips_option_whitespace():
    raw = json.dumps([_item(options=[" 3 ", " 4"], answer="4 ")])

    question = parse_question_payload(raw)[0]

    assert question.options == ("3", "4")
    assert question.answer == "4"


def test_empty_array_is_returned_as_empty_list():
    assert parse_question_payload("[]") == []


@pytest.mark.parametrize(
    "raw",
    ["", "not json", '{"questions": []}', "[1, 2]"],
)
def test_malformed_payloads_raise(raw):
    with pytest.raises(MalformedResponseError):
        parse_question_payload(raw)


@pytest.mark.parametrize(
    "overrides, fragment",
    [
        ({"answer": "7"}, "not one of its options"),
        ({"options": ["4", "4"]}, "duplicate"),
        ({"options": ["4"]}, "at least two"),
        ({"options": "4"}, "as a list"),
        ({"options": ["4", ""]}, "empty or non-text"),
        ({"question": "  "}, "'question'"),
        ({"answer": None}, "'answer'"),
    ],
)
def test_invalid_questions_raise_validation_error(overrides, fragment):
    raw = json.dumps([_item(), _item(**overrides)])

    with pytest.raises(QuestionValidationError) as exc:
        parse_question_payload(raw)

    assert "Question 2" in str(exc.value)
    assert fragment in str(exc.value)


def test_errors_share_generation_error_base():
    assert issubclass(MalformedResponseError, GenerationError)
    assert issubclass(QuestionValidationError, GenerationError)


def test_validate_questions_checks_edited_questions():
    good = make_question(5, "Q?", ["a", "b"], "a")
    bad = make_question(9, "Q2?", ["a", "b"], "c")

    assert [q.id for q in validate_questions([good, good])] == [1, 2]
    with pytest.raises(QuestionValidationError):
        validate_questions([good, bad])


def test_parse_analysis_payload():
    raw = json.dumps(
        {
            "feedback": " Nice work. ",
            "flashcards": [{"front": "Capital of France?", "back": "Paris"}],
        }
    )

    feedback, cards = parse_analysis_payload(raw)

    assert feedback == "Nice work."
    assert cards == [Flashcard(front="Capital of France?", back="Paris")]


def test_parse_analysis_payload_allows_missing_parts():
    assert parse_analysis_payload("{}") == (None, [])


@pytest.mark.parametrize(
    "payload",
    [
        [],
        {"feedback": 3},
        {"flashcards": {"front": "a", "back": "b"}},
        {"flashcards": ["card"]},
        {"flashcards": [{"front": "a"}]},
    ],
)
def test_parse_analysis_payload_rejects_bad_shapes(payload):
    with pytest.raises(MalformedResponseError):
        parse_analysis_payload(json.dumps(payload))
