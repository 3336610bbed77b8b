from __future__ import annotations

import json

import pytest

from fixtures import make_question, make_quiz, questions_json, sample_questions
from quizmaster.quiz.library import (
    NOTES_TITLE,
    NOTES_TOPIC,
    create_quiz_from_text,
    create_quiz_from_topic,
    edit_quiz,
    filter_quizzes,
    load_guest_quiz,
    topic_prompt,
)
from quizmaster.quiz.models import Difficulty
from quizmaster.quiz.parsing import GenerationError, QuestionValidationError
from quizmaster.quiz.session import GUEST_QUIZ_ID
from quizmaster.store import NotFoundError

GENERATED = questions_json(sample_questions())


def test_create_from_text_uses_notes_defaults(gateway, chat_client, store):
    chat_client.queue_response(GENERATED)

    quiz = create_quiz_from_text(gateway, store, "My lecture notes")

    assert quiz.title == NOTES_TITLE
    assert quiz.topic == NOTES_TOPIC
    assert len(quiz.questions) == 3
    assert store.get_quiz(quiz.id) == quiz
    assert "My lecture notes" in chat_client.user_prompt()


def test_create_from_topic_synthesizes_prompt(gateway, chat_client, store):
    chat_client.queue_response(GENERATED)

    quiz = create_quiz_from_topic(
        gateway, store, " Photosynthesis ", difficulty=Difficulty.HARD, count=3
    )

    assert quiz.title == "Photosynthesis"
    assert quiz.topic == "Photosynthesis"
    assert quiz.difficulty is Difficulty.HARD
    assert (
        "Generate a hard difficulty quiz about Photosynthesis with 3 questions."
        in chat_client.user_prompt()
    )


def test_topic_prompt_wording():
    assert topic_prompt("Rust", Difficulty.EXTREME, 7) == (
        "Generate a extreme difficulty quiz about Rust with 7 questions."
    )


def test_generation_failure_creates_nothing(gateway, chat_client, store):
    chat_client.queue_response("oops")

    with pytest.raises(GenerationError):
        create_quiz_from_topic(gateway, store, "Cells")

    assert store.list_quizzes() == []


def test_blank_topic_is_rejected(gateway, store):
    with pytest.raises(GenerationError):
        create_quiz_from_topic(gateway, store, "  ")


def test_filter_quizzes_by_topic_and_search():
    quizzes = [
        make_quiz(quiz_id="1", title="Intro to Python", topic="python"),
        make_quiz(quiz_id="2", title="Advanced PYTHON", topic="python"),
        make_quiz(quiz_id="3", title="Python history", topic="history"),
    ]

    assert [q.id for q in filter_quizzes(quizzes, topic="python")] == ["1", "2"]
    assert [q.id for q in filter_quizzes(quizzes, search="python")] == [
        "1",
        "2",
        "3",
    ]
    assert [
        q.id for q in filter_quizzes(quizzes, topic="python", search="adv")
    ] == ["2"]
    assert filter_quizzes(quizzes, topic="Python") == []


def test_edit_quiz_retitles_and_drops(store, saved_quiz):
    updated = edit_quiz(
        store, saved_quiz.id, title="  Renamed ", drop_positions=[2]
    )

    assert updated.title == "Renamed"
    assert [q.question for q in updated.questions] == [
        "Capital of France?",
        "Largest planet?",
    ]
    assert [q.id for q in updated.questions] == [1, 2]
    assert store.get_quiz(saved_quiz.id) == updated


def test_edit_quiz_replaces_questions_with_validation(store, saved_quiz):
    bad = make_question(1, "Broken?", ["a", "b"], "c")

    with pytest.raises(QuestionValidationError):
        edit_quiz(store, saved_quiz.id, questions=[bad])

    assert store.get_quiz(saved_quiz.id) == saved_quiz


@pytest.mark.parametrize(
    "kwargs, error",
    [
        ({"drop_positions": [1, 2, 3]}, QuestionValidationError),
        ({"drop_positions": [4]}, ValueError),
        ({"title": "   "}, ValueError),
    ],
)
def test_edit_quiz_rejects_bad_edits(store, saved_quiz, kwargs, error):
    with pytest.raises(error):
        edit_quiz(store, saved_quiz.id, **kwargs)

    assert store.get_quiz(saved_quiz.id) == saved_quiz


def test_edit_missing_quiz(store):
    with pytest.raises(NotFoundError):
        edit_quiz(store, "missing", title="x")


def test_load_guest_quiz(tmp_path):
    path = tmp_path / "questions.json"
    path.write_text(GENERATED, encoding="utf-8")

    quiz = load_guest_quiz(path)

    assert quiz.id == GUEST_QUIZ_ID
    assert len(quiz.questions) == 3


def test_load_guest_quiz_rejects_empty(tmp_path):
    path = tmp_path / "questions.json"
    path.write_text(json.dumps([]), encoding="utf-8")

    with pytest.raises(GenerationError):
        load_guest_quiz(path)
