from __future__ import annotations

import stat
from datetime import datetime, timedelta, timezone

import pytest

from fixtures import sample_questions
from quizmaster.quiz.models import Difficulty, Flashcard, WrongAnswer
from quizmaster.store import JsonDocumentStore, NotFoundError, PersistenceError
from quizmaster.store import json_store


@pytest.fixture
def ticking_clock(monkeypatch):
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    state = {"n": 0}

    def _now():
        state["n"] += 1
        return start + timedelta(minutes=state["n"])

    monkeypatch.setattr(json_store, "utcnow", _now)


def test_quiz_round_trip(store):
    created = store.create_quiz(
        "General Knowledge", "trivia", "hard", sample_questions()
    )

    loaded = store.get_quiz(created.id)

    assert loaded == created
    assert loaded.difficulty is Difficulty.HARD
    path = store.root / "quizzes" / f"{created.id}.json"
    assert stat.S_IMODE(path.stat().st_mode) == 0o600
    assert not list(path.parent.glob("*.tmp"))


def test_list_quizzes_newest_first_with_limit(store, ticking_clock):
    ids = [
        store.create_quiz(f"Quiz {n}", "t", Difficulty.EASY, sample_questions()).id
        for n in range(3)
    ]

    assert [q.id for q in store.list_quizzes()] == list(reversed(ids))
    assert [q.id for q in store.list_quizzes(limit=2)] == [ids[2], ids[1]]


def test_update_quiz_keeps_unchanged_fields(store, saved_quiz):
    updated = store.update_quiz(saved_quiz.id, title="Renamed")

    assert updated.title == "Renamed"
    assert updated.questions == saved_quiz.questions
    assert updated.created_at == saved_quiz.created_at
    assert store.get_quiz(saved_quiz.id) == updated


def test_delete_quiz(store, saved_quiz):
    store.delete_quiz(saved_quiz.id)

    assert store.get_quiz(saved_quiz.id) is None
    with pytest.raises(NotFoundError):
        store.delete_quiz(saved_quiz.id)


def test_missing_and_invalid_ids(store):
    assert store.get_quiz("nope") is None
    assert store.get_quiz("../escape") is None
    with pytest.raises(NotFoundError):
        store.update_quiz("nope", title="x")
    with pytest.raises(NotFoundError):
        store.delete_quiz("../escape")


def test_corrupt_documents_raise_persistence_error(store, saved_quiz):
    path = store.root / "quizzes" / f"{saved_quiz.id}.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(PersistenceError):
        store.get_quiz(saved_quiz.id)
    with pytest.raises(PersistenceError):
        store.list_quizzes()


def test_document_missing_fields_is_corrupt(store):
    (store.root / "quizzes" / "broken.json").write_text(
        '{"id": "broken"}', encoding="utf-8"
    )

    with pytest.raises(PersistenceError, match="Corrupt document"):
        store.get_quiz("broken")


def test_flashcard_sets_filter_by_topic(store, ticking_clock):
    first = store.create_flashcard_set("python", [Flashcard("a", "b")])
    store.create_flashcard_set("history", [Flashcard("c", "d")])
    latest = store.create_flashcard_set("python", [Flashcard("e", "f")])

    assert [s.id for s in store.list_flashcard_sets("python")] == [
        latest.id,
        first.id,
    ]
    assert len(store.list_flashcard_sets()) == 3


def test_results_newest_first(store, ticking_clock):
    wrong = [WrongAnswer("Q?", "A", "Skipped")]
    older = store.create_quiz_result("quiz-1", "python", 1, 2, wrong)
    newer = store.create_quiz_result("quiz-2", "python", 2, 2, [])

    results = store.list_recent_results()

    assert [r.id for r in results] == [newer.id, older.id]
    assert results[1].wrong_answers == tuple(wrong)
    assert [r.id for r in store.list_recent_results(limit=1)] == [newer.id]


def test_unwritable_root_raises(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("x", encoding="utf-8")

    with pytest.raises(PersistenceError):
        JsonDocumentStore(blocker / "store")
