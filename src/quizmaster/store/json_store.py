"""JSON-file document store kept under the workspace ``store`` directory.

Each document is one JSON file at ``<root>/<collection>/<id>.json``. Writes go
through a temporary file and ``os.replace`` so a crash never leaves a half
written document behind.
"""

from __future__ import annotations

import json
import os
import tempfile
import uuid
from dataclasses import replace
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, Sequence, TypeVar

from ..quiz.models import (
    Difficulty,
    Flashcard,
    FlashcardSet,
    Question,
    Quiz,
    QuizResult,
    WrongAnswer,
    utcnow,
)
from .base import NotFoundError, PersistenceError

__all__ = ["JsonDocumentStore"]

_QUIZZES = "quizzes"
_FLASHCARDS = "flashcards"
_RESULTS = "results"

_T = TypeVar("_T")


class JsonDocumentStore:
    """File-backed implementation of :class:`DocumentStore`."""

    def __init__(self, root: Path) -> None:
        self._root = root
        try:
            for collection in (_QUIZZES, _FLASHCARDS, _RESULTS):
                (self._root / collection).mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise PersistenceError(
                f"Unable to prepare store at {root}: {exc}"
            ) from exc

    @property
    def root(self) -> Path:
        return self._root

    # Quizzes -----------------------------------------------------------

    def create_quiz(
        self,
        title: str,
        topic: str,
        difficulty: Difficulty,
        questions: Sequence[Question],
    ) -> Quiz:
        quiz = Quiz(
            id=_generate_id(),
            title=title,
            topic=topic,
            difficulty=Difficulty.parse(difficulty),
            questions=tuple(questions),
            created_at=utcnow(),
        )
        self._write(_QUIZZES, quiz.id, quiz.to_dict())
        return quiz

    def list_quizzes(self, limit: int = 20) -> list[Quiz]:
        quizzes = self._load_all(_QUIZZES, Quiz.from_dict)
        quizzes.sort(key=lambda quiz: quiz.created_at, reverse=True)
        return quizzes[:limit] if limit > 0 else quizzes

    def get_quiz(self, quiz_id: str) -> Optional[Quiz]:
        payload = self._read(_QUIZZES, quiz_id)
        if payload is None:
            return None
        return _build(Quiz.from_dict, payload, self._path(_QUIZZES, quiz_id))

    def delete_quiz(self, quiz_id: str) -> None:
        path = self._path(_QUIZZES, quiz_id)
        try:
            path.unlink()
        except FileNotFoundError as exc:
            raise NotFoundError(f"Quiz not found: {quiz_id}") from exc
        except OSError as exc:
            raise PersistenceError(
                f"Failed to delete quiz {quiz_id}: {exc}"
            ) from exc

    def update_quiz(
        self,
        quiz_id: str,
        *,
        title: Optional[str] = None,
        questions: Optional[Sequence[Question]] = None,
    ) -> Quiz:
        current = self.get_quiz(quiz_id)
        if current is None:
            raise NotFoundError(f"Quiz not found: {quiz_id}")
        updated = replace(
            current,
            title=current.title if title is None else title,
            questions=(
                current.questions if questions is None else tuple(questions)
            ),
        )
        self._write(_QUIZZES, quiz_id, updated.to_dict())
        return updated

    # Flashcards --------------------------------------------------------

    def create_flashcard_set(
        self, topic: str, cards: Sequence[Flashcard]
    ) -> FlashcardSet:
        flashcard_set = FlashcardSet(
            id=_generate_id(),
            topic=topic,
            cards=tuple(cards),
            created_at=utcnow(),
        )
        self._write(_FLASHCARDS, flashcard_set.id, flashcard_set.to_dict())
        return flashcard_set

    def list_flashcard_sets(
        self, topic: Optional[str] = None
    ) -> list[FlashcardSet]:
        sets = self._load_all(_FLASHCARDS, FlashcardSet.from_dict)
        if topic is not None:
            sets = [item for item in sets if item.topic == topic]
        sets.sort(key=lambda item: item.created_at, reverse=True)
        return sets

    # Results -----------------------------------------------------------

    def create_quiz_result(
        self,
        quiz_id: str,
        topic: str,
        score: int,
        total_questions: int,
        wrong_answers: Sequence[WrongAnswer],
    ) -> QuizResult:
        result = QuizResult(
            id=_generate_id(),
            quiz_id=quiz_id,
            topic=topic,
            score=score,
            total_questions=total_questions,
            wrong_answers=tuple(wrong_answers),
            created_at=utcnow(),
        )
        self._write(_RESULTS, result.id, result.to_dict())
        return result

    def list_recent_results(self, limit: int = 50) -> list[QuizResult]:
        results = self._load_all(_RESULTS, QuizResult.from_dict)
        results.sort(key=lambda item: item.created_at, reverse=True)
        return results[:limit] if limit > 0 else results

    # Internals ---------------------------------------------------------

    def _path(self, collection: str, doc_id: str) -> Path:
        if not doc_id or "/" in doc_id or "\\" in doc_id or doc_id.startswith("."):
            raise NotFoundError(f"Invalid document id: {doc_id!r}")
        return self._root / collection / f"{doc_id}.json"

    def _read(self, collection: str, doc_id: str) -> Optional[Mapping[str, Any]]:
        try:
            path = self._path(collection, doc_id)
        except NotFoundError:
            return None
        if not path.is_file():
            return None
        return _read_json(path)

    def _load_all(
        self, collection: str, factory: Callable[[Mapping[str, Any]], _T]
    ) -> list[_T]:
        directory = self._root / collection
        try:
            paths = sorted(directory.glob("*.json"))
        except OSError as exc:
            raise PersistenceError(
                f"Failed to list {collection}: {exc}"
            ) from exc
        return [_build(factory, _read_json(path), path) for path in paths]

    def _write(
        self, collection: str, doc_id: str, payload: Mapping[str, Any]
    ) -> None:
        path = self._path(collection, doc_id)
        try:
            _atomic_write_json(path, payload)
        except OSError as exc:
            raise PersistenceError(
                f"Failed to write {collection} document {doc_id}: {exc}"
            ) from exc


def _build(
    factory: Callable[[Mapping[str, Any]], _T],
    payload: Mapping[str, Any],
    path: Path,
) -> _T:
    try:
        return factory(payload)
    except (KeyError, TypeError, ValueError) as exc:
        raise PersistenceError(f"Corrupt document {path}: {exc}") from exc


def _read_json(path: Path) -> Mapping[str, Any]:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise PersistenceError(f"Failed to parse document: {path}") from exc
    except OSError as exc:
        raise PersistenceError(f"Failed to read document {path}: {exc}") from exc
    if not isinstance(payload, Mapping):
        raise PersistenceError(f"Document is not a JSON object: {path}")
    return payload


def _atomic_write_json(path: Path, payload: Mapping[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    handle = tempfile.NamedTemporaryFile(
        "w",
        delete=False,
        encoding="utf-8",
        dir=str(path.parent),
        suffix=".tmp",
    )
    try:
        json.dump(payload, handle, indent=2, sort_keys=True, ensure_ascii=False)
        handle.flush()
        os.fsync(handle.fileno())
    finally:
        handle.close()
    os.replace(handle.name, path)
    try:
        path.chmod(0o600)
    except PermissionError:  # pragma: no cover - depends on filesystem
        pass


def _generate_id() -> str:
    return uuid.uuid4().hex
