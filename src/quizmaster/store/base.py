"""Document store interface and errors."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Protocol, Sequence

if TYPE_CHECKING:  # pragma: no cover
    from ..quiz.models import (
        Difficulty,
        Flashcard,
        FlashcardSet,
        Question,
        Quiz,
        QuizResult,
        WrongAnswer,
    )

__all__ = ["PersistenceError", "NotFoundError", "DocumentStore"]


class PersistenceError(RuntimeError):
    """Raised when the store cannot be read or written."""


class NotFoundError(PersistenceError):
    """Raised when an update or delete targets a missing document."""


class DocumentStore(Protocol):
    """Operations quizmaster needs from a document store."""

    def create_quiz(
        self,
        title: str,
        topic: str,
        difficulty: Difficulty,
        questions: Sequence[Question],
    ) -> Quiz: ...

    def list_quizzes(self, limit: int = 20) -> list[Quiz]: ...

    def get_quiz(self, quiz_id: str) -> Optional[Quiz]: ...

    def delete_quiz(self, quiz_id: str) -> None: ...

    def update_quiz(
        self,
        quiz_id: str,
        *,
        title: Optional[str] = None,
        questions: Optional[Sequence[Question]] = None,
    ) -> Quiz: ...

    def create_flashcard_set(
        self, topic: str, cards: Sequence[Flashcard]
    ) -> FlashcardSet: ...

    def list_flashcard_sets(
        self, topic: Optional[str] = None
    ) -> list[FlashcardSet]: ...

    def create_quiz_result(
        self,
        quiz_id: str,
        topic: str,
        score: int,
        total_questions: int,
        wrong_answers: Sequence[WrongAnswer],
    ) -> QuizResult: ...

    def list_recent_results(self, limit: int = 50) -> list[QuizResult]: ...
