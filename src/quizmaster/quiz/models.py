"""Shared data shapes for questions, quizzes, results and flashcards."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, MutableMapping, Sequence

__all__ = [
    "SKIPPED",
    "Difficulty",
    "Question",
    "Quiz",
    "WrongAnswer",
    "QuizResult",
    "Flashcard",
    "FlashcardSet",
    "QuizAnalysis",
    "WeakArea",
    "utcnow",
    "parse_timestamp",
    "renumber",
]

# Recorded as the user's answer when a question was left unanswered.
SKIPPED = "Skipped"


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"
    EXTREME = "extreme"

    @classmethod
    def parse(cls, value: "str | Difficulty | None") -> "Difficulty":
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        for member in cls:
            if member.value == text:
                return member
        raise ValueError(
            f"Unknown difficulty '{value}'. Expected one of: "
            + ", ".join(member.value for member in cls)
        )


@dataclass(frozen=True)
class Question:
    """A single multiple-choice question.

    ``answer`` holds the text of the correct option, never an index.
    """

    id: int
    question: str
    options: tuple[str, ...]
    answer: str
    explanation: str | None = None

    def option_text(self, index: int | None) -> str | None:
        if index is None or not 0 <= index < len(self.options):
            return None
        return self.options[index]

    def to_dict(self) -> MutableMapping[str, Any]:
        payload: MutableMapping[str, Any] = {
            "id": self.id,
            "question": self.question,
            "options": list(self.options),
            "answer": self.answer,
        }
        if self.explanation:
            payload["explanation"] = self.explanation
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Question":
        explanation = payload.get("explanation")
        return cls(
            id=int(payload["id"]),
            question=str(payload["question"]),
            options=tuple(str(option) for option in payload["options"]),
            answer=str(payload["answer"]),
            explanation=str(explanation) if explanation else None,
        )


@dataclass(frozen=True)
class Quiz:
    id: str
    title: str
    topic: str
    difficulty: Difficulty
    questions: tuple[Question, ...]
    created_at: datetime

    def to_dict(self) -> MutableMapping[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "topic": self.topic,
            "difficulty": self.difficulty.value,
            "questions": [question.to_dict() for question in self.questions],
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Quiz":
        return cls(
            id=str(payload["id"]),
            title=str(payload["title"]),
            topic=str(payload["topic"]),
            difficulty=Difficulty.parse(payload.get("difficulty", "medium")),
            questions=tuple(
                Question.from_dict(item) for item in payload["questions"]
            ),
            created_at=parse_timestamp(payload["created_at"]),
        )


@dataclass(frozen=True)
class WrongAnswer:
    question: str
    correct_answer: str
    user_answer: str

    def to_dict(self) -> MutableMapping[str, Any]:
        return {
            "question": self.question,
            "correct_answer": self.correct_answer,
            "user_answer": self.user_answer,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "WrongAnswer":
        return cls(
            question=str(payload["question"]),
            correct_answer=str(payload["correct_answer"]),
            user_answer=str(payload["user_answer"]),
        )


@dataclass(frozen=True)
class QuizResult:
    """Outcome of one completed session. Never mutated once stored."""

    id: str
    quiz_id: str
    topic: str
    score: int
    total_questions: int
    wrong_answers: tuple[WrongAnswer, ...]
    created_at: datetime

    def to_dict(self) -> MutableMapping[str, Any]:
        return {
            "id": self.id,
            "quiz_id": self.quiz_id,
            "topic": self.topic,
            "score": self.score,
            "total_questions": self.total_questions,
            "wrong_answers": [item.to_dict() for item in self.wrong_answers],
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "QuizResult":
        return cls(
            id=str(payload["id"]),
            quiz_id=str(payload["quiz_id"]),
            topic=str(payload["topic"]),
            score=int(payload["score"]),
            total_questions=int(payload["total_questions"]),
            wrong_answers=tuple(
                WrongAnswer.from_dict(item)
                for item in payload.get("wrong_answers", [])
            ),
            created_at=parse_timestamp(payload["created_at"]),
        )


@dataclass(frozen=True)
class Flashcard:
    front: str
    back: str

    def to_dict(self) -> MutableMapping[str, Any]:
        return {"front": self.front, "back": self.back}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Flashcard":
        return cls(front=str(payload["front"]), back=str(payload["back"]))


@dataclass(frozen=True)
class FlashcardSet:
    id: str
    topic: str
    cards: tuple[Flashcard, ...]
    created_at: datetime

    def to_dict(self) -> MutableMapping[str, Any]:
        return {
            "id": self.id,
            "topic": self.topic,
            "cards": [card.to_dict() for card in self.cards],
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "FlashcardSet":
        return cls(
            id=str(payload["id"]),
            topic=str(payload["topic"]),
            cards=tuple(
                Flashcard.from_dict(item) for item in payload.get("cards", [])
            ),
            created_at=parse_timestamp(payload["created_at"]),
        )


@dataclass(frozen=True)
class QuizAnalysis:
    score: int
    total: int
    feedback: str
    flashcards: tuple[Flashcard, ...] = field(default_factory=tuple)

    @property
    def percentage(self) -> int:
        if self.total <= 0:
            return 0
        return int(self.score * 100 / self.total + 0.5)


@dataclass(frozen=True)
class WeakArea:
    topic: str
    accuracy: int
    mistake_count: int
    last_mistake: str
    last_quiz_id: str


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO timestamp, treating naive values as UTC."""

    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def renumber(questions: Sequence[Question]) -> tuple[Question, ...]:
    """Return ``questions`` with sequential 1-based ids."""

    return tuple(
        replace(item, id=index)
        for index, item in enumerate(questions, start=1)
    )
