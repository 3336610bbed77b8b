"""Creating, filtering and editing stored quizzes."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional, Sequence

from ..core.logging import get_logger
from ..store.base import DocumentStore, NotFoundError
from .gateway import GenerationGateway
from .models import Difficulty, Question, Quiz, utcnow
from .parsing import (
    GenerationError,
    QuestionValidationError,
    parse_question_payload,
    validate_questions,
)
from .session import GUEST_QUIZ_ID

__all__ = [
    "NOTES_TITLE",
    "NOTES_TOPIC",
    "topic_prompt",
    "create_quiz_from_text",
    "create_quiz_from_topic",
    "filter_quizzes",
    "edit_quiz",
    "load_guest_quiz",
]

NOTES_TITLE = "Notes Analysis"
NOTES_TOPIC = "Imported Content"


def _logger(logger: Optional[logging.Logger]) -> logging.Logger:
    return logger or get_logger("library")


def topic_prompt(topic: str, difficulty: Difficulty, count: int) -> str:
    return (
        f"Generate a {difficulty.value} difficulty quiz about {topic} "
        f"with {count} questions."
    )


def create_quiz_from_text(
    gateway: GenerationGateway,
    store: DocumentStore,
    text: str,
    *,
    title: str = NOTES_TITLE,
    topic: str = NOTES_TOPIC,
    difficulty: Difficulty = Difficulty.MEDIUM,
    logger: Optional[logging.Logger] = None,
) -> Quiz:
    """Generate questions from pasted notes and store them as a quiz."""

    questions = gateway.generate_questions(text)
    quiz = store.create_quiz(title, topic, difficulty, questions)
    _logger(logger).info(
        "Created quiz from text",
        extra={"quiz_id": quiz.id, "questions": len(quiz.questions)},
    )
    return quiz


def create_quiz_from_topic(
    gateway: GenerationGateway,
    store: DocumentStore,
    topic: str,
    *,
    difficulty: Difficulty = Difficulty.MEDIUM,
    count: int = 5,
    title: Optional[str] = None,
    logger: Optional[logging.Logger] = None,
) -> Quiz:
    """Generate a quiz about ``topic``; the topic doubles as the title."""

    name = (topic or "").strip()
    if not name:
        raise GenerationError("A topic is required to generate a quiz.")
    if count < 1:
        raise ValueError("count must be >= 1")
    questions = gateway.generate_questions(topic_prompt(name, difficulty, count))
    quiz = store.create_quiz(title or name, name, difficulty, questions)
    _logger(logger).info(
        "Created quiz from topic",
        extra={
            "quiz_id": quiz.id,
            "topic": name,
            "difficulty": difficulty.value,
            "questions": len(quiz.questions),
        },
    )
    return quiz


def filter_quizzes(
    quizzes: Iterable[Quiz],
    *,
    topic: Optional[str] = None,
    search: Optional[str] = None,
) -> list[Quiz]:
    """Keep quizzes whose topic matches exactly and whose title contains
    ``search`` (case-insensitive)."""

    needle = (search or "").strip().lower()
    matched = []
    for quiz in quizzes:
        if topic and quiz.topic != topic:
            continue
        if needle and needle not in quiz.title.lower():
            continue
        matched.append(quiz)
    return matched


def edit_quiz(
    store: DocumentStore,
    quiz_id: str,
    *,
    title: Optional[str] = None,
    drop_positions: Sequence[int] = (),
    questions: Optional[Sequence[Question]] = None,
    logger: Optional[logging.Logger] = None,
) -> Quiz:
    """Retitle a quiz, drop questions by 1-based position, or replace them.

    Resulting questions are validated and renumbered before they are stored;
    a quiz is never left without questions.
    """

    current = store.get_quiz(quiz_id)
    if current is None:
        raise NotFoundError(f"Quiz not found: {quiz_id}")

    new_title = None
    if title is not None:
        new_title = title.strip()
        if not new_title:
            raise ValueError("Quiz title cannot be empty.")

    updated_questions: Optional[list[Question]] = None
    if questions is not None or drop_positions:
        base = list(questions if questions is not None else current.questions)
        drop = set(drop_positions)
        invalid = sorted(pos for pos in drop if not 1 <= pos <= len(base))
        if invalid:
            raise ValueError(
                "No question at position(s): "
                + ", ".join(str(pos) for pos in invalid)
            )
        kept = [
            question
            for position, question in enumerate(base, start=1)
            if position not in drop
        ]
        if not kept:
            raise QuestionValidationError("A quiz needs at least one question.")
        updated_questions = validate_questions(kept)

    quiz = store.update_quiz(
        quiz_id, title=new_title, questions=updated_questions
    )
    _logger(logger).info(
        "Edited quiz",
        extra={
            "quiz_id": quiz_id,
            "retitled": new_title is not None,
            "questions": len(quiz.questions),
        },
    )
    return quiz


def load_guest_quiz(
    path: Path,
    *,
    title: str = NOTES_TITLE,
    topic: str = NOTES_TOPIC,
    difficulty: Difficulty = Difficulty.MEDIUM,
) -> Quiz:
    """Build an unsaved quiz from a JSON file of questions."""

    questions = parse_question_payload(path.read_text(encoding="utf-8"))
    if not questions:
        raise GenerationError(f"No questions found in {path}.")
    return Quiz(
        id=GUEST_QUIZ_ID,
        title=title,
        topic=topic,
        difficulty=difficulty,
        questions=tuple(questions),
        created_at=utcnow(),
    )
