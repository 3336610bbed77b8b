"""Parse-and-validate boundary for JSON returned by the generative service.

Nothing from the service reaches the rest of the package without passing
through here. Payloads that do not match the expected shape raise a typed
``GenerationError`` subclass instead of being trusted.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping, Sequence
from typing import Any, List, Optional, Tuple

from .models import Flashcard, Question, renumber

__all__ = [
    "GenerationError",
    "MalformedResponseError",
    "QuestionValidationError",
    "clean_json_text",
    "parse_question_payload",
    "validate_questions",
    "parse_analysis_payload",
]

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


class GenerationError(RuntimeError):
    """Raised when the service fails or returns unusable content."""


class MalformedResponseError(GenerationError):
    """Raised when a response is not valid JSON of the expected shape."""


class QuestionValidationError(GenerationError):
    """Raised when a generated question breaks a question invariant."""


def clean_json_text(raw: str) -> str:
    """Strip whitespace and an optional markdown code fence around JSON."""

    text = (raw or "").strip()
    match = _FENCE_RE.match(text)
    if match:
        return match.group(1).strip()
    return text


def _decode(raw: str) -> Any:
    payload = clean_json_text(raw)
    if not payload:
        raise MalformedResponseError("Service returned an empty response.")
    try:
        return json.loads(payload)
    except json.JSONDecodeError as exc:
        raise MalformedResponseError(
            f"Service returned invalid JSON: {exc.msg}"
        ) from exc


def _required_text(item: Mapping[str, Any], key: str, position: int) -> str:
    value = item.get(key)
    if not isinstance(value, str) or not value.strip():
        raise QuestionValidationError(
            f"Question {position} is missing a non-empty '{key}'."
        )
    return value.strip()


def _parse_options(item: Mapping[str, Any], position: int) -> Tuple[str, ...]:
    raw_options = item.get("options")
    if not isinstance(raw_options, list):
        raise QuestionValidationError(
            f"Question {position} must provide 'options' as a list."
        )
    options: List[str] = []
    for option in raw_options:
        if not isinstance(option, str) or not option.strip():
            raise QuestionValidationError(
                f"Question {position} has an empty or non-text option."
            )
        options.append(option.strip())
    if len(options) < 2:
        raise QuestionValidationError(
            f"Question {position} needs at least two options."
        )
    if len(set(options)) != len(options):
        raise QuestionValidationError(
            f"Question {position} has duplicate options."
        )
    return tuple(options)


def _parse_question(item: Any, position: int) -> Question:
    if not isinstance(item, Mapping):
        raise MalformedResponseError(
            f"Question {position} is not a JSON object."
        )
    text = _required_text(item, "question", position)
    options = _parse_options(item, position)
    answer = _required_text(item, "answer", position)
    if answer not in options:
        raise QuestionValidationError(
            f"Question {position} answer '{answer}' is not one of its options."
        )
    explanation = item.get("explanation")
    return Question(
        id=position,
        question=text,
        options=options,
        answer=answer,
        explanation=(
            explanation.strip()
            if isinstance(explanation, str) and explanation.strip()
            else None
        ),
    )


def parse_question_payload(raw: str) -> List[Question]:
    """Convert a raw JSON array into validated, renumbered questions."""

    data = _decode(raw)
    if not isinstance(data, list):
        raise MalformedResponseError(
            "Service returned an invalid structure (not an array)."
        )
    questions = [
        _parse_question(item, position)
        for position, item in enumerate(data, start=1)
    ]
    return list(renumber(questions))


def validate_questions(questions: Sequence[Question]) -> List[Question]:
    """Re-check edited questions against the same rules as generated ones."""

    checked = [
        _parse_question(question.to_dict(), position)
        for position, question in enumerate(questions, start=1)
    ]
    return list(renumber(checked))


def parse_analysis_payload(raw: str) -> Tuple[Optional[str], List[Flashcard]]:
    """Convert a raw JSON object into ``(feedback, flashcards)``."""

    data = _decode(raw)
    if not isinstance(data, Mapping):
        raise MalformedResponseError(
            "Analysis response must be a JSON object."
        )
    feedback = data.get("feedback")
    if feedback is not None and not isinstance(feedback, str):
        raise MalformedResponseError("Analysis 'feedback' must be text.")
    raw_cards = data.get("flashcards", [])
    if raw_cards is None:
        raw_cards = []
    if not isinstance(raw_cards, list):
        raise MalformedResponseError("Analysis 'flashcards' must be a list.")
    cards: List[Flashcard] = []
    for position, card in enumerate(raw_cards, start=1):
        if not isinstance(card, Mapping):
            raise MalformedResponseError(
                f"Flashcard {position} is not a JSON object."
            )
        front = card.get("front")
        back = card.get("back")
        if not isinstance(front, str) or not front.strip():
            raise MalformedResponseError(
                f"Flashcard {position} is missing 'front' text."
            )
        if not isinstance(back, str) or not back.strip():
            raise MalformedResponseError(
                f"Flashcard {position} is missing 'back' text."
            )
        cards.append(Flashcard(front=front.strip(), back=back.strip()))
    text = feedback.strip() if isinstance(feedback, str) else None
    return (text or None), cards
