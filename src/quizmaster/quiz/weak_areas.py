"""Aggregate stored results into per-topic weak areas."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional

from ..store.base import DocumentStore
from .models import QuizResult, WeakArea

__all__ = ["DEFAULT_LAST_MISTAKE", "compute_weak_areas", "load_weak_areas"]

DEFAULT_LAST_MISTAKE = "General Improvement needed"


@dataclass
class _TopicTally:
    total: int = 0
    correct: int = 0
    mistakes: list[str] = field(default_factory=list)
    last_quiz_id: str = ""
    last_seen: Optional[datetime] = None

    def add(self, result: QuizResult) -> None:
        self.total += result.total_questions
        self.correct += result.score
        for wrong in result.wrong_answers:
            if wrong.question not in self.mistakes:
                self.mistakes.append(wrong.question)
        if self.last_seen is None or result.created_at > self.last_seen:
            self.last_seen = result.created_at
            self.last_quiz_id = result.quiz_id


def _percent(correct: int, total: int) -> int:
    # Half-up so 79.5 reports as 80.
    return (200 * correct + total) // (2 * total)


def compute_weak_areas(
    results: Iterable[QuizResult], *, threshold: int = 80
) -> list[WeakArea]:
    """Return topics below ``threshold`` percent accuracy, weakest first."""

    tallies: dict[str, _TopicTally] = {}
    for result in results:
        tallies.setdefault(result.topic, _TopicTally()).add(result)

    areas: list[WeakArea] = []
    for topic, tally in tallies.items():
        if tally.total <= 0:
            continue
        accuracy = _percent(tally.correct, tally.total)
        if accuracy >= threshold:
            continue
        areas.append(
            WeakArea(
                topic=topic,
                accuracy=accuracy,
                mistake_count=len(tally.mistakes),
                last_mistake=(
                    tally.mistakes[0] if tally.mistakes else DEFAULT_LAST_MISTAKE
                ),
                last_quiz_id=tally.last_quiz_id,
            )
        )
    areas.sort(key=lambda area: area.accuracy)
    return areas


def load_weak_areas(
    store: DocumentStore, *, limit: int = 50, threshold: int = 80
) -> list[WeakArea]:
    return compute_weak_areas(
        store.list_recent_results(limit), threshold=threshold
    )
