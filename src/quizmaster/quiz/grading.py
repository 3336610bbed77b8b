"""Deterministic local scoring. Never touches the network."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Mapping, Sequence

from .models import SKIPPED, Question, WrongAnswer

__all__ = [
    "ScoreReport",
    "resolve_answer_texts",
    "grade_texts",
    "score_quiz",
]


@dataclass(frozen=True)
class ScoreReport:
    score: int
    total: int
    wrong_answers: tuple[WrongAnswer, ...]

    @property
    def all_correct(self) -> bool:
        return self.score == self.total


def resolve_answer_texts(
    questions: Sequence[Question], answers: Mapping[int, int]
) -> Dict[int, str]:
    """Map question ids to the text of the selected option.

    Unanswered questions and out-of-range indices are left out.
    """

    texts: Dict[int, str] = {}
    for question in questions:
        text = question.option_text(answers.get(question.id))
        if text is not None:
            texts[question.id] = text
    return texts


def grade_texts(
    questions: Sequence[Question], answer_texts: Mapping[int, str]
) -> ScoreReport:
    """Grade by comparing the chosen option text to ``answer`` exactly."""

    score = 0
    wrong: list[WrongAnswer] = []
    for question in questions:
        chosen = answer_texts.get(question.id, SKIPPED)
        if question.id in answer_texts and chosen == question.answer:
            score += 1
            continue
        wrong.append(
            WrongAnswer(
                question=question.question,
                correct_answer=question.answer,
                user_answer=chosen,
            )
        )
    return ScoreReport(
        score=score, total=len(questions), wrong_answers=tuple(wrong)
    )


def score_quiz(
    questions: Sequence[Question], answers: Mapping[int, int]
) -> ScoreReport:
    return grade_texts(questions, resolve_answer_texts(questions, answers))
