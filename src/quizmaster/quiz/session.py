"""Quiz session state machine.

A :class:`QuizSession` walks through ``LOADING -> READY -> FINISHING -> DONE``
(or ``LOADING -> NOT_FOUND``). While ``READY`` it owns the answer map, the
flagged and visited sets, the countdown and the interactive-mode streak.
Submitting grades the answers locally, stores a result on a best-effort
basis, and hands everything to the analysis step in a single
:class:`SessionHandoff`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Callable, Literal, Mapping, Optional

from ..core.logging import get_logger
from ..store.base import DocumentStore, PersistenceError
from .grading import ScoreReport, resolve_answer_texts, score_quiz
from .models import Flashcard, Question, Quiz

__all__ = [
    "GUEST_QUIZ_ID",
    "SessionPhase",
    "SessionStateError",
    "NavigatorStatus",
    "InstantFeedback",
    "SessionHandoff",
    "QuizSession",
]

# Quiz id for an unsaved quiz supplied directly by the caller.
GUEST_QUIZ_ID = "custom"

NavigatorStatus = Literal["current", "flagged", "answered", "visited", "unvisited"]
FeedbackListener = Callable[["InstantFeedback"], None]


class SessionPhase(str, Enum):
    LOADING = "loading"
    READY = "ready"
    FINISHING = "finishing"
    DONE = "done"
    NOT_FOUND = "not_found"


class SessionStateError(RuntimeError):
    """Raised when an operation is not valid in the current phase."""


@dataclass(frozen=True)
class InstantFeedback:
    """Interactive-mode verdict for the current question."""

    correct: bool
    correct_answer: Optional[str] = None


@dataclass(frozen=True)
class SessionHandoff:
    """Everything the analysis step needs from a finished session."""

    quiz_id: str
    topic: str
    questions: tuple[Question, ...]
    answers: Mapping[int, int]
    flashcard_queue: tuple[Flashcard, ...]
    report: ScoreReport
    result_saved: bool

    def answer_texts(self) -> dict[int, str]:
        return resolve_answer_texts(self.questions, self.answers)


class QuizSession:
    """State machine for taking one quiz."""

    def __init__(
        self,
        quiz_id: str,
        *,
        store: Optional[DocumentStore] = None,
        guest_quiz: Optional[Quiz] = None,
        interactive: bool = False,
        time_limit_seconds: int = 600,
        on_feedback: Optional[FeedbackListener] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.quiz_id = quiz_id
        self._store = store
        self._guest_quiz = guest_quiz
        self._interactive = interactive
        self._on_feedback = on_feedback
        self._logger = logger or get_logger("session")

        self._phase = SessionPhase.LOADING
        self._quiz: Optional[Quiz] = None
        self._questions: tuple[Question, ...] = ()
        self._index = 0
        self._answers: dict[int, int] = {}
        self._flagged: set[int] = set()
        self._visited: set[int] = set()
        self._time_remaining = max(0, int(time_limit_seconds))
        self._feedback: Optional[InstantFeedback] = None
        self._streak = 0
        self._queue: list[Flashcard] = []
        self._handoff: Optional[SessionHandoff] = None

    # Read-only state -----------------------------------------------------

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def quiz(self) -> Optional[Quiz]:
        return self._quiz

    @property
    def questions(self) -> tuple[Question, ...]:
        return self._questions

    @property
    def total_questions(self) -> int:
        return len(self._questions)

    @property
    def current_index(self) -> int:
        return self._index

    @property
    def current_question(self) -> Question:
        if not self._questions:
            raise SessionStateError("Session has no questions loaded.")
        return self._questions[self._index]

    @property
    def is_last(self) -> bool:
        return self._index == len(self._questions) - 1

    @property
    def answers(self) -> Mapping[int, int]:
        return MappingProxyType(self._answers)

    @property
    def flagged(self) -> frozenset[int]:
        return frozenset(self._flagged)

    @property
    def visited(self) -> frozenset[int]:
        return frozenset(self._visited)

    @property
    def time_remaining(self) -> int:
        return self._time_remaining

    @property
    def expired(self) -> bool:
        return self._time_remaining == 0

    @property
    def interactive(self) -> bool:
        return self._interactive

    @property
    def instant_feedback(self) -> Optional[InstantFeedback]:
        return self._feedback

    @property
    def streak(self) -> int:
        return self._streak

    @property
    def flashcard_queue(self) -> tuple[Flashcard, ...]:
        return tuple(self._queue)

    @property
    def handoff(self) -> Optional[SessionHandoff]:
        return self._handoff

    def answered_count(self) -> int:
        return len(self._answers)

    def selected_for(self, question: Optional[Question] = None) -> Optional[int]:
        target = question or self.current_question
        return self._answers.get(target.id)

    # Loading -------------------------------------------------------------

    def load(self) -> SessionPhase:
        """Resolve the quiz and enter ``READY`` or ``NOT_FOUND``."""

        if self._phase is not SessionPhase.LOADING:
            raise SessionStateError("Session has already been loaded.")
        quiz = self._resolve_quiz()
        if quiz is None or not quiz.questions:
            self._logger.warning(
                "Quiz not found", extra={"quiz_id": self.quiz_id}
            )
            self._phase = SessionPhase.NOT_FOUND
            return self._phase
        self._quiz = quiz
        self._questions = tuple(quiz.questions)
        self._phase = SessionPhase.READY
        self._visited.add(self._questions[0].id)
        self._logger.info(
            "Session ready",
            extra={
                "quiz_id": self.quiz_id,
                "questions": len(self._questions),
                "interactive": self._interactive,
            },
        )
        return self._phase

    def _resolve_quiz(self) -> Optional[Quiz]:
        if self.quiz_id == GUEST_QUIZ_ID:
            return self._guest_quiz
        if self._store is None:
            return None
        try:
            return self._store.get_quiz(self.quiz_id)
        except PersistenceError:
            self._logger.exception(
                "Failed to load quiz", extra={"quiz_id": self.quiz_id}
            )
            return None

    # Answering -----------------------------------------------------------

    def select_option(self, index: int) -> bool:
        """Record ``index`` as the answer to the current question.

        Returns False for an out-of-range index, or in interactive mode when
        this question already has feedback.
        """

        self._require_ready("select an option")
        question = self.current_question
        if not 0 <= index < len(question.options):
            return False
        if self._interactive and self._feedback is not None:
            return False
        self._answers[question.id] = index
        if self._interactive:
            self._record_feedback(question, index)
        return True

    def _record_feedback(self, question: Question, index: int) -> None:
        correct = question.options[index] == question.answer
        if correct:
            self._streak += 1
            feedback = InstantFeedback(correct=True)
        else:
            self._streak = 0
            feedback = InstantFeedback(
                correct=False, correct_answer=question.answer
            )
            if all(card.front != question.question for card in self._queue):
                self._queue.append(
                    Flashcard(front=question.question, back=question.answer)
                )
        self._feedback = feedback
        if self._on_feedback is not None:
            self._on_feedback(feedback)

    def toggle_flag(self) -> bool:
        """Flip the flag on the current question and return the new state."""

        self._require_ready("flag a question")
        qid = self.current_question.id
        if qid in self._flagged:
            self._flagged.discard(qid)
            return False
        self._flagged.add(qid)
        return True

    # Navigation ----------------------------------------------------------

    def next(self) -> Optional[SessionHandoff]:
        """Advance, or submit when already on the last question."""

        self._require_ready("move to the next question")
        if self.is_last:
            return self.submit()
        self._move_to(self._index + 1)
        return None

    def prev(self) -> bool:
        self._require_ready("move to the previous question")
        if self._index == 0:
            return False
        self._move_to(self._index - 1)
        return True

    def jump_to(self, index: int) -> bool:
        self._require_ready("jump to a question")
        if not 0 <= index < len(self._questions):
            return False
        self._move_to(index)
        return True

    def _move_to(self, index: int) -> None:
        if index == self._index:
            return
        self._index = index
        self._visited.add(self._questions[index].id)
        self._feedback = None

    def status_for(self, index: int) -> NavigatorStatus:
        question = self._questions[index]
        if index == self._index:
            return "current"
        if question.id in self._flagged:
            return "flagged"
        if question.id in self._answers:
            return "answered"
        if question.id in self._visited:
            return "visited"
        return "unvisited"

    def navigator(self) -> list[NavigatorStatus]:
        return [self.status_for(index) for index in range(len(self._questions))]

    # Timer ---------------------------------------------------------------

    def tick(self, seconds: int = 1) -> int:
        """Count down ``seconds`` while READY; stops at zero."""

        if seconds < 0:
            raise ValueError("seconds must be >= 0")
        if self._phase is SessionPhase.READY:
            self._time_remaining = max(0, self._time_remaining - int(seconds))
        return self._time_remaining

    # Finishing -----------------------------------------------------------

    def submit(self) -> SessionHandoff:
        """Grade, store the result (best effort) and enter ``DONE``."""

        quiz = self._require_ready("submit")
        self._phase = SessionPhase.FINISHING
        report = score_quiz(self._questions, self._answers)
        saved = self._save_result(quiz, report)
        self._handoff = SessionHandoff(
            quiz_id=self.quiz_id,
            topic=quiz.topic,
            questions=self._questions,
            answers=MappingProxyType(dict(self._answers)),
            flashcard_queue=tuple(self._queue),
            report=report,
            result_saved=saved,
        )
        self._phase = SessionPhase.DONE
        self._logger.info(
            "Session submitted",
            extra={
                "quiz_id": self.quiz_id,
                "score": report.score,
                "total": report.total,
                "queued_flashcards": len(self._queue),
                "result_saved": saved,
            },
        )
        return self._handoff

    def _save_result(self, quiz: Quiz, report: ScoreReport) -> bool:
        if self.quiz_id == GUEST_QUIZ_ID or self._store is None:
            return False
        try:
            self._store.create_quiz_result(
                quiz_id=self.quiz_id,
                topic=quiz.topic,
                score=report.score,
                total_questions=report.total,
                wrong_answers=report.wrong_answers,
            )
        except PersistenceError:
            self._logger.exception(
                "Failed to save quiz result", extra={"quiz_id": self.quiz_id}
            )
            return False
        return True

    def _require_ready(self, action: str) -> Quiz:
        if self._phase is not SessionPhase.READY or self._quiz is None:
            raise SessionStateError(
                f"Cannot {action} while the session is {self._phase.value}."
            )
        return self._quiz
