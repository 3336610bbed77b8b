"""Post-session analysis: remote feedback plus flashcard merging."""

from __future__ import annotations

import logging
from typing import Optional

from ..core.logging import get_logger
from ..store.base import DocumentStore, PersistenceError
from .flashcards import merge_flashcards
from .gateway import FALLBACK_FEEDBACK, PERFECT_FEEDBACK, GenerationGateway
from .models import Flashcard, FlashcardSet, QuizAnalysis
from .session import SessionHandoff

__all__ = ["AnalysisPipeline"]


class AnalysisPipeline:
    """Turn a :class:`SessionHandoff` into feedback and flashcards.

    Without a gateway the pipeline stays offline: feedback is the generic
    message and the only cards are the ones queued during play.
    """

    def __init__(
        self,
        gateway: Optional[GenerationGateway],
        *,
        store: Optional[DocumentStore] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._gateway = gateway
        self._store = store
        self._logger = logger or get_logger("analysis")

    def run(self, handoff: SessionHandoff) -> QuizAnalysis:
        """Analyze a finished session.

        Cards queued during interactive play come first and win over AI cards
        with the same front. The score always comes from the local report.
        """

        report = handoff.report
        if self._gateway is None:
            feedback = (
                PERFECT_FEEDBACK if report.all_correct else FALLBACK_FEEDBACK
            )
            suggested: tuple[Flashcard, ...] = ()
        else:
            remote = self._gateway.analyze_result(
                handoff.questions, handoff.answer_texts()
            )
            feedback = remote.feedback
            suggested = remote.flashcards
        cards = merge_flashcards(handoff.flashcard_queue, suggested)
        self._logger.info(
            "Analysis complete",
            extra={
                "quiz_id": handoff.quiz_id,
                "score": report.score,
                "total": report.total,
                "queued_flashcards": len(handoff.flashcard_queue),
                "flashcards": len(cards),
                "remote": self._gateway is not None,
            },
        )
        return QuizAnalysis(
            score=report.score,
            total=report.total,
            feedback=feedback,
            flashcards=tuple(cards),
        )

    def save_flashcards(
        self, analysis: QuizAnalysis, topic: str
    ) -> Optional[FlashcardSet]:
        """Persist the cards as a set; None when there is nothing to save."""

        if not analysis.flashcards:
            return None
        if self._store is None:
            raise PersistenceError("No document store configured.")
        flashcard_set = self._store.create_flashcard_set(
            topic, analysis.flashcards
        )
        self._logger.info(
            "Saved flashcard set",
            extra={
                "set_id": flashcard_set.id,
                "topic": topic,
                "cards": len(flashcard_set.cards),
            },
        )
        return flashcard_set
