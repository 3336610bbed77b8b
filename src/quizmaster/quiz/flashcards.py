"""Flashcard merging and deck review."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from .models import Flashcard

__all__ = ["merge_flashcards", "DeckReview"]


def merge_flashcards(*sources: Iterable[Flashcard]) -> list[Flashcard]:
    """Concatenate ``sources`` keeping the first card seen for each front.

    Fronts are compared by exact text equality, so pass the cards that should
    win (interactive-mode cards) first.
    """

    merged: list[Flashcard] = []
    seen: set[str] = set()
    for source in sources:
        for card in source:
            if card.front in seen:
                continue
            seen.add(card.front)
            merged.append(card)
    return merged


@dataclass
class DeckReview:
    """Cursor over a deck that loops back to the start after the last card."""

    cards: Sequence[Flashcard]
    index: int = 0
    flipped: bool = False
    laps: int = 0

    @property
    def current(self) -> Flashcard:
        if not self.cards:
            raise IndexError("deck is empty")
        return self.cards[self.index]

    def flip(self) -> bool:
        self.flipped = not self.flipped
        return self.flipped

    def next(self) -> bool:
        """Advance; return True when the deck wrapped around to the start."""

        self.flipped = False
        if self.index < len(self.cards) - 1:
            self.index += 1
            return False
        self.index = 0
        self.laps += 1
        return True

    def prev(self) -> None:
        self.flipped = False
        if self.index > 0:
            self.index -= 1
