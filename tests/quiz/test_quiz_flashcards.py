from __future__ import annotations

import pytest

from quizmaster.quiz.flashcards import DeckReview, merge_flashcards
from quizmaster.quiz.models import Flashcard


def test_merge_keeps_first_card_per_front():
    queued = [Flashcard("Q1", "from play")]
    suggested = [Flashcard("Q1", "from ai"), Flashcard("Q2", "b"), Flashcard("Q2", "c")]

    merged = merge_flashcards(queued, suggested)

    assert merged == [Flashcard("Q1", "from play"), Flashcard("Q2", "b")]


def test_merge_compares_fronts_exactly():
    merged = merge_flashcards([Flashcard("Q1", "a")], [Flashcard("q1", "b")])

    assert len(merged) == 2


def test_deck_review_loops_back_to_start():
    deck = DeckReview([Flashcard("A", "1"), Flashcard("B", "2")])

    assert deck.current.front == "A"
    assert deck.flip() is True
    assert deck.next() is False
    assert deck.flipped is False
    assert deck.current.front == "B"
    assert deck.next() is True
    assert deck.current.front == "A"
    assert deck.laps == 1


def test_deck_review_prev_stops_at_first_card():
    deck = DeckReview([Flashcard("A", "1"), Flashcard("B", "2")])

    deck.prev()
    assert deck.index == 0
    deck.next()
    deck.flip()
    deck.prev()
    assert deck.index == 0
    assert deck.flipped is False


def test_empty_deck_has_no_current_card():
    with pytest.raises(IndexError):
        DeckReview([]).current
