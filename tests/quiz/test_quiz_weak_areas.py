from __future__ import annotations

from datetime import datetime, timedelta, timezone

from quizmaster.quiz.models import QuizResult, WrongAnswer
from quizmaster.quiz.weak_areas import (
    DEFAULT_LAST_MISTAKE,
    compute_weak_areas,
    load_weak_areas,
)

BASE_TIME = datetime(2024, 5, 1, tzinfo=timezone.utc)


def _result(topic, score, total, *, quiz_id="q", minutes=0, mistakes=()):
    return QuizResult(
        id=f"r-{topic}-{minutes}",
        quiz_id=quiz_id,
        topic=topic,
        score=score,
        total_questions=total,
        wrong_answers=tuple(
            WrongAnswer(question=text, correct_answer="a", user_answer="b")
            for text in mistakes
        ),
        created_at=BASE_TIME + timedelta(minutes=minutes),
    )


def test_threshold_is_exclusive():
    areas = compute_weak_areas(
        [_result("exact", 80, 100), _result("below", 79, 100)]
    )

    assert [area.topic for area in areas] == ["below"]
    assert areas[0].accuracy == 79


def test_results_are_grouped_and_sorted_weakest_first():
    results = [
        _result("python", 3, 10, mistakes=("Q1", "Q2")),
        _result("python", 4, 10, mistakes=("Q2", "Q3")),
        _result("history", 1, 10, mistakes=("H1",)),
        _result("maths", 10, 10),
    ]

    areas = compute_weak_areas(results)

    assert [(a.topic, a.accuracy) for a in areas] == [
        ("history", 10),
        ("python", 35),
    ]
    python = areas[1]
    assert python.mistake_count == 3
    assert python.last_mistake == "Q1"


def test_latest_quiz_id_comes_from_newest_result():
    results = [
        _result("python", 1, 4, quiz_id="newest", minutes=30),
        _result("python", 1, 4, quiz_id="oldest", minutes=0),
        _result("python", 1, 4, quiz_id="middle", minutes=10),
    ]

    [area] = compute_weak_areas(results)

    assert area.last_quiz_id == "newest"


def test_accuracy_rounds_half_up():
    [area] = compute_weak_areas([_result("t", 1, 8)])

    assert area.accuracy == 13


def test_missing_mistake_texts_use_default():
    [area] = compute_weak_areas([_result("t", 0, 2)])

    assert area.mistake_count == 0
    assert area.last_mistake == DEFAULT_LAST_MISTAKE
    assert DEFAULT_LAST_MISTAKE == "General Improvement needed"


def test_zero_question_topics_are_skipped():
    assert compute_weak_areas([_result("empty", 0, 0)]) == []


def test_custom_threshold():
    results = [_result("t", 85, 100)]

    assert compute_weak_areas(results) == []
    assert len(compute_weak_areas(results, threshold=90)) == 1


def test_load_weak_areas_reads_recent_results(store):
    for index in range(3):
        store.create_quiz_result(
            quiz_id=f"quiz-{index}",
            topic="trivia",
            score=1,
            total_questions=4,
            wrong_answers=[
                WrongAnswer(f"Q{index}", correct_answer="a", user_answer="b")
            ],
        )

    [area] = load_weak_areas(store, limit=2)

    assert area.topic == "trivia"
    assert area.accuracy == 25
    assert area.mistake_count == 2
