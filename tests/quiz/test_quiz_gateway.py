from __future__ import annotations

import json

import httpx
import openai
import pytest

from fixtures import RateLimited, sample_questions
from quizmaster.core.config import load_config
from quizmaster.quiz.gateway import (
    DEFAULT_FEEDBACK,
    FALLBACK_FEEDBACK,
    PERFECT_FEEDBACK,
    GenerationGateway,
    is_rate_limited,
)
from quizmaster.quiz.models import Flashcard
from quizmaster.quiz.parsing import GenerationError, MalformedResponseError

QUESTIONS_JSON = json.dumps(
    [
        {
            "question": "Capital of France?",
            "options": ["Paris", "Lyon"],
            "answer": "Paris",
        },
        {"question": "2 + 2?", "options": ["3", "4"], "answer": "4"},
    ]
)


def test_generate_questions_returns_validated_questions(gateway, chat_client):
    chat_client.queue_response(QUESTIONS_JSON)

    questions = gateway.generate_questions("Notes about France.")

    assert [q.id for q in questions] == [1, 2]
    assert questions[0].answer == "Paris"
    call = chat_client.last_call
    assert call["model"] == "gpt-4o-mini"
    assert "response_format" not in call
    assert "Notes about France." in chat_client.user_prompt()


def test_source_text_is_truncated(gateway, chat_client):
    chat_client.queue_response(QUESTIONS_JSON)

    gateway.generate_questions("a" * 20000)

    prompt = chat_client.user_prompt()
    assert "a" * 15000 in prompt
    assert "a" * 15001 not in prompt


def test_rate_limits_are_retried_with_backoff(gateway, chat_client, sleeps):
    chat_client.queue_error(RateLimited("slow down"))
    chat_client.queue_error(RateLimited("slow down"))
    chat_client.queue_response(QUESTIONS_JSON)

    questions = gateway.generate_questions("notes")

    assert len(questions) == 2
    assert len(chat_client.calls) == 3
    assert sleeps == [1.0, 2.0]


def test_exhausted_retries_raise_generation_error(gateway, chat_client, sleeps):
    for _ in range(3):
        chat_client.queue_error(RateLimited("slow down"))

    with pytest.raises(GenerationError) as exc:
        gateway.generate_questions("notes")

    assert "Failed to generate quiz" in str(exc.value)
    assert "slow down" in str(exc.value)
    assert len(chat_client.calls) == 3
    assert sleeps == [1.0, 2.0]


def test_invalid_json_fails_without_retry(gateway, chat_client, sleeps):
    chat_client.queue_response("Sure! Here is your quiz.")

    with pytest.raises(MalformedResponseError):
        gateway.generate_questions("notes")

    assert len(chat_client.calls) == 1
    assert sleeps == []


def test_other_service_errors_are_not_retried(gateway, chat_client, sleeps):
    chat_client.queue_error(RuntimeError("bad request"))

    with pytest.raises(GenerationError, match="bad request"):
        gateway.generate_questions("notes")

    assert len(chat_client.calls) == 1
    assert sleeps == []


def test_empty_question_list_is_an_error(gateway, chat_client):
    chat_client.queue_response("[]")

    with pytest.raises(GenerationError, match="No questions generated."):
        gateway.generate_questions("notes")


def test_blank_source_is_rejected_before_calling(gateway, chat_client):
    with pytest.raises(GenerationError):
        gateway.generate_questions("   ")

    assert chat_client.calls == []


def test_perfect_score_skips_remote_call(gateway, chat_client):
    analysis = gateway.analyze_result(
        sample_questions(), {1: "Paris", 2: "4", 3: "Jupiter"}
    )

    assert analysis.feedback == PERFECT_FEEDBACK
    assert analysis.flashcards == ()
    assert (analysis.score, analysis.total) == (3, 3)
    assert chat_client.calls == []


def test_analysis_uses_remote_feedback(gateway, chat_client):
    chat_client.queue_response(
        json.dumps(
            {
                "feedback": "Solid geography, shaky maths.",
                "flashcards": [{"front": "2 + 2?", "back": "4"}],
            }
        )
    )

    analysis = gateway.analyze_result(sample_questions(), {1: "Paris", 2: "3"})

    assert analysis.score == 1
    assert analysis.total == 3
    assert analysis.feedback == "Solid geography, shaky maths."
    assert analysis.flashcards == (Flashcard("2 + 2?", "4"),)
    call = chat_client.last_call
    assert call["model"] == "gpt-4o"
    assert call["response_format"] == {"type": "json_object"}
    prompt = chat_client.user_prompt()
    assert "1/3" in prompt
    assert "Skipped" in prompt


def test_missing_feedback_uses_default(gateway, chat_client):
    chat_client.queue_response('{"flashcards": []}')

    analysis = gateway.analyze_result(sample_questions(), {})

    assert analysis.feedback == DEFAULT_FEEDBACK


@pytest.mark.parametrize(
    "failure",
    [RuntimeError("offline"), "not json", '{"flashcards": "nope"}'],
)
def test_analysis_failures_fall_back(gateway, chat_client, failure):
    if isinstance(failure, BaseException):
        chat_client.queue_error(failure)
    else:
        chat_client.queue_response(failure)

    analysis = gateway.analyze_result(sample_questions(), {1: "Paris"})

    assert analysis.feedback == FALLBACK_FEEDBACK
    assert analysis.flashcards == ()
    assert (analysis.score, analysis.total) == (1, 3)


def test_analysis_retries_rate_limits(gateway, chat_client, sleeps):
    chat_client.queue_error(RateLimited("busy"))
    chat_client.queue_response('{"feedback": "ok"}')

    analysis = gateway.analyze_result(sample_questions(), {})

    assert analysis.feedback == "ok"
    assert sleeps == [1.0]


def test_is_rate_limited_recognises_openai_errors():
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    error = openai.RateLimitError(
        "rate limited",
        response=httpx.Response(429, request=request),
        body=None,
    )

    assert is_rate_limited(error)
    assert is_rate_limited(RateLimited())
    assert not is_rate_limited(ValueError("nope"))


def test_max_attempts_must_be_positive(chat_client):
    with pytest.raises(ValueError):
        GenerationGateway(chat_client, max_attempts=0)


def test_from_config_reads_provider_settings(tmp_path, chat_client):
    path = tmp_path / "quizmaster.toml"
    path.write_text(
        "[providers.openai]\n"
        'generation_model = "small-model"\n'
        "[generation]\n"
        "max_source_chars = 10\n",
        encoding="utf-8",
    )
    cfg = load_config(explicit_path=path, env={})
    chat_client.queue_response(QUESTIONS_JSON)

    gateway = GenerationGateway.from_config(chat_client, cfg)
    gateway.generate_questions("0123456789ABCDEF")

    assert chat_client.last_call["model"] == "small-model"
    prompt = chat_client.user_prompt()
    assert "0123456789" in prompt
    assert "ABCDEF" not in prompt
