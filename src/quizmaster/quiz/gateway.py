"""Generation gateway: turns text into questions and results into feedback.

The gateway wraps an OpenAI-compatible chat completions client. Rate-limited
calls are retried with exponential backoff; everything else fails fast. All
JSON coming back from the service goes through :mod:`.parsing`.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable, List, Mapping, Optional, Sequence, Tuple, TypeVar

from openai import RateLimitError

from ..core.logging import get_logger
from .grading import grade_texts
from .models import QuizAnalysis, Question
from .parsing import (
    GenerationError,
    parse_analysis_payload,
    parse_question_payload,
)

__all__ = [
    "PERFECT_FEEDBACK",
    "FALLBACK_FEEDBACK",
    "DEFAULT_FEEDBACK",
    "GenerationError",
    "GenerationGateway",
    "is_rate_limited",
]

PERFECT_FEEDBACK = "Perfect score! You have verified mastery of this topic."
FALLBACK_FEEDBACK = "Good effort! Review the questions above to improve."
DEFAULT_FEEDBACK = "Good effort!"

_T = TypeVar("_T")


def is_rate_limited(exc: BaseException) -> bool:
    """Return True for errors worth retrying (HTTP 429 / rate limiting)."""

    if isinstance(exc, RateLimitError):
        return True
    return getattr(exc, "status_code", None) == 429


def _build_question_prompts(source: str) -> Tuple[str, str]:
    sys_prompt = (
        "You are an expert teacher who writes multiple-choice quizzes. "
        "You reply with JSON only, never prose."
    )
    schema = (
        '[{"id": 1, "question": str, "options": [str, str, str, str], '
        '"answer": str, "explanation": str}]'
    )
    user_prompt = (
        "Analyze the following text and write a multiple-choice quiz of "
        "5-10 questions that test understanding of its key concepts.\n\n"
        "If a question involves code, put the code in a fenced markdown "
        "code block inside the question text; do not use inline backticks "
        "for multi-line code.\n\n"
        "Return ONLY a JSON array with this exact structure:\n"
        f"{schema}\n"
        "Constraints: 'answer' must repeat one of the 'options' verbatim; "
        "options must be distinct; exactly one correct option.\n\n"
        f"Text to analyze:\n{source}"
    )
    return sys_prompt, user_prompt


def _build_analysis_prompts(
    score: int, total: int, mistakes: Sequence[Mapping[str, str]]
) -> Tuple[str, str]:
    sys_prompt = (
        "You are a supportive tutor reviewing quiz results. "
        "You reply with a single JSON object only."
    )
    user_prompt = (
        f"A student scored {score}/{total} on a quiz.\n\n"
        f"Mistakes made:\n{json.dumps(list(mistakes), ensure_ascii=False)}\n\n"
        "Considering both the score and the specific mistakes, produce:\n"
        "1. 'feedback': a two-sentence encouraging summary of what they did "
        "right and what they got wrong.\n"
        "2. 'flashcards': cards covering the concepts they missed. Each "
        "'back' must be very concise (1-5 words or a short phrase) and each "
        "'front' specific enough to lead to it. Use fenced markdown for "
        "code.\n\n"
        'Return ONLY JSON: {"feedback": str, "flashcards": '
        '[{"front": str, "back": str}]}'
    )
    return sys_prompt, user_prompt


class GenerationGateway:
    """Boundary between quizmaster and the text-generation service."""

    def __init__(
        self,
        client: Any,
        *,
        generation_model: str = "gpt-4o-mini",
        analysis_model: str = "gpt-4o",
        temperature: float = 0.2,
        max_output_tokens: int = 4000,
        max_source_chars: int = 15000,
        max_attempts: int = 3,
        base_delay_seconds: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self._client = client
        self._generation_model = generation_model
        self._analysis_model = analysis_model
        self._temperature = temperature
        self._max_output_tokens = max_output_tokens
        self._max_source_chars = max_source_chars
        self._max_attempts = max_attempts
        self._base_delay = base_delay_seconds
        self._sleep = sleep
        self._logger = logger or get_logger("gateway")

    @classmethod
    def from_config(
        cls,
        client: Any,
        config: Any,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> "GenerationGateway":
        """Build a gateway from a :class:`QuizMasterConfig`."""

        return cls(
            client,
            generation_model=config.openai.generation_model,
            analysis_model=config.openai.analysis_model,
            temperature=config.openai.temperature,
            max_output_tokens=config.openai.max_output_tokens,
            max_source_chars=config.generation.max_source_chars,
            max_attempts=config.generation.max_attempts,
            base_delay_seconds=config.generation.base_delay_seconds,
            logger=logger,
        )

    def generate_questions(self, source_text: str) -> List[Question]:
        """Generate validated questions from notes or a synthesized prompt."""

        text = (source_text or "").strip()
        if not text:
            raise GenerationError("Source text is empty; nothing to generate.")
        truncated = text[: self._max_source_chars]
        self._logger.info(
            "Requesting question generation",
            extra={
                "source_chars": len(text),
                "submitted_chars": len(truncated),
                "model": self._generation_model,
            },
        )
        sys_prompt, user_prompt = _build_question_prompts(truncated)
        try:
            raw = self._with_retry(
                lambda: self._complete(
                    model=self._generation_model,
                    system_prompt=sys_prompt,
                    user_prompt=user_prompt,
                ),
            )
        except Exception as exc:
            self._logger.error(
                "Question generation failed",
                extra={"error": str(exc)},
            )
            raise GenerationError(f"Failed to generate quiz: {exc}") from exc

        try:
            questions = parse_question_payload(raw)
        except GenerationError as exc:
            self._logger.error(
                "Rejected generated questions",
                extra={"error": str(exc), "kind": type(exc).__name__},
            )
            raise
        if not questions:
            raise GenerationError("No questions generated.")
        self._logger.info(
            "Generated questions", extra={"count": len(questions)}
        )
        return questions

    def analyze_result(
        self,
        questions: Sequence[Question],
        answer_texts: Mapping[int, str],
    ) -> QuizAnalysis:
        """Return score, feedback and suggested flashcards. Never raises.

        The score is always computed locally first so that it survives any
        failure of the remote call.
        """

        report = grade_texts(questions, answer_texts)
        if report.all_correct:
            return QuizAnalysis(
                score=report.score,
                total=report.total,
                feedback=PERFECT_FEEDBACK,
                flashcards=(),
            )

        mistakes = [
            {
                "question": item.question,
                "userAnswer": item.user_answer,
                "correctAnswer": item.correct_answer,
            }
            for item in report.wrong_answers
        ]
        sys_prompt, user_prompt = _build_analysis_prompts(
            report.score, report.total, mistakes
        )
        try:
            raw = self._with_retry(
                lambda: self._complete(
                    model=self._analysis_model,
                    system_prompt=sys_prompt,
                    user_prompt=user_prompt,
                    json_object=True,
                ),
            )
            feedback, cards = parse_analysis_payload(raw)
        except Exception as exc:
            self._logger.warning(
                "Analysis unavailable; using local fallback",
                extra={"error": str(exc), "kind": type(exc).__name__},
            )
            return QuizAnalysis(
                score=report.score,
                total=report.total,
                feedback=FALLBACK_FEEDBACK,
                flashcards=(),
            )
        return QuizAnalysis(
            score=report.score,
            total=report.total,
            feedback=feedback or DEFAULT_FEEDBACK,
            flashcards=tuple(cards),
        )

    def _with_retry(self, call: Callable[[], _T]) -> _T:
        delay = self._base_delay
        for attempt in range(1, self._max_attempts + 1):
            try:
                return call()
            except Exception as exc:
                if not is_rate_limited(exc) or attempt >= self._max_attempts:
                    raise
                self._logger.warning(
                    "Service rate limited; retrying",
                    extra={
                        "attempt": attempt,
                        "remaining": self._max_attempts - attempt,
                        "delay_seconds": delay,
                    },
                )
                self._sleep(delay)
                delay *= 2
        raise AssertionError("unreachable")  # pragma: no cover

    def _complete(
        self,
        *,
        model: str,
        system_prompt: str,
        user_prompt: str,
        json_object: bool = False,
    ) -> str:
        kwargs: dict[str, Any] = {
            "model": model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": self._temperature,
            "max_tokens": self._max_output_tokens,
        }
        if json_object:
            kwargs["response_format"] = {"type": "json_object"}
        resp = self._client.chat.completions.create(**kwargs)
        content = resp.choices[0].message.content
        return (content or "").strip()
