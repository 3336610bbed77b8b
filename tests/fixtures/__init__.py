"""Shared testing helpers for the quizmaster test suite."""

from .openai import FakeChatClient, RateLimited  # noqa: F401
from .quizzes import (  # noqa: F401
    make_question,
    make_quiz,
    questions_json,
    sample_questions,
)
from .store import FailingStore  # noqa: F401

__all__ = [
    "FailingStore",
    "FakeChatClient",
    "RateLimited",
    "make_question",
    "make_quiz",
    "questions_json",
    "sample_questions",
]
