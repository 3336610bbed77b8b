from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Iterator

import pytest

TESTS_DIR = Path(__file__).resolve().parent
ROOT = TESTS_DIR.parent
for extra in (TESTS_DIR, ROOT / "src"):
    path_str = str(extra)
    if path_str not in sys.path:
        sys.path.insert(0, path_str)

from fixtures import FakeChatClient, sample_questions  # noqa: E402
from quizmaster.core.logging import ROOT_LOGGER  # noqa: E402
from quizmaster.quiz.gateway import GenerationGateway  # noqa: E402
from quizmaster.quiz.models import Difficulty, Quiz  # noqa: E402
from quizmaster.store import JsonDocumentStore  # noqa: E402


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("QUIZMASTER_DATA_HOME", "QUIZMASTER_CONFIG", "OPENAI_API_KEY"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def _reset_quizmaster_logger() -> Iterator[None]:
    yield
    logger = logging.getLogger(ROOT_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def chat_client() -> FakeChatClient:
    return FakeChatClient()


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def gateway(chat_client: FakeChatClient, sleeps: list[float]) -> GenerationGateway:
    return GenerationGateway(chat_client, sleep=sleeps.append)


@pytest.fixture
def store(tmp_path: Path) -> JsonDocumentStore:
    return JsonDocumentStore(tmp_path / "store")


@pytest.fixture
def saved_quiz(store: JsonDocumentStore) -> Quiz:
    return store.create_quiz(
        "General Knowledge", "trivia", Difficulty.MEDIUM, sample_questions()
    )
