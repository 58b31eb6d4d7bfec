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

from fixtures import FakeChatClient  # noqa: E402
from quiz_cards.quiz.history import InMemoryHistoryStore  # noqa: E402


@pytest.fixture
def chat_client() -> FakeChatClient:
    return FakeChatClient()


@pytest.fixture
def history() -> InMemoryHistoryStore:
    return InMemoryHistoryStore()


@pytest.fixture
def data_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the workspace at a per-test directory with no config override."""

    home = tmp_path / "data"
    monkeypatch.setenv("QUIZ_CARDS_DATA_HOME", str(home))
    monkeypatch.delenv("QUIZ_CARDS_CONFIG", raising=False)
    return home


@pytest.fixture(autouse=True)
def _detach_log_handlers() -> Iterator[None]:
    """Commands attach file handlers to ``quiz_cards``; drop them per test."""

    yield
    logger = logging.getLogger("quiz_cards")
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
