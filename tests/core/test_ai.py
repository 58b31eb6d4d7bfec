from __future__ import annotations

import pytest

from quiz_cards.core import ai
from quiz_cards.core.config import default_config
from quiz_cards.errors import ConfigurationError


class _RecordingOpenAI:
    instances: list = []

    def __init__(self, **kwargs):
        self.kwargs = kwargs
        _RecordingOpenAI.instances.append(self)


@pytest.fixture
def recording_openai(monkeypatch):
    _RecordingOpenAI.instances = []
    monkeypatch.setattr(ai, "OpenAI", _RecordingOpenAI)
    return _RecordingOpenAI


def test_load_client_uses_provider_settings(recording_openai) -> None:
    provider = default_config().provider

    client = ai.load_client(provider, env={"OPENROUTER_API_KEY": " sk-test "})

    assert isinstance(client, recording_openai)
    assert client.kwargs["api_key"] == "sk-test"
    assert client.kwargs["base_url"] == "https://openrouter.ai/api/v1"
    assert client.kwargs["default_headers"] == {
        "HTTP-Referer": "http://localhost:3000",
        "X-Title": "Quiz Cards",
    }


def test_load_client_requires_key(recording_openai) -> None:
    with pytest.raises(ConfigurationError) as excinfo:
        ai.load_client(default_config().provider, env={})

    assert "OPENROUTER_API_KEY" in str(excinfo.value)
    assert recording_openai.instances == []


def test_load_client_reads_process_environment(
    recording_openai, monkeypatch, tmp_path
) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("OPENROUTER_API_KEY", "from-env")

    client = ai.load_client(default_config().provider)

    assert client.kwargs["api_key"] == "from-env"


def test_load_client_reads_dotenv_file(
    recording_openai, monkeypatch, tmp_path
) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("OPENROUTER_API_KEY", "placeholder")
    monkeypatch.delenv("OPENROUTER_API_KEY")
    (tmp_path / ".env").write_text(
        "OPENROUTER_API_KEY=from-dotenv\n", encoding="utf-8"
    )

    client = ai.load_client(default_config().provider)

    assert client.kwargs["api_key"] == "from-dotenv"
