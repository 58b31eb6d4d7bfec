from __future__ import annotations

import io
import json

import pytest
from openai import OpenAIError
from rich.console import Console

from fixtures import ScriptedInput
from quiz_cards.quiz import _main
from quiz_cards.quiz.history import JsonHistoryStore
from quiz_cards.quiz.payload import template_json

BATCH = [
    {
        "id": "q1",
        "kind": "multiple-choice",
        "prompt": "Pick B",
        "options": ["a", "b", "c", "d"],
        "correctOptionIndex": 1,
        "explanation": "B it is.",
    },
    {
        "id": "q2",
        "kind": "multiple-choice",
        "prompt": "Pick A",
        "options": ["a", "b", "c", "d"],
        "correctOptionIndex": 0,
        "explanation": "A it is.",
    },
]


@pytest.fixture
def no_api_key(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)


def make_console() -> Console:
    return Console(file=io.StringIO(), record=True, width=120)


def run(argv, *, lines=(), client=None, console=None):
    console = console or make_console()
    code = _main.main(
        argv,
        console=console,
        input_provider=ScriptedInput(lines),
        client=client,
    )
    return code, console.export_text()


def history_store(data_home) -> JsonHistoryStore:
    return JsonHistoryStore(data_home / "history")


def test_play_generates_and_saves_history(data_home, chat_client) -> None:
    chat_client.queue_response(json.dumps(BATCH))

    code, output = run(
        ["play", "Letters", "--mode", "multiple-choice", "--count", "2"],
        lines=["b", "n", "c", "n", "q"],
        client=chat_client,
    )

    assert code == 0
    assert "Quiz Summary" in output
    assert "50%" in output
    (item,) = history_store(data_home).list_all()
    assert item.topic == "Letters"
    assert item.mode == "multiple-choice"
    assert item.total_score == 1
    user_prompt = chat_client.calls[0]["messages"][1]["content"]
    assert "Count: 2 questions" in user_prompt
    assert (data_home / "logs" / "quiz_cards.log").exists()


def test_play_uses_config_defaults(data_home, chat_client) -> None:
    (data_home / "config").mkdir(parents=True)
    (data_home / "config" / "quiz-cards.toml").write_text(
        '[quiz]\nquestion_count = 9\ndefault_mode = "open-ended"\n',
        encoding="utf-8",
    )
    chat_client.queue_response(json.dumps(BATCH))

    run(["play", "Letters"], lines=["q", "y"], client=chat_client)

    user_prompt = chat_client.calls[0]["messages"][1]["content"]
    assert "Count: 9 questions" in user_prompt
    assert "open-ended" in user_prompt


def test_play_reports_service_failure(data_home, chat_client) -> None:
    chat_client.queue_error(OpenAIError("upstream exploded"))

    code, output = run(["play", "Letters"], client=chat_client)

    assert code == 1
    assert "upstream exploded" in output
    assert history_store(data_home).list_all() == []


def test_play_without_api_key_fails(data_home, no_api_key) -> None:
    code, output = run(["play", "Letters"])

    assert code == 2
    assert "OPENROUTER_API_KEY" in output


def test_play_new_topic_from_summary(data_home, chat_client) -> None:
    chat_client.queue_response(json.dumps(BATCH[:1]))
    chat_client.queue_response(json.dumps(BATCH[1:]))

    code, _ = run(
        ["play", "First"],
        lines=["b", "n", "new", "Second", "a", "n", "q"],
        client=chat_client,
    )

    assert code == 0
    topics = [item.topic for item in history_store(data_home).list_all()]
    assert topics == ["Second", "First"]


def test_import_plays_file_and_grades_open_answers(
    data_home, chat_client, tmp_path
) -> None:
    path = tmp_path / "Closures.json"
    path.write_text(template_json(), encoding="utf-8")
    chat_client.queue_response(
        '{"score": 70, "feedback": "Decent", "betterAnswer": "Scope"}'
    )

    code, output = run(
        ["import", str(path)],
        lines=["c", "n", "functions remember scope", "n", "q"],
        client=chat_client,
    )

    assert code == 0
    assert "Imported 2 questions" in output
    (item,) = history_store(data_home).list_all()
    assert item.topic == "Closures"
    assert item.mode == "mixed"
    assert item.total_score == 71


def test_import_without_api_key_still_plays_choices(
    data_home, no_api_key, tmp_path
) -> None:
    path = tmp_path / "choices.json"
    path.write_text(json.dumps(BATCH), encoding="utf-8")

    code, output = run(["import", str(path)], lines=["b", "n", "a", "n", "q"])

    assert code == 0
    assert "cannot be graded" in output
    assert history_store(data_home).list_all()[0].score_display() == "100%"


def test_import_invalid_file_reports_error(data_home, chat_client, tmp_path):
    path = tmp_path / "empty.json"
    path.write_text("[]", encoding="utf-8")

    code, output = run(["import", str(path)], client=chat_client)

    assert code == 1
    assert "non-empty JSON array" in output


def test_history_list_delete_and_replay(data_home, chat_client) -> None:
    chat_client.queue_response(json.dumps(BATCH))
    run(["play", "Saved"], lines=["b", "n", "a", "n", "q"], client=chat_client)
    (item,) = history_store(data_home).list_all()

    code, listing = run(["history", "list"])
    assert code == 0
    assert item.id in listing
    assert "Saved" in listing

    code, _ = run(
        ["history", "replay", item.id],
        lines=["c", "n", "c", "n", "q"],
        client=chat_client,
    )
    assert code == 0
    replays = history_store(data_home).list_all()
    assert [entry.id for entry in replays] == [item.id, item.id]
    assert replays[0].total_score == 0

    code, output = run(["history", "delete", item.id])
    assert code == 0
    assert "Deleted" in output
    assert history_store(data_home).list_all() == []

    code, output = run(["history", "delete", item.id])
    assert code == 1
    assert "No history entry" in output


def test_history_list_empty(data_home) -> None:
    code, output = run(["history", "list"])

    assert code == 0
    assert "No quiz history yet." in output


def test_corrupt_history_is_reported(data_home) -> None:
    (data_home / "history").mkdir(parents=True)
    (data_home / "history" / "history.json").write_text("{", encoding="utf-8")

    code, output = run(["history", "list"])

    assert code == 1
    assert "History error" in output


def test_invalid_config_is_reported(data_home) -> None:
    (data_home / "config").mkdir(parents=True)
    (data_home / "config" / "quiz-cards.toml").write_text(
        "[quiz]\nbogus = 1\n", encoding="utf-8"
    )

    code, output = run(["history", "list"])

    assert code == 2
    assert "quiz.bogus" in output


def test_template_prints_to_stdout(capsys) -> None:
    assert _main.main(["template"]) == 0

    out = capsys.readouterr().out
    assert json.loads(out)[0]["id"] == "mcq1"


def test_template_writes_file(tmp_path, capsys) -> None:
    target = tmp_path / "out" / "template.json"

    assert _main.main(["template", "--output", str(target)]) == 0
    assert target.read_text(encoding="utf-8") == template_json()

    assert _main.main(["template", "--output", str(target)]) == 2
    assert "--force" in capsys.readouterr().err
    assert _main.main(["template", "--output", str(target), "--force"]) == 0


def test_count_must_be_positive(data_home) -> None:
    with pytest.raises(SystemExit):
        _main.main(["play", "Topic", "--count", "0"])


def test_invalid_history_values_are_reported(data_home) -> None:
    (data_home / "history").mkdir(parents=True)
    (data_home / "history" / "history.json").write_text(
        '[{"id": "1", "score": "abc"}]', encoding="utf-8"
    )

    code, output = run(["history", "list"])

    assert code == 1
    assert "History error" in output
