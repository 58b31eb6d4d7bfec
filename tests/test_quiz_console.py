from __future__ import annotations

import io

from rich.console import Console

from fixtures import (
    ScriptedInput,
    ScriptedService,
    mcq,
    open_question,
    react_hooks_questions,
)
from quiz_cards.errors import ServiceError
from quiz_cards.quiz.console import (
    SessionCommand,
    parse_session_command,
    run_quiz_session,
)
from quiz_cards.quiz.history import InMemoryHistoryStore
from quiz_cards.quiz.models import EvaluationResult
from quiz_cards.quiz.session import QuizController


def make_console() -> Console:
    return Console(file=io.StringIO(), record=True, width=100)


def start(questions, mode="mixed", evaluations=()):
    history = InMemoryHistoryStore()
    controller = QuizController(
        service=ScriptedService(questions, evaluations), history=history
    )
    controller.start("Console Topic", mode)
    return controller, history


def test_parse_session_command_variants() -> None:
    choice = mcq("a")
    essay = open_question("b")

    assert parse_session_command("B", choice) == SessionCommand("select", 1)
    assert parse_session_command("  Next ", choice) == SessionCommand("next")
    assert parse_session_command("p", essay) == SessionCommand("prev")
    assert parse_session_command("quit", essay) == SessionCommand("quit")
    assert parse_session_command("hello", choice) is None
    assert parse_session_command("", choice) is None
    assert parse_session_command(None, essay) is None
    assert parse_session_command("A closure", essay) == SessionCommand(
        "answer", text="A closure"
    )


def test_multiple_choice_session_to_summary() -> None:
    console = make_console()
    controller, history = start(react_hooks_questions(), "multiple-choice")
    provider = ScriptedInput(
        ["c", "n", "b", "n", "a", "n", "d", "n", "c", "n", "q"]
    )

    action = run_quiz_session(controller, console, provider)

    assert action == "done"
    assert controller.state == "summary"
    assert history.list_all()[0].total_score == 5
    rendered = console.export_text()
    assert "Quiz Summary" in rendered
    assert "100%" in rendered
    assert "Correct!" in rendered


def test_open_ended_session_shows_feedback_and_mean() -> None:
    console = make_console()
    evaluations = [
        EvaluationResult(80, "Good coverage", "Mention scope"),
        EvaluationResult(40, "Too short", "Add an example"),
    ]
    controller, _ = start(
        [open_question("o1"), open_question("o2")], evaluations=evaluations
    )
    provider = ScriptedInput(["first", "n", "second", "n", "q"])

    assert run_quiz_session(controller, console, provider) == "done"

    assert controller.total_score == 120
    rendered = console.export_text()
    assert "Score 80/100" in rendered
    assert "Good coverage" in rendered
    assert "Mention scope" in rendered
    assert "60" in rendered


def test_failed_evaluation_prints_retry_hint() -> None:
    console = make_console()
    controller, _ = start(
        [open_question("o1")],
        evaluations=[ServiceError("upstream down"), EvaluationResult(90, "", "")],
    )
    provider = ScriptedInput(["answer", "answer", "n", "q"])

    run_quiz_session(controller, console, provider)

    rendered = console.export_text()
    assert "Evaluation failed" in rendered
    assert "Submit your answer again to retry." in rendered
    assert controller.total_score == 90


def test_quit_requires_confirmation() -> None:
    console = make_console()
    controller, history = start([mcq("a"), mcq("b")])
    provider = ScriptedInput(["a", "q", "n", "q", "y"])

    action = run_quiz_session(controller, console, provider)

    assert action == "quit"
    assert provider.remaining == 0
    assert controller.state == "setup"
    assert history.list_all() == []


def test_retry_from_summary_replays_questions() -> None:
    console = make_console()
    controller, history = start([mcq("a", 0)])
    provider = ScriptedInput(["a", "n", "r", "b", "n", "q"])

    assert run_quiz_session(controller, console, provider) == "done"

    scores = [item.total_score for item in history.list_all()]
    assert scores == [0, 1]


def test_new_topic_from_summary_resets() -> None:
    console = make_console()
    controller, _ = start([mcq("a")])

    action = run_quiz_session(
        controller, console, ScriptedInput(["n", "new"])
    )

    assert action == "new"
    assert controller.state == "setup"


def test_end_of_input_abandons_session() -> None:
    console = make_console()
    controller, history = start([mcq("a")])

    action = run_quiz_session(controller, console, ScriptedInput([]))

    assert action == "quit"
    assert controller.state == "setup"
    assert history.list_all() == []
    assert "Session interrupted." in console.export_text()


def test_invalid_input_is_reported() -> None:
    console = make_console()
    controller, _ = start([mcq("a", 0)])
    provider = ScriptedInput(["hello", "z", "a", "b", "n", "q"])

    run_quiz_session(controller, console, provider)

    rendered = console.export_text()
    assert "Unrecognized command" in rendered
    assert "out of range" in rendered
    assert "already answered" in rendered
    assert controller.total_score == 1
