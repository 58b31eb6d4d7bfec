"""Rich-powered console loop that drives a :class:`QuizController`.

The loop only renders state and forwards user intents; every rule about
answers, scoring and persistence lives in the controller. Input comes from an
``input_provider`` callable so tests can script a whole session.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Literal

from rich import box
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..errors import EvaluationError, QuizError
from .models import MULTIPLE_CHOICE, Question, QuizSession, UserAnswer
from .session import QuizController

__all__ = [
    "InputProvider",
    "ExitAction",
    "SessionCommand",
    "parse_session_command",
    "run_quiz_session",
    "render_question",
    "render_summary",
]

InputProvider = Callable[[], str]
ExitAction = Literal["quit", "done", "new"]


@dataclass(frozen=True)
class SessionCommand:
    """Normalized user command parsed from console input."""

    type: Literal["next", "prev", "quit", "select", "answer"]
    choice: int | None = None
    text: str | None = None


def parse_session_command(
    raw: str | None, question: Question
) -> SessionCommand | None:
    """Parse console input in the context of the current question."""

    if raw is None:
        return None
    text = raw.strip()
    if not text:
        return None
    lowered = text.lower()
    if lowered in {"n", "next"}:
        return SessionCommand("next")
    if lowered in {"p", "prev", "previous"}:
        return SessionCommand("prev")
    if lowered in {"q", "quit", "exit"}:
        return SessionCommand("quit")
    if question.kind == MULTIPLE_CHOICE:
        if len(text) == 1 and text.isalpha():
            return SessionCommand("select", choice=ord(lowered) - ord("a"))
        return None
    return SessionCommand("answer", text=text)


def run_quiz_session(
    controller: QuizController,
    console: Console,
    input_provider: InputProvider,
) -> ExitAction:
    """Run the active session through to the summary screen.

    Returns ``"quit"`` when the user abandons the session, ``"new"`` when they
    ask for a new topic from the summary and ``"done"`` otherwise.
    """

    while controller.state == "active":
        session = controller.require_session()
        render_question(console, session)
        raw = _read(input_provider)
        if raw is None:
            console.print("\n[bold yellow]Session interrupted.[/]")
            controller.exit()
            return "quit"
        command = parse_session_command(raw, session.current)
        if command is None:
            console.print("[red]Unrecognized command. Try again.[/]")
            continue
        if command.type == "quit":
            if _confirm(console, input_provider, "Quit without saving?"):
                console.print(
                    "\n[bold yellow]Ending session without saving.[/]"
                )
                controller.exit()
                return "quit"
            continue
        _apply_command(command, controller, console)

    while controller.state == "summary":
        render_summary(console, controller.require_session())
        console.print(
            Text("Commands: r (retry), new (new topic), q (quit)", style="dim")
        )
        raw = _read(input_provider)
        choice = (raw or "q").strip().lower()
        if choice in {"r", "retry"}:
            controller.retry()
            return run_quiz_session(controller, console, input_provider)
        if choice in {"new", "new topic"}:
            controller.reset()
            return "new"
        if choice in {"q", "quit", "exit"}:
            return "done"
        console.print("[red]Unrecognized command. Try again.[/]")
    return "done"


def _apply_command(
    command: SessionCommand, controller: QuizController, console: Console
) -> None:
    session = controller.require_session()
    if command.type == "next":
        controller.next()
        return
    if command.type == "prev":
        controller.prev()
        return
    question = session.current
    if session.answer_for(question) is not None:
        console.print("[yellow]This question is already answered.[/]")
        return
    try:
        if command.type == "select" and command.choice is not None:
            controller.answer(question.id, command.choice)
        elif command.type == "answer" and command.text is not None:
            with console.status("Evaluating answer..."):
                controller.answer(question.id, command.text)
    except EvaluationError as exc:
        console.print(f"[red]Evaluation failed: {exc}[/]")
        console.print("Submit your answer again to retry.")
    except QuizError as exc:
        console.print(f"[red]{exc}[/]")


def render_question(console: Console, session: QuizSession) -> None:
    question = session.current
    header = Text.assemble(
        (f"Question {session.current_index + 1}", "bold cyan"),
        (f" / {session.total_questions}", "dim"),
        (f"  {question.kind}", "magenta"),
    )
    console.print()
    console.rule(header)
    console.print(Markdown(question.prompt))

    saved = session.answer_for(question)
    if question.kind == MULTIPLE_CHOICE:
        _render_options(console, question, saved)
    if saved is not None:
        _render_feedback(console, question, saved)

    if question.kind == MULTIPLE_CHOICE:
        keys = ", ".join(_option_key(i) for i in range(len(question.options)))
        command_hint = f"Commands: choices [{keys}], n (next), p (prev), quit"
    else:
        command_hint = "Commands: type your answer, n (next), p (prev), quit"
    console.print(
        Text(
            f"Answered {session.answered_count()}/{session.total_questions} "
            f"| Score {session.total_score} | {command_hint}",
            style="dim",
        )
    )


def _render_options(
    console: Console, question: Question, saved: UserAnswer | None
) -> None:
    table = Table(show_header=False, box=box.SIMPLE, expand=True)
    table.add_column("Key", justify="center", style="cyan")
    table.add_column("Choice")
    selected = saved.value if saved is not None else None
    for index, option in enumerate(question.options):
        indicator = "•" if index == selected else " "
        choice_text = Text(indicator + " ")
        choice_text += Text(option)
        if saved is not None and index == question.correct_option_index:
            choice_text.stylize("bold green")
        elif index == selected:
            choice_text.stylize("bold red")
        table.add_row(_option_key(index), choice_text)
    console.print(table)


def _render_feedback(
    console: Console, question: Question, saved: UserAnswer
) -> None:
    if saved.kind == MULTIPLE_CHOICE:
        verdict = "Correct!" if saved.is_correct else "Incorrect."
        border = "green" if saved.is_correct else "red"
        body = question.explanation or ""
        console.print(
            Panel(
                Markdown(body) if body else Text(verdict),
                title=verdict,
                border_style=border,
            )
        )
        return
    evaluation = saved.evaluation
    if evaluation is None:
        return
    border = "green" if evaluation.score >= 60 else "yellow"
    console.print(
        Panel(
            Markdown(evaluation.feedback or "_No feedback._"),
            title=f"Score {evaluation.score}/100",
            border_style=border,
        )
    )
    if evaluation.better_answer:
        console.print(
            Panel(
                Markdown(evaluation.better_answer),
                title="Better answer",
                border_style="cyan",
            )
        )
    if question.model_answer:
        console.print(
            Panel(
                Markdown(question.model_answer),
                title="Reference answer",
                border_style="dim",
            )
        )


def render_summary(console: Console, session: QuizSession) -> None:
    console.print()
    console.rule(Text("Quiz Summary", style="bold magenta"))

    overview = Table(show_header=False, box=box.MINIMAL_DOUBLE_HEAD)
    overview.add_column("Metric", style="bold")
    overview.add_column("Value", justify="right")
    overview.add_row("Topic", session.topic)
    overview.add_row("Mode", session.mode)
    overview.add_row("Total questions", str(session.total_questions))
    overview.add_row("Answered", str(session.answered_count()))
    overview.add_row("Score", session.score_display())
    console.print(overview)

    responses = Table(title="Responses", box=box.SIMPLE, expand=True)
    responses.add_column("#", justify="right")
    responses.add_column("Question", overflow="fold")
    responses.add_column("Result", justify="center")
    for number, question in enumerate(session.questions, start=1):
        saved = session.answer_for(question)
        if saved is None:
            outcome = "—"
        elif saved.kind == MULTIPLE_CHOICE:
            outcome = "✅" if saved.is_correct else "❌"
        else:
            outcome = f"{saved.evaluation_score or 0}/100"
        responses.add_row(str(number), question.prompt, outcome)
    console.print(responses)


def _confirm(
    console: Console, input_provider: InputProvider, question: str
) -> bool:
    console.print(f"{question} [y/N]")
    answer = _read(input_provider)
    return (answer or "").strip().lower() in {"y", "yes"}


def _read(input_provider: InputProvider) -> str | None:
    try:
        return input_provider()
    except (EOFError, KeyboardInterrupt, StopIteration):
        return None


def _option_key(index: int) -> str:
    return chr(ord("A") + index)
