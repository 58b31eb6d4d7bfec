"""Command-line entry points for playing, importing and reviewing quizzes."""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Sequence

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..core.config import QuizCardsConfig, load_config
from ..core.logging import configure_logger
from ..core.workspace import WorkspaceError, WorkspaceLayout, ensure_workspace
from ..errors import ConfigurationError, HistoryError, ValidationError
from .console import InputProvider, run_quiz_session
from .history import JsonHistoryStore
from .models import QUIZ_MODES
from .payload import template_json
from .service import QuestionService
from .session import QuizController


@dataclass(frozen=True)
class _Context:
    config: QuizCardsConfig
    layout: WorkspaceLayout
    logger: logging.Logger
    history: JsonHistoryStore
    console: Console
    input_provider: InputProvider


def _prepare(
    args: argparse.Namespace,
    console: Console,
    input_provider: Optional[InputProvider],
) -> _Context:
    layout = ensure_workspace(path=args.workspace)
    config = load_config(
        explicit_path=args.config, config_dir=layout.path_for("config")
    )
    logger, _ = configure_logger(
        "quiz_cards",
        log_dir=layout.path_for("logs"),
        level=config.logging.level,
        verbose=config.logging.verbose or args.verbose,
    )
    logger.info(
        "Command started",
        extra={"command": args.command, "workspace": layout.home},
    )
    return _Context(
        config=config,
        layout=layout,
        logger=logger,
        history=JsonHistoryStore(layout.path_for("history")),
        console=console,
        input_provider=input_provider
        or (lambda: console.input("[bold cyan]> [/]")),
    )


def _controller(ctx: _Context, client: Any, *, required: bool) -> QuizController:
    """Build a controller; without an API key only imports can run."""

    try:
        service: Optional[QuestionService] = QuestionService.from_config(
            ctx.config, client=client
        )
    except ConfigurationError as exc:
        if required:
            raise
        ctx.logger.warning("Question service unavailable: %s", exc)
        ctx.console.print(
            f"[yellow]{exc}[/]\nOpen-ended answers cannot be graded "
            "in this session."
        )
        service = None
    return QuizController(
        service=service,
        history=ctx.history,
        question_count=ctx.config.quiz.question_count,
    )


def _generate(
    ctx: _Context,
    controller: QuizController,
    topic: str,
    mode: str,
    count: Optional[int],
) -> bool:
    try:
        with ctx.console.status(f"Generating questions about {topic}..."):
            controller.start(topic, mode, count)
    except ValidationError as exc:
        ctx.console.print(f"[red]{exc}[/]")
        return False
    return _report_error(ctx, controller)


def _report_error(ctx: _Context, controller: QuizController) -> bool:
    if controller.state != "error":
        return True
    ctx.console.print(
        Panel(controller.error_message, title="Error", border_style="red")
    )
    controller.acknowledge()
    return False


def _drive(
    ctx: _Context,
    controller: QuizController,
    *,
    mode: str,
    count: Optional[int],
) -> int:
    while True:
        action = run_quiz_session(controller, ctx.console, ctx.input_provider)
        if action != "new":
            return 0
        ctx.console.print("Enter a new topic (blank to quit):")
        try:
            topic = (ctx.input_provider() or "").strip()
        except (EOFError, KeyboardInterrupt, StopIteration):
            return 0
        if not topic:
            return 0
        if not _generate(ctx, controller, topic, mode, count):
            return 1


def _cmd_play(ctx: _Context, args: argparse.Namespace, client: Any) -> int:
    mode = args.mode or ctx.config.quiz.default_mode
    controller = _controller(ctx, client, required=True)
    if not _generate(ctx, controller, args.topic, mode, args.count):
        return 1
    return _drive(ctx, controller, mode=mode, count=args.count)


def _cmd_import(ctx: _Context, args: argparse.Namespace, client: Any) -> int:
    controller = _controller(ctx, client, required=False)
    controller.import_file(args.file)
    if not _report_error(ctx, controller):
        return 1
    session = controller.require_session()
    ctx.console.print(
        f"Imported {session.total_questions} questions "
        f"([bold]{session.mode}[/]) as '{session.topic}'."
    )
    return _drive(
        ctx, controller, mode=ctx.config.quiz.default_mode, count=None
    )


def _cmd_history_list(ctx: _Context) -> int:
    items = ctx.history.list_all()
    if not items:
        ctx.console.print("No quiz history yet.")
        return 0
    table = Table(title="Quiz history", box=box.SIMPLE, expand=True)
    table.add_column("ID")
    table.add_column("Topic", overflow="fold")
    table.add_column("Mode")
    table.add_column("Score", justify="right")
    table.add_column("Questions", justify="right")
    table.add_column("Created")
    for item in items:
        table.add_row(
            item.id,
            item.topic,
            item.mode,
            item.score_display(),
            str(item.total_questions),
            item.created_at,
        )
    ctx.console.print(table)
    return 0


def _cmd_history_delete(ctx: _Context, item_id: str) -> int:
    if ctx.history.get(item_id) is None:
        ctx.console.print(f"[red]No history entry '{item_id}'.[/]")
        return 1
    ctx.history.delete_by_id(item_id)
    ctx.console.print(f"Deleted history entry '{item_id}'.")
    return 0


def _cmd_history_replay(ctx: _Context, item_id: str, client: Any) -> int:
    item = ctx.history.get(item_id)
    if item is None:
        ctx.console.print(f"[red]No history entry '{item_id}'.[/]")
        return 1
    controller = _controller(ctx, client, required=False)
    controller.replay(item)
    return _drive(ctx, controller, mode=item.mode, count=None)


def _cmd_template(args: argparse.Namespace) -> int:
    text = template_json()
    if args.output is None:
        sys.stdout.write(text)
        return 0
    path = args.output.expanduser()
    if path.exists() and not args.force:
        sys.stderr.write(f"Refusing to overwrite {path}; use --force.\n")
        return 2
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    sys.stdout.write(f"Wrote template to {path}\n")
    return 0


def build_arg_parser(prog: str = "quiz-cards") -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--workspace",
        type=Path,
        help="Data home (defaults to QUIZ_CARDS_DATA_HOME or ~/.quiz-cards-data)",
    )
    common.add_argument(
        "--config", type=Path, help="Path to a quiz-cards.toml file"
    )
    common.add_argument(
        "--verbose", action="store_true", help="Echo log records to stderr"
    )

    p = argparse.ArgumentParser(
        prog=prog,
        description="AI-generated flashcard quizzes in the terminal",
    )
    sub = p.add_subparsers(dest="command", required=True)

    sp_play = sub.add_parser(
        "play", parents=[common], help="Generate a quiz on a topic and play it"
    )
    sp_play.add_argument("topic")
    sp_play.add_argument("--mode", choices=list(QUIZ_MODES))
    sp_play.add_argument("--count", type=_positive_int)

    sp_import = sub.add_parser(
        "import", parents=[common], help="Play questions from a JSON file"
    )
    sp_import.add_argument("file", type=Path)

    sp_template = sub.add_parser(
        "template", help="Print or write the import template"
    )
    sp_template.add_argument("--output", type=Path)
    sp_template.add_argument("--force", action="store_true")

    sp_history = sub.add_parser("history", help="Review saved quizzes")
    h_sub = sp_history.add_subparsers(dest="action", required=True)
    h_sub.add_parser("list", parents=[common], help="List saved quizzes")
    sp_h_del = h_sub.add_parser(
        "delete", parents=[common], help="Delete a saved quiz"
    )
    sp_h_del.add_argument("id")
    sp_h_rep = h_sub.add_parser(
        "replay", parents=[common], help="Play a saved quiz again"
    )
    sp_h_rep.add_argument("id")
    return p


def main(
    argv: Optional[Sequence[str]] = None,
    *,
    console: Optional[Console] = None,
    input_provider: Optional[InputProvider] = None,
    client: Any = None,
) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    if args.command == "template":
        return _cmd_template(args)

    out = console or Console()
    try:
        ctx = _prepare(args, out, input_provider)
        if args.command == "play":
            return _cmd_play(ctx, args, client)
        if args.command == "import":
            return _cmd_import(ctx, args, client)
        if args.action == "list":
            return _cmd_history_list(ctx)
        if args.action == "delete":
            return _cmd_history_delete(ctx, args.id)
        return _cmd_history_replay(ctx, args.id, client)
    except (ConfigurationError, WorkspaceError) as exc:
        out.print(f"[red]Error:[/] {exc}")
        return 2
    except HistoryError as exc:
        out.print(f"[red]History error:[/] {exc}")
        return 1
    except ValidationError as exc:
        out.print(f"[red]{exc}[/]")
        return 1


def _positive_int(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid count: {raw!r}") from exc
    if value <= 0:
        raise argparse.ArgumentTypeError("count must be positive")
    return value


if __name__ == "__main__":  # pragma: no cover - module CLI guard
    raise SystemExit(main())
