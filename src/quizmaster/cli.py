"""Command-line entry point for quizmaster."""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Sequence

from rich.console import Console
from rich.markup import escape

from .core import config as config_mod
from .core import workspace as workspace_mod
from .core.ai import load_client
from .core.logging import configure_logger
from .quiz.analysis import AnalysisPipeline
from .quiz.flashcards import DeckReview
from .quiz.gateway import GenerationGateway
from .quiz.library import (
    NOTES_TITLE,
    NOTES_TOPIC,
    create_quiz_from_text,
    create_quiz_from_topic,
    edit_quiz,
    filter_quizzes,
    load_guest_quiz,
)
from .quiz.models import Difficulty
from .quiz.parsing import GenerationError
from .quiz.session import GUEST_QUIZ_ID, QuizSession, SessionPhase
from .quiz.view import (
    NOT_FOUND_MESSAGE,
    InputProvider,
    render_analysis,
    render_flashcard_sets,
    render_quiz_detail,
    render_quiz_table,
    render_weak_areas,
    run_deck_review,
    run_quiz_session,
)
from .quiz.weak_areas import load_weak_areas
from .store import JsonDocumentStore, NotFoundError, PersistenceError


@dataclass
class _AppContext:
    config: config_mod.QuizMasterConfig
    layout: workspace_mod.WorkspaceLayout
    store: JsonDocumentStore
    console: Console
    input_provider: InputProvider
    logger: logging.Logger


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="quizmaster",
        description="Generate quizzes with AI, take them, and review mistakes.",
    )
    parser.add_argument(
        "--config",
        type=str,
        help="Path to quizmaster.toml (defaults to the workspace config).",
    )
    parser.add_argument(
        "--workspace",
        type=str,
        help="Workspace directory (overrides QUIZMASTER_DATA_HOME).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Echo log records to stderr.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser(
        "init",
        help="Create the workspace and write the config template.",
    )
    init_parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite an existing config file if present.",
    )

    create_parser = subparsers.add_parser(
        "create",
        help="Generate a quiz from notes or a topic.",
    )
    source = create_parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--text", type=str, help="File with notes to quiz on.")
    source.add_argument("--topic", type=str, help="Topic to generate about.")
    create_parser.add_argument(
        "--difficulty",
        choices=[member.value for member in Difficulty],
        help="Difficulty for topic quizzes (defaults to the config value).",
    )
    create_parser.add_argument(
        "--count",
        type=int,
        help="Number of questions for topic quizzes.",
    )
    create_parser.add_argument("--title", type=str, help="Quiz title.")

    list_parser = subparsers.add_parser("list", help="List saved quizzes.")
    list_parser.add_argument("--topic", type=str, help="Exact topic to show.")
    list_parser.add_argument(
        "--search", type=str, help="Case-insensitive title search."
    )
    list_parser.add_argument(
        "--limit", type=int, default=20, help="Maximum quizzes to load."
    )

    show_parser = subparsers.add_parser("show", help="Show a quiz with answers.")
    show_parser.add_argument("quiz_id")

    delete_parser = subparsers.add_parser("delete", help="Delete a quiz.")
    delete_parser.add_argument("quiz_id")

    edit_parser = subparsers.add_parser(
        "edit", help="Retitle a quiz or drop questions."
    )
    edit_parser.add_argument("quiz_id")
    edit_parser.add_argument("--title", type=str, help="New quiz title.")
    edit_parser.add_argument(
        "--drop-question",
        dest="drop_questions",
        type=int,
        nargs="+",
        default=[],
        metavar="N",
        help="1-based positions of questions to remove.",
    )

    play_parser = subparsers.add_parser("play", help="Take a quiz.")
    play_parser.add_argument(
        "quiz_id",
        help=f"Saved quiz id, or '{GUEST_QUIZ_ID}' with --questions.",
    )
    play_parser.add_argument(
        "--interactive",
        action="store_true",
        default=None,
        help="Show instant feedback after each answer.",
    )
    play_parser.add_argument(
        "--time-limit",
        type=int,
        help="Countdown in seconds (defaults to the config value).",
    )
    play_parser.add_argument(
        "--questions",
        type=str,
        help="JSON file of questions to play without saving.",
    )
    play_parser.add_argument(
        "--no-analysis",
        action="store_true",
        help="Skip the AI feedback step.",
    )
    play_parser.add_argument(
        "--save-flashcards",
        action="store_true",
        help="Save missed concepts as a flashcard set.",
    )

    cards_parser = subparsers.add_parser(
        "flashcards", help="List or review flashcard sets."
    )
    cards_parser.add_argument("--topic", type=str, help="Only this topic.")
    cards_parser.add_argument(
        "--review", type=str, metavar="ID", help="Review a set card by card."
    )

    weak_parser = subparsers.add_parser(
        "weak-areas", help="Show topics that need more practice."
    )
    weak_parser.add_argument(
        "--limit",
        type=int,
        help="Number of recent results to consider.",
    )

    return parser


def _to_path(value: str | None) -> Path | None:
    if value is None:
        return None
    return Path(value).expanduser().resolve()


def _handle_init(args: argparse.Namespace, console: Console) -> int:
    try:
        layout = workspace_mod.ensure_workspace(path=_to_path(args.workspace))
        target, _ = config_mod.resolve_config_path(
            explicit_path=_to_path(args.config), workspace_path=layout.home
        )
        config_mod.write_template(target, overwrite=args.force)
    except (config_mod.ConfigError, workspace_mod.WorkspaceError) as exc:
        _print_error(str(exc))
        return 2
    console.print(f"Workspace ready at {layout.home}")
    for name, path in layout.items():
        status = "created" if layout.created.get(name) else "exists"
        console.print(f"  {name}: {path} ({status})")
    console.print(f"Wrote config template to {target}")
    return 0


def _bootstrap(
    args: argparse.Namespace,
    console: Console,
    input_provider: InputProvider,
) -> _AppContext:
    workspace_override = _to_path(args.workspace)
    layout = workspace_mod.ensure_workspace(path=workspace_override)
    cfg = config_mod.load_config(
        explicit_path=_to_path(args.config), workspace_path=layout.home
    )
    if workspace_override is None and cfg.data_home_override is not None:
        layout = workspace_mod.ensure_workspace(path=cfg.data_home_override)
    logger, _ = configure_logger(
        layout.path_for("logs"),
        level=cfg.logging.level,
        verbose=args.verbose or cfg.logging.verbose,
    )
    store = JsonDocumentStore(layout.path_for("store"))
    return _AppContext(
        config=cfg,
        layout=layout,
        store=store,
        console=console,
        input_provider=input_provider,
        logger=logger,
    )


def _build_gateway(ctx: _AppContext) -> GenerationGateway:
    provider = ctx.config.openai
    client = load_client(
        api_base=provider.api_base,
        timeout=provider.request_timeout_seconds,
    )
    return GenerationGateway.from_config(client, ctx.config)


def _handle_create(args: argparse.Namespace, ctx: _AppContext) -> int:
    try:
        difficulty = Difficulty.parse(
            args.difficulty or ctx.config.generation.default_difficulty
        )
    except ValueError as exc:
        _print_error(str(exc))
        return 2
    count = (
        args.count
        if args.count is not None
        else ctx.config.generation.default_question_count
    )
    if count < 1:
        _print_error("--count must be >= 1")
        return 2

    text = None
    if args.text:
        try:
            text = Path(args.text).expanduser().read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            _print_error(f"Unable to read {args.text}: {exc}")
            return 2

    try:
        gateway = _build_gateway(ctx)
    except RuntimeError as exc:
        _print_error(str(exc))
        return 2

    with ctx.console.status("Generating quiz..."):
        try:
            if text is not None:
                quiz = create_quiz_from_text(
                    gateway,
                    ctx.store,
                    text,
                    title=args.title or NOTES_TITLE,
                    topic=NOTES_TOPIC,
                    difficulty=difficulty,
                )
            else:
                quiz = create_quiz_from_topic(
                    gateway,
                    ctx.store,
                    args.topic,
                    difficulty=difficulty,
                    count=count,
                    title=args.title,
                )
        except (GenerationError, PersistenceError) as exc:
            _print_error(str(exc))
            return 1

    ctx.console.print(
        f"Created quiz [bold]{quiz.title}[/] with {len(quiz.questions)} "
        f"question(s): [cyan]{quiz.id}[/]"
    )
    return 0


def _handle_list(args: argparse.Namespace, ctx: _AppContext) -> int:
    try:
        quizzes = ctx.store.list_quizzes(limit=args.limit)
    except PersistenceError as exc:
        _print_error(str(exc))
        return 1
    render_quiz_table(
        ctx.console,
        filter_quizzes(quizzes, topic=args.topic, search=args.search),
    )
    return 0


def _handle_show(args: argparse.Namespace, ctx: _AppContext) -> int:
    try:
        quiz = ctx.store.get_quiz(args.quiz_id)
    except PersistenceError as exc:
        _print_error(str(exc))
        return 1
    if quiz is None:
        _print_error(NOT_FOUND_MESSAGE)
        return 1
    render_quiz_detail(ctx.console, quiz)
    return 0


def _handle_delete(args: argparse.Namespace, ctx: _AppContext) -> int:
    try:
        ctx.store.delete_quiz(args.quiz_id)
    except NotFoundError:
        _print_error(NOT_FOUND_MESSAGE)
        return 1
    except PersistenceError as exc:
        _print_error(f"Failed to delete quiz: {exc}")
        return 1
    ctx.logger.info("Deleted quiz", extra={"quiz_id": args.quiz_id})
    ctx.console.print(f"Deleted quiz {args.quiz_id}.")
    return 0


def _handle_edit(args: argparse.Namespace, ctx: _AppContext) -> int:
    if args.title is None and not args.drop_questions:
        _print_error("Nothing to change; pass --title or --drop-question.")
        return 2
    try:
        quiz = edit_quiz(
            ctx.store,
            args.quiz_id,
            title=args.title,
            drop_positions=args.drop_questions,
        )
    except NotFoundError:
        _print_error(NOT_FOUND_MESSAGE)
        return 1
    except ValueError as exc:
        _print_error(str(exc))
        return 2
    except (GenerationError, PersistenceError) as exc:
        _print_error(f"Failed to update quiz: {exc}")
        return 1
    ctx.console.print(
        f"Updated [bold]{quiz.title}[/] ({len(quiz.questions)} question(s))."
    )
    return 0


def _handle_play(args: argparse.Namespace, ctx: _AppContext) -> int:
    guest_quiz = None
    if args.quiz_id == GUEST_QUIZ_ID:
        if not args.questions:
            _print_error(f"'{GUEST_QUIZ_ID}' requires --questions FILE.")
            return 2
        try:
            guest_quiz = load_guest_quiz(Path(args.questions).expanduser())
        except (OSError, UnicodeDecodeError) as exc:
            _print_error(f"Unable to read {args.questions}: {exc}")
            return 2
        except GenerationError as exc:
            _print_error(str(exc))
            return 1
    elif args.questions:
        _print_error(f"--questions is only valid with '{GUEST_QUIZ_ID}'.")
        return 2

    session_cfg = ctx.config.session
    session = QuizSession(
        args.quiz_id,
        store=ctx.store,
        guest_quiz=guest_quiz,
        interactive=(
            session_cfg.interactive
            if args.interactive is None
            else args.interactive
        ),
        time_limit_seconds=(
            args.time_limit
            if args.time_limit is not None
            else session_cfg.time_limit_seconds
        ),
    )
    handoff = run_quiz_session(session, ctx.console, ctx.input_provider)
    if session.phase is SessionPhase.NOT_FOUND:
        return 1
    if handoff is None:
        return 0

    gateway = None
    if not args.no_analysis:
        try:
            gateway = _build_gateway(ctx)
        except RuntimeError as exc:
            ctx.logger.warning(
                "AI analysis unavailable",
                extra={"quiz_id": handoff.quiz_id, "error": str(exc)},
            )
            ctx.console.print(
                f"[yellow]AI feedback unavailable ({escape(str(exc))}); "
                "showing offline results.[/]"
            )
    pipeline = AnalysisPipeline(gateway, store=ctx.store)
    with ctx.console.status("Analyzing your answers..."):
        analysis = pipeline.run(handoff)
    render_analysis(ctx.console, analysis)

    if args.save_flashcards:
        try:
            saved = pipeline.save_flashcards(analysis, handoff.topic)
        except PersistenceError as exc:
            _print_error(f"Failed to save flashcards: {exc}")
            return 1
        if saved is None:
            ctx.console.print("No flashcards to save.")
        else:
            ctx.console.print(
                f"Saved {len(saved.cards)} flashcard(s) to set "
                f"[cyan]{saved.id}[/]."
            )
    return 0


def _handle_flashcards(args: argparse.Namespace, ctx: _AppContext) -> int:
    try:
        sets = ctx.store.list_flashcard_sets(topic=args.topic)
    except PersistenceError as exc:
        _print_error(str(exc))
        return 1
    if not args.review:
        render_flashcard_sets(ctx.console, sets)
        return 0
    match = next((item for item in sets if item.id == args.review), None)
    if match is None:
        _print_error(f"Flashcard set not found: {args.review}")
        return 1
    run_deck_review(DeckReview(match.cards), ctx.console, ctx.input_provider)
    return 0


def _handle_weak_areas(args: argparse.Namespace, ctx: _AppContext) -> int:
    weak_cfg = ctx.config.weak_areas
    limit = args.limit if args.limit is not None else weak_cfg.history_limit
    try:
        areas = load_weak_areas(
            ctx.store, limit=limit, threshold=weak_cfg.threshold
        )
    except PersistenceError as exc:
        _print_error(str(exc))
        return 1
    render_weak_areas(ctx.console, areas)
    return 0


_HANDLERS: dict[str, Callable[[argparse.Namespace, _AppContext], int]] = {
    "create": _handle_create,
    "list": _handle_list,
    "show": _handle_show,
    "delete": _handle_delete,
    "edit": _handle_edit,
    "play": _handle_play,
    "flashcards": _handle_flashcards,
    "weak-areas": _handle_weak_areas,
}


def main(
    argv: Sequence[str] | None = None,
    *,
    console: Optional[Console] = None,
    input_provider: Optional[InputProvider] = None,
) -> int:
    parser = _build_parser()
    try:
        args = parser.parse_args(list(argv) if argv is not None else None)
    except SystemExit as exc:
        return int(exc.code or 0)

    out = console or Console()
    if args.command == "init":
        return _handle_init(args, out)

    handler = _HANDLERS.get(args.command)
    if handler is None:  # pragma: no cover - argparse rejects unknown commands
        parser.error("Command not implemented yet.")
        return 2

    reader = input_provider or (lambda: out.input("[bold]> [/]"))
    try:
        ctx = _bootstrap(args, out, reader)
    except (config_mod.ConfigError, workspace_mod.WorkspaceError) as exc:
        _print_error(str(exc))
        return 2
    except OSError as exc:
        _print_error(f"Unable to prepare workspace: {exc}")
        return 2
    except PersistenceError as exc:
        _print_error(str(exc))
        return 1
    return handler(args, ctx)


def _print_error(message: str) -> None:
    sys.stderr.write(message + "\n")


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
