"""Rich console front end for quiz sessions, results and flashcards.

The session loop here is a thin shell over :class:`QuizSession`: it renders
the current question, reads one command per prompt, ticks the countdown from
a monotonic clock and applies the command. All state lives in the engine.
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Callable, Literal

from rich import box
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .flashcards import DeckReview
from .models import SKIPPED, FlashcardSet, Quiz, QuizAnalysis, WeakArea
from .session import (
    NavigatorStatus,
    QuizSession,
    SessionHandoff,
    SessionPhase,
)

InputProvider = Callable[[], str]
Clock = Callable[[], float]

NOT_FOUND_MESSAGE = "This quiz may have been deleted or does not exist."
DECK_COMPLETE_MESSAGE = "Deck completed! Starting over."

_NAV_STYLES: dict[NavigatorStatus, str] = {
    "current": "bold reverse cyan",
    "flagged": "bold yellow",
    "answered": "green",
    "visited": "white",
    "unvisited": "dim",
}


@dataclass(frozen=True)
class SessionCommand:
    """Normalized user command parsed from console input."""

    type: Literal["select", "next", "prev", "flag", "goto", "submit", "quit"]
    index: int | None = None


def format_clock(seconds: int) -> str:
    """Render a countdown as ``m:ss``."""

    seconds = max(0, int(seconds))
    minutes, secs = divmod(seconds, 60)
    return f"{minutes}:{secs:02d}"


def option_key(index: int) -> str:
    return chr(ord("A") + index)


def parse_session_command(raw: str | None) -> SessionCommand | None:
    """Parse raw user input into a structured command.

    A bare option letter selects an answer; ``g 3`` (or ``goto 3``) jumps to
    the third question. The command shortcuts n, p, f, s and q win over bare
    letters, so ``a N`` (or ``answer N``) always selects option N.
    """

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
    if lowered in {"f", "flag"}:
        return SessionCommand("flag")
    if lowered in {"submit", "s"}:
        return SessionCommand("submit")
    if lowered in {"quit", "q", "exit"}:
        return SessionCommand("quit")
    parts = lowered.split()
    if (
        len(parts) == 2
        and parts[0] in {"a", "answer"}
        and len(parts[1]) == 1
        and parts[1].isalpha()
    ):
        return SessionCommand("select", ord(parts[1].upper()) - ord("A"))
    if len(parts) == 2 and parts[0] in {"g", "goto"} and parts[1].isdigit():
        return SessionCommand("goto", int(parts[1]) - 1)
    if len(text) == 1 and text.isalpha():
        return SessionCommand("select", ord(text.upper()) - ord("A"))
    return None


def run_quiz_session(
    session: QuizSession,
    console: Console,
    input_provider: InputProvider,
    *,
    clock: Clock = time.monotonic,
) -> SessionHandoff | None:
    """Drive ``session`` from console input until it is submitted or quit.

    Returns the handoff on submission and ``None`` when the quiz could not be
    found or the user left without submitting.
    """

    if session.phase is SessionPhase.LOADING:
        session.load()
    if session.phase is SessionPhase.NOT_FOUND:
        console.print(
            Panel(NOT_FOUND_MESSAGE, title="Quiz not found", border_style="red")
        )
        return None

    last = clock()
    while True:
        _render_question(console, session)
        try:
            raw = input_provider()
        except (EOFError, KeyboardInterrupt, StopIteration):
            console.print("\n[bold yellow]Session interrupted.[/]")
            return None
        elapsed = int(clock() - last)
        if elapsed > 0:
            session.tick(elapsed)
            last += elapsed
        command = parse_session_command(raw)
        if command is None:
            console.print("[red]Unrecognized command. Try again.[/]")
            continue
        outcome = _apply_command(command, session, console)
        if outcome == "quit":
            return None
        if isinstance(outcome, SessionHandoff):
            render_score_report(console, outcome)
            return outcome


def _apply_command(
    command: SessionCommand,
    session: QuizSession,
    console: Console,
) -> SessionHandoff | Literal["quit"] | None:
    if command.type == "select" and command.index is not None:
        key = option_key(command.index)
        if session.select_option(command.index):
            console.print(f"Selected [bold]{key}[/].")
        elif session.interactive and session.instant_feedback is not None:
            console.print(
                "[yellow]Answer locked. Move on to the next question.[/]"
            )
        else:
            console.print(
                f"[red]'{key}' is not a valid choice for this question.[/red]"
            )
        return None
    if command.type == "next":
        return session.next()
    if command.type == "prev":
        session.prev()
        return None
    if command.type == "goto" and command.index is not None:
        if not session.jump_to(command.index):
            console.print(
                f"[red]No question {command.index + 1}; "
                f"choose 1-{session.total_questions}.[/red]"
            )
        return None
    if command.type == "flag":
        flagged = session.toggle_flag()
        console.print("Flagged for review." if flagged else "Flag removed.")
        return None
    if command.type == "quit":
        console.print("\n[bold yellow]Ending session without submission.[/]")
        return "quit"
    if command.type == "submit":
        return session.submit()
    return None


def render_navigator(session: QuizSession) -> Text:
    text = Text()
    for index, status in enumerate(session.navigator()):
        text.append(f" {index + 1} ", style=_NAV_STYLES[status])
        text.append(" ")
    return text


def _render_question(console: Console, session: QuizSession) -> None:
    question = session.current_question
    header = Text.assemble(
        (f"Question {session.current_index + 1}", "bold cyan"),
        (f" / {session.total_questions}", "dim"),
    )
    console.print()
    console.rule(header)

    clock_style = "bold red" if session.expired else "bold"
    status = Text.assemble(
        ("Time ", "dim"),
        (format_clock(session.time_remaining), clock_style),
    )
    if session.interactive:
        status.append("   Streak ", style="dim")
        status.append(str(session.streak), style="bold magenta")
    console.print(status)
    if session.expired:
        console.print("[bold red]Time is up.[/] Submit when you are ready.")
    console.print(render_navigator(session))

    console.print(Markdown(question.question))

    table = Table(show_header=False, box=box.SIMPLE, expand=True)
    table.add_column("Key", justify="center", style="cyan")
    table.add_column("Choice")
    selected = session.selected_for(question)
    for index, option in enumerate(question.options):
        indicator = "•" if index == selected else " "
        row_text = Text(indicator + " ")
        choice_text = Text(option)
        if index == selected:
            choice_text.stylize("bold green")
        row_text += choice_text
        table.add_row(option_key(index), row_text)
    console.print(table)

    feedback = session.instant_feedback
    if feedback is not None:
        if feedback.correct:
            console.print(Panel("Correct!", border_style="green"))
        else:
            console.print(
                Panel(
                    f"Incorrect. The answer is: {feedback.correct_answer}",
                    border_style="red",
                )
            )

    keys = ", ".join(option_key(i) for i in range(len(question.options)))
    console.print(
        Text(
            f"Answered {session.answered_count()}/{session.total_questions} | "
            f"Commands: choices [{keys}] or a X, n (next), p (prev), f (flag), "
            "g N (go to), submit, quit",
            style="dim",
        )
    )


def render_score_report(console: Console, handoff: SessionHandoff) -> None:
    report = handoff.report
    console.print()
    console.rule(Text("Quiz Summary", style="bold magenta"))

    overview = Table(show_header=False, box=box.MINIMAL_DOUBLE_HEAD)
    overview.add_column("Metric", style="bold")
    overview.add_column("Value", justify="right")
    overview.add_row("Total questions", str(report.total))
    overview.add_row("Answered", str(len(handoff.answers)))
    overview.add_row("Correct", str(report.score))
    overview.add_row(
        "Result saved", "yes" if handoff.result_saved else "no"
    )
    console.print(overview)

    if not report.wrong_answers:
        return
    table = Table(title="Review", box=box.SIMPLE, expand=True)
    table.add_column("Question", overflow="fold")
    table.add_column("Your answer")
    table.add_column("Correct answer")
    for wrong in report.wrong_answers:
        style = "dim" if wrong.user_answer == SKIPPED else "red"
        table.add_row(
            wrong.question,
            Text(wrong.user_answer, style=style),
            Text(wrong.correct_answer, style="green"),
        )
    console.print(table)


def render_analysis(console: Console, analysis: QuizAnalysis) -> None:
    console.print(
        Panel(
            analysis.feedback,
            title=f"Score {analysis.score}/{analysis.total} ({analysis.percentage}%)",
            border_style="green" if analysis.score == analysis.total else "cyan",
        )
    )
    if not analysis.flashcards:
        return
    table = Table(title="Suggested flashcards", box=box.SIMPLE, expand=True)
    table.add_column("#", justify="right")
    table.add_column("Front", overflow="fold")
    table.add_column("Back", overflow="fold")
    for idx, card in enumerate(analysis.flashcards, start=1):
        table.add_row(str(idx), card.front, card.back)
    console.print(table)


def render_quiz_table(console: Console, quizzes: Sequence[Quiz]) -> None:
    if not quizzes:
        console.print("No quizzes found.")
        return
    table = Table(title="Quizzes", box=box.SIMPLE, expand=True)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Title", overflow="fold")
    table.add_column("Topic")
    table.add_column("Difficulty")
    table.add_column("Questions", justify="right")
    table.add_column("Created")
    for quiz in quizzes:
        table.add_row(
            quiz.id,
            quiz.title,
            quiz.topic,
            quiz.difficulty.value,
            str(len(quiz.questions)),
            quiz.created_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


def render_quiz_detail(console: Console, quiz: Quiz) -> None:
    console.rule(Text(quiz.title, style="bold cyan"))
    console.print(
        Text.assemble(
            ("Topic ", "dim"),
            quiz.topic,
            ("   Difficulty ", "dim"),
            quiz.difficulty.value,
            ("   ID ", "dim"),
            quiz.id,
        )
    )
    for position, question in enumerate(quiz.questions, start=1):
        console.print()
        console.print(Text(f"{position}.", style="bold"))
        console.print(Markdown(question.question))
        for index, option in enumerate(question.options):
            style = "bold green" if option == question.answer else ""
            console.print(Text(f"  {option_key(index)}. {option}", style=style))
        if question.explanation:
            console.print(Text(question.explanation, style="dim italic"))


def render_weak_areas(console: Console, areas: Sequence[WeakArea]) -> None:
    if not areas:
        console.print("No weak areas detected. Keep it up!")
        return
    table = Table(title="Focus areas", box=box.SIMPLE, expand=True)
    table.add_column("Topic")
    table.add_column("Accuracy", justify="right")
    table.add_column("Mistakes", justify="right")
    table.add_column("Example mistake", overflow="fold")
    table.add_column("Last quiz", style="cyan", no_wrap=True)
    for area in areas:
        table.add_row(
            area.topic,
            f"{area.accuracy}%",
            str(area.mistake_count),
            area.last_mistake,
            area.last_quiz_id,
        )
    console.print(table)


def render_flashcard_sets(
    console: Console, sets: Sequence[FlashcardSet]
) -> None:
    if not sets:
        console.print("No flashcard sets yet.")
        return
    table = Table(title="Flashcard sets", box=box.SIMPLE, expand=True)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Topic")
    table.add_column("Cards", justify="right")
    table.add_column("Created")
    for item in sets:
        table.add_row(
            item.id,
            item.topic,
            str(len(item.cards)),
            item.created_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


def run_deck_review(
    deck: DeckReview,
    console: Console,
    input_provider: InputProvider,
) -> int:
    """Review cards until the user quits; returns completed laps."""

    if not deck.cards:
        console.print("This flashcard set has no cards.")
        return 0
    while True:
        card = deck.current
        console.print()
        console.rule(
            Text(f"Card {deck.index + 1} / {len(deck.cards)}", style="bold cyan")
        )
        side = card.back if deck.flipped else card.front
        console.print(
            Panel(
                Markdown(side),
                title="Answer" if deck.flipped else "Question",
                border_style="green" if deck.flipped else "cyan",
            )
        )
        console.print(
            Text("Commands: enter/f (flip), n (next), p (prev), quit", style="dim")
        )
        try:
            raw = input_provider()
        except (EOFError, KeyboardInterrupt, StopIteration):
            console.print("\n[bold yellow]Review interrupted.[/]")
            return deck.laps
        lowered = (raw or "").strip().lower()
        if lowered in {"", "f", "flip"}:
            deck.flip()
        elif lowered in {"n", "next"}:
            if deck.next():
                console.print(f"[bold green]{DECK_COMPLETE_MESSAGE}[/]")
        elif lowered in {"p", "prev", "previous"}:
            deck.prev()
        elif lowered in {"q", "quit", "exit"}:
            return deck.laps
        else:
            console.print("[red]Unrecognized command. Try again.[/]")
