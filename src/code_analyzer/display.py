# display.py
# All terminal output for the agent.
#
# This module owns presentation entirely. agent.py and registry.py never
# format strings; they call named functions here. Swap this file to change
# the entire UI.
#
# Colour language:
#   cyan: loop routing / planning
#   blue: oracle calls
#   yellow: operator checkpoints and warnings
#   green: success / completion
#   red: failures and halts
#   magenta: Thought / Action / Observation

import json

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from code_analyzer.models import RankedFile, TurnRecord

console = Console()

_debug_enabled = False

_INFO_STYLES = {
    "info": ("blue", "ℹ"),
    "success": ("green", "✓"),
    "warning": ("yellow", "⚠"),
    "error": ("red", "✗"),
    "debug": ("cyan", "…"),
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _label(tag: str, color: str) -> Text:
    t = Text()
    t.append(f" {tag} ", style=f"bold white on {color}")
    return t


def _mono(value: str, max_len: int = 120) -> str:
    if len(value) > max_len:
        return value[:max_len] + "…"
    return value


def set_debug(enabled: bool) -> None:
    global _debug_enabled
    _debug_enabled = enabled


def debug(message: str) -> None:
    if _debug_enabled:
        console.print(f"[dim cyan]  debug[/dim cyan] [dim]{escape(message)}[/dim]", highlight=False)


# ---------------------------------------------------------------------------
# Session entry
# ---------------------------------------------------------------------------


def banner(provider: str, model: str, max_turns: int) -> None:
    console.print()
    console.print(
        Panel.fit(
            "[bold cyan]Autonomous Code Analyzer[/bold cyan]\n"
            "[dim]Plan → Thought → Action → Observation → Summary[/dim]\n\n"
            f"[dim]Provider  :[/dim] [white]{provider}[/white]\n"
            f"[dim]Model     :[/dim] [white]{model}[/white]\n"
            f"[dim]Max turns :[/dim] [white]{max_turns}[/white]",
            border_style="cyan",
            padding=(1, 4),
        )
    )


def goal_received(goal: str, follow_up: bool = False) -> None:
    console.print()
    console.print(Rule("[cyan]FOLLOW-UP GOAL[/cyan]" if follow_up else "[cyan]NEW GOAL[/cyan]", style="cyan"))
    console.print(
        Panel(
            f"[white]{escape(goal)}[/white]",
            title=_label("GOAL", "cyan"),
            border_style="cyan",
            padding=(0, 2),
        )
    )


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------


def planning_start() -> None:
    console.print()
    console.print(_label("AGENT", "cyan"), "[cyan] → Asking oracle for an execution plan…[/cyan]")


def plan_created(plan: str) -> None:
    console.print()
    console.print(
        Panel(
            f"[white]{escape(plan)}[/white]",
            title=_label("EXECUTION PLAN", "cyan"),
            border_style="cyan",
            padding=(0, 2),
        )
    )


# ---------------------------------------------------------------------------
# Loop
# ---------------------------------------------------------------------------


def turn_start(turn: int, max_turns: int) -> None:
    console.print()
    console.print(f"[bold cyan]  TURN [{turn}/{max_turns}][/bold cyan]")


def thought(text: str, done: bool) -> None:
    marker = " [bold green](plan finished)[/bold green]" if done else ""
    console.print(f"  [magenta]Thought[/magenta]  [dim white]{escape(_mono(text, 300))}[/dim white]{marker}")


def action(tool: str, args: dict) -> None:
    console.print(
        f"  [magenta]Action[/magenta]   [bold white]{tool}[/bold white]"
        f"  [dim]{escape(_mono(json.dumps(args, default=str), 200))}[/dim]"
    )


def observation(text: str) -> None:
    console.print(f"  [magenta]Observe[/magenta]  [white]{escape(_mono(text, 200))}[/white]", highlight=False)


def tool_status(line: str) -> None:
    console.print(f"  [dim]-- {escape(line)}[/dim]")


def no_action() -> None:
    console.print(
        _label("AGENT", "cyan"),
        "[cyan] Oracle returned no tool call, treating the plan as complete.[/cyan]",
    )


def max_turns_reached(limit: int) -> None:
    console.print()
    console.print(
        Panel(
            f"[bold yellow]Turn limit of {limit} reached.[/bold yellow]\n"
            "[dim]Stopping the loop and summarizing progress so far.[/dim]",
            title=_label("TURN LIMIT", "yellow"),
            border_style="yellow",
            padding=(0, 2),
        )
    )


# ---------------------------------------------------------------------------
# Dispatcher events
# ---------------------------------------------------------------------------


def tool_not_found(tool_name: str) -> None:
    console.print(
        Panel(
            f"[bold red]Tool [white]{tool_name!r}[/white] is not registered.[/bold red]\n"
            "[dim]Oracle requested an action outside the manifest. Nothing was executed.[/dim]",
            title=_label("TOOL NOT FOUND ✗", "red"),
            border_style="red",
            padding=(0, 2),
        )
    )


def tool_invalid_arguments(tool_name: str, summary: str) -> None:
    console.print(
        f"  [red]✗ Invalid arguments for[/red] [bold white]{tool_name}[/bold white]"
        f"  [dim]{escape(_mono(summary, 160))}[/dim]"
    )


def tool_declined(tool_name: str) -> None:
    console.print(f"  [yellow]⊘ Operator declined[/yellow] [bold white]{tool_name}[/bold white]")


def tool_failed(tool_name: str, message: str) -> None:
    console.print(
        f"  [red]✗ {tool_name} failed[/red]  [dim]{escape(_mono(message, 160))}[/dim]", highlight=False
    )


def confirm_action(tool_name: str, args: dict) -> bool:
    """Operator approval for side-effecting tools. Defaults to no."""
    console.print()
    console.print(
        Panel(
            f"[bold white]{tool_name}[/bold white]\n[dim]{escape(json.dumps(args, indent=2, default=str))}[/dim]",
            title=_label("CONFIRMATION REQUIRED", "yellow"),
            border_style="yellow",
            padding=(0, 2),
        )
    )
    return Confirm.ask(f"[yellow]Allow {tool_name}?[/yellow]", default=False, console=console)


# ---------------------------------------------------------------------------
# Interactive tools
# ---------------------------------------------------------------------------


def show_info(message: str, kind: str = "info") -> None:
    color, prefix = _INFO_STYLES.get(kind.lower(), ("white", "ℹ"))
    console.print(f"[{color}]{prefix} {escape(message)}[/{color}]", highlight=False)


def ask_user(
    question: str,
    input_type: str = "input",
    default: str | None = None,
    choices: list[str] | None = None,
) -> str | bool:
    if input_type == "confirm":
        return Confirm.ask(question, default=(default or "").lower() in {"y", "yes", "true", "1"}, console=console)
    if input_type == "password":
        return Prompt.ask(question, password=True, console=console)
    if input_type == "list" and choices:
        return Prompt.ask(question, choices=choices, default=default, console=console)
    return Prompt.ask(question, default=default, console=console)


def prompt_goal(follow_up: bool = False) -> str:
    label = "Follow-up goal (empty to exit)" if follow_up else "Goal"
    return Prompt.ask(f"[bold green]{label}[/bold green]", default="", console=console).strip()


# ---------------------------------------------------------------------------
# Search pipeline
# ---------------------------------------------------------------------------


def search_patterns(patterns: list[str]) -> None:
    console.print(f"  [blue]Search patterns[/blue]  [dim]{escape(json.dumps(patterns))}[/dim]")


def ranked_files(ranked: list[RankedFile]) -> None:
    table = Table(box=box.SIMPLE, show_header=True, header_style="bold cyan", padding=(0, 1))
    table.add_column("File", style="white")
    table.add_column("Score", justify="right", width=8)
    table.add_column("Patterns", justify="right", width=9)
    table.add_column("Matches", justify="right", width=8)
    for entry in ranked:
        table.add_row(escape(entry.file), f"{entry.score:.3f}", str(entry.pattern_matches), str(entry.total_matches))
    console.print(table)


def chunks_extracted(count: int, fallback: bool) -> None:
    note = " [yellow](no matches, whole-file fallback)[/yellow]" if fallback else ""
    console.print(f"  [cyan]Extracted {count} code chunk(s) for analysis[/cyan]{note}")


# ---------------------------------------------------------------------------
# Completion
# ---------------------------------------------------------------------------


def summarizing_start() -> None:
    console.print()
    console.print(Rule("[cyan]SUMMARY[/cyan]", style="cyan"))


def execution_summary(turns: list[TurnRecord]) -> None:
    if not turns:
        return
    console.print()
    table = Table(
        box=box.SIMPLE_HEAVY,
        border_style="dim",
        show_header=True,
        header_style="bold dim",
        padding=(0, 1),
    )
    table.add_column("Turn", justify="center", width=6)
    table.add_column("Tool", width=20)
    table.add_column("Observation", style="dim white")

    for record in turns:
        table.add_row(str(record.turn), record.action.name, escape(_mono(record.observation, 60)))

    console.print(
        Panel(
            table,
            title="[dim]EXECUTION TRACE[/dim]",
            border_style="dim",
            padding=(0, 1),
        )
    )


def final_result(result: str) -> None:
    console.print()
    console.print(
        Panel(
            f"[white]{escape(result)}[/white]",
            title=_label("RESULT", "green"),
            border_style="green",
            padding=(1, 2),
        )
    )
    console.print()


def error(stage: str, message: str) -> None:
    console.print()
    console.print(
        Panel(
            f"[bold white]{escape(message)}[/bold white]",
            title=_label(f"FAILED DURING {stage.upper()}", "red"),
            border_style="red",
            padding=(0, 2),
        )
    )
    console.print()
