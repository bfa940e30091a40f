"""Rich panels for plans, phases and generation errors."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from roadmapper import __version__

if TYPE_CHECKING:
    from roadmapper.ai.base import GenerationError, TokenUsage
    from roadmapper.config import RoadmapperConfig
    from roadmapper.models import PartialProjectPlan, Phase

console = Console()

COMPLEXITY_COLORS: dict[str, str] = {
    "low": "green",
    "medium": "yellow",
    "high": "red",
}

PRIORITY_ICONS: dict[str, str] = {
    "low": "▫",
    "medium": "▪",
    "high": "▲",
}


def format_days(days: int) -> str:
    if days % 30 == 0 and days >= 30:
        months = days // 30
        return f"{days}d (~{months} month{'s' if months > 1 else ''})"
    if days % 7 == 0 and days >= 7:
        weeks = days // 7
        return f"{days}d (~{weeks} week{'s' if weeks > 1 else ''})"
    return f"{days}d"


def format_usage(usage: TokenUsage) -> str:
    if not usage.total_tokens:
        return "—"
    return f"↓{usage.prompt_tokens:,} ↑{usage.completion_tokens:,} ({usage.total_tokens:,} total)"


def make_plan_panel(plan: PartialProjectPlan) -> Panel:
    """Create a panel with the plan's headline fields."""
    ai = plan.ai_generated
    color = COMPLEXITY_COLORS.get(ai.complexity.value, "white")

    body = Text()
    if plan.description:
        body.append(plan.description + "\n\n")
    body.append("Duration:   ", style="dim")
    body.append(format_days(ai.estimated_duration_days) + "\n")
    body.append("Complexity: ", style="dim")
    body.append(ai.complexity.value + "\n", style=f"bold {color}")
    body.append("Phases:     ", style="dim")
    body.append(str(len(ai.roadmap)))

    return Panel(
        body,
        title=Text(f"🗺  {plan.title}", style="bold bright_cyan"),
        subtitle=Text(plan.status.value, style="dim"),
        border_style="bright_cyan",
        padding=(1, 2),
    )


def make_roadmap_table(phases: tuple[Phase, ...]) -> Table:
    """Create a table listing phases in order."""
    table = Table(
        title="📋 Roadmap",
        show_header=True,
        header_style="bold bright_white",
        border_style="bright_black",
        padding=(0, 1),
    )
    table.add_column("#", justify="right", style="dim", min_width=3)
    table.add_column("Phase", style="bold", min_width=20)
    table.add_column("Duration", justify="right", min_width=8)
    table.add_column("After", style="dim", min_width=8)
    table.add_column("Tasks", justify="right", min_width=5)

    for phase in phases:
        table.add_row(
            str(phase.order + 1),
            phase.title,
            format_days(phase.estimated_duration_days),
            ", ".join(phase.prerequisites) or "—",
            str(len(phase.tasks)) if phase.tasks else "—",
        )
    return table


def make_tasks_table(phase: Phase) -> Table:
    table = Table(
        title=f"{phase.title}",
        show_header=True,
        header_style="bold",
        border_style="bright_black",
    )
    table.add_column("Task", style="bold", min_width=24)
    table.add_column("Priority", justify="center", min_width=8)
    table.add_column("Hours", justify="right", min_width=5)
    table.add_column("Status", style="dim", min_width=6)

    for task in phase.tasks:
        icon = PRIORITY_ICONS.get(task.priority.value, "")
        table.add_row(
            task.title,
            f"{icon} {task.priority.value}",
            str(task.estimated_hours),
            task.status.value,
        )
    return table


# ─── Display Functions ────────────────────────────────────────


def print_header() -> None:
    console.print(f"[bold bright_cyan]🗺  Roadmapper[/] [dim]v{__version__}[/]\n")


def print_plan(plan: PartialProjectPlan, show_tasks: bool = False) -> None:
    """Print a plan: headline panel, roadmap table and optionally tasks."""
    console.print(make_plan_panel(plan))
    if plan.roadmap:
        console.print(make_roadmap_table(plan.roadmap))
    else:
        console.print("[yellow]No phases found in the response.[/]")

    if show_tasks:
        for phase in plan.roadmap:
            if phase.tasks:
                console.print(make_tasks_table(phase))
            else:
                console.print(f"[dim]{phase.title}: no tasks[/]")


def print_error(error: GenerationError) -> None:
    console.print(Panel(
        error.user_message,
        title=Text(f"❌ {error.kind.value}", style="bold red"),
        border_style="red",
    ))


def print_config(cfg: RoadmapperConfig, has_credential: bool) -> None:
    table = Table(
        title="🔧 Configuration",
        show_header=True,
        header_style="bold",
        border_style="bright_black",
    )
    table.add_column("Setting", style="bold", min_width=16)
    table.add_column("Value", min_width=30)

    table.add_row("Model", cfg.api.model)
    table.add_row("Endpoint", cfg.api.base_url)
    table.add_row("Transport", cfg.api.transport)
    table.add_row("Timeout", f"{cfg.api.timeout:g}s")
    table.add_row("Retry", f"{cfg.retry.max_attempts} attempts, {cfg.retry.delay:g}s delay")
    table.add_row("Max parallel", str(cfg.global_.max_parallel))
    table.add_row("API key", "✅ configured" if has_credential else "❌ missing")
    for operation, sampling in cfg.sampling.items():
        table.add_row(
            f"Sampling: {operation}",
            f"temp {sampling.temperature:g} · max {sampling.max_output_tokens} · top_p {sampling.top_p:g}",
        )
    console.print(table)
