"""Roadmapper CLI — main entry point."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from contextlib import nullcontext
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler

from roadmapper import __version__
from roadmapper.ai.credentials import CredentialContext, FileCredentialStore, is_valid_api_key
from roadmapper.config import ConfigError, RoadmapperConfig, load_config
from roadmapper.parsing.analysis import ProjectAnalysisParser
from roadmapper.parsing.tasks import TaskExtractor
from roadmapper.prompts import list_templates, template_variables
from roadmapper.service import PlannerService
from roadmapper.tui.panels import format_usage, print_config, print_error, print_header, print_plan

console = Console()


def _load(config_path: str | None) -> RoadmapperConfig:
    try:
        return load_config(config_path)
    except ConfigError as e:
        console.print(f"[red]{e}[/]")
        sys.exit(2)


# ─── CLI Group ────────────────────────────────────────────────


@click.group(invoke_without_command=True)
@click.option("--version", is_flag=True, help="Show version")
@click.option("--verbose", "-v", is_flag=True, help="Log requests and parsing details")
@click.pass_context
def main(ctx: click.Context, version: bool, verbose: bool) -> None:
    """🗺  Roadmapper — turn a project idea into a phased plan.

    \b
    Commands:
      analyze   — Ask the model for a plan and parse it
      parse     — Parse a saved model response, no network
      set-key   — Store your Gemini API key
      config    — Show configuration
      templates — List prompt templates
    """
    if version:
        click.echo(f"roadmapper v{__version__}")
        return

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=console, show_path=False)],
        )

    if ctx.invoked_subcommand is None:
        print_header()
        click.echo(ctx.get_help())


# ─── ANALYZE ──────────────────────────────────────────────────


@main.command()
@click.argument("idea")
@click.option("--context", "-x", "context", help="Additional context for the model")
@click.option("--tasks", "-t", "with_tasks", is_flag=True, help="Also break every phase into tasks")
@click.option("--json", "as_json", is_flag=True, help="Print the plan as JSON")
@click.option("--config", "-c", "config_path", help="Path to roadmapper.yaml")
def analyze(
    idea: str,
    context: str | None,
    with_tasks: bool,
    as_json: bool,
    config_path: str | None,
) -> None:
    """Generate a project plan from an idea.

    \b
    Examples:
      roadmapper analyze "A habit tracker with streaks and reminders"
      roadmapper analyze "Recipe sharing site" -x "Solo developer, evenings only" --tasks
      roadmapper analyze "CLI budget tool" --json > plan.json
    """
    cfg = _load(config_path)
    service = PlannerService.from_config(cfg)

    if not as_json:
        print_header()
        console.print(f"[dim]💬 Idea: {idea[:100]}{'...' if len(idea) > 100 else ''}[/]")
        console.print(f"[dim]🤖 Model: {cfg.api.model}[/]\n")

    def on_progress(phase_id: str, status: str) -> None:
        if as_json:
            return
        icon = {"running": "🔄", "done": "✅", "failed": "❌"}.get(status, "❓")
        console.print(f"  {icon} [bold]{phase_id}[/] — {status}")

    async def run():
        try:
            outcome = await service.plan_project(idea, context)
            if not outcome.is_success or not with_tasks:
                return outcome, {}
            expansion = await service.expand_tasks(outcome.plan, on_progress=on_progress)
            outcome.plan = expansion.plan
            return outcome, expansion.failures
        finally:
            await service.aclose()

    with console.status("[bold]Generating plan...[/]", spinner="dots") if not as_json else nullcontext():
        outcome, failures = asyncio.run(run())

    if not outcome.is_success:
        print_error(outcome.result.error)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(outcome.plan.to_dict(), indent=2))
        return

    print_plan(outcome.plan, show_tasks=with_tasks)
    console.print(f"[dim]🪙 Analysis tokens: {format_usage(outcome.result.usage)}[/]")
    for phase_id, error in failures.items():
        console.print(f"[yellow]⚠ {phase_id}: {error.user_message}[/]")


# ─── PARSE ────────────────────────────────────────────────────


@main.command()
@click.argument("response_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--phase-tasks", "phase_id", default=None,
              help="Parse the file as a task breakdown for this phase id")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
def parse(response_file: str, phase_id: str | None, as_json: bool) -> None:
    """Parse a saved model response without calling the API.

    \b
    Examples:
      roadmapper parse response.txt
      roadmapper parse breakdown.txt --phase-tasks phase-2
    """
    content = Path(response_file).read_text()

    if phase_id:
        tasks = TaskExtractor().extract(content, phase_id)
        if as_json:
            click.echo(json.dumps([t.to_dict() for t in tasks], indent=2))
            return
        for task in tasks:
            console.print(f"  [bold]{task.id}[/] {task.title}")
        console.print(f"[dim]{len(tasks)} task(s)[/]")
        return

    plan = ProjectAnalysisParser().parse(content)
    if plan is None:
        console.print("[red]Could not parse the response.[/]")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(plan.to_dict(), indent=2))
        return
    print_plan(plan)


# ─── SET-KEY ──────────────────────────────────────────────────


@main.command(name="set-key")
@click.argument("api_key")
@click.option("--config", "-c", "config_path", help="Path to roadmapper.yaml")
def set_key(api_key: str, config_path: str | None) -> None:
    """Store the Gemini API key used for generation."""
    if not is_valid_api_key(api_key):
        console.print("[red]That does not look like a Gemini API key.[/]")
        sys.exit(1)

    cfg = _load(config_path)
    store = FileCredentialStore(cfg.credentials.path)
    try:
        store.set(api_key)
    except OSError as e:
        console.print(f"[red]Failed to save API key: {e}[/]")
        sys.exit(1)
    console.print(f"[green]API key saved to {store.path}[/]")


# ─── CONFIG ───────────────────────────────────────────────────


@main.command()
@click.option("--config", "-c", "config_path", help="Path to roadmapper.yaml")
def config(config_path: str | None) -> None:
    """Show current configuration and API key status."""
    print_header()
    cfg = _load(config_path)
    credentials = CredentialContext.load(
        FileCredentialStore(cfg.credentials.path),
        use_env=cfg.credentials.use_env,
    )
    print_config(cfg, credentials.has_credential)


# ─── TEMPLATES ────────────────────────────────────────────────


@main.command()
def templates() -> None:
    """List the prompt templates and their variables."""
    for template_id, desc in list_templates():
        variables = ", ".join(template_variables(template_id))
        console.print(f"  [bold]{template_id:20}[/] {desc}")
        console.print(f"  [dim]{'':20} variables: {variables}[/]")


if __name__ == "__main__":
    main()
