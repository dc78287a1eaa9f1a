"""CLI for the Dispatcher.

Provides a command-line shell for routing coding requests to tools,
inspecting routing decisions, and reviewing tracked sessions.
"""

import asyncio
import json
import logging
import sys

import click
from rich.console import Console
from rich.table import Table

from dispatcher.config import DispatcherConfig
from dispatcher.dispatcher import Dispatcher, DispatchOutcome
from dispatcher.errors import DispatchError
from dispatcher.models import StreamEvent, TaskAnalysis, TaskRequest
from dispatcher.sessions import SessionManager
from dispatcher.telemetry import create_metrics, setup_telemetry

console = Console()

STATUS_COLORS = {"active": "yellow", "completed": "green", "failed": "red"}


@click.group()
@click.version_option(package_name="vibe-dispatcher")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Dispatcher - Route coding tasks to the best available tool."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _print_analysis(analysis: TaskAnalysis) -> None:
    console.print(f"[bold]Task type:[/bold] {analysis.task_type.value}")
    console.print(f"[bold]Complexity:[/bold] {analysis.complexity}/10")
    console.print(
        f"[bold]Suggested tool:[/bold] {analysis.suggested_tool} "
        f"(confidence {analysis.confidence:.0%})"
    )
    console.print(f"[bold]Reasoning:[/bold] {analysis.reasoning}")
    if analysis.affected_files:
        console.print(f"[bold]Files:[/bold] {', '.join(analysis.affected_files)}")


@cli.command()
@click.argument("prompt", nargs=-1, required=True)
@click.option("--dir", "-d", "directory", default=".", help="Project directory")
@click.option("--tool", "-t", default=None, help="Force a specific tool")
@click.option("--explain", is_flag=True, help="Show the routing analysis first")
@click.option("--stream", is_flag=True, help="Stream tool output as it arrives")
@click.option("--json", "as_json", is_flag=True, help="Print the outcome as JSON")
def run(
    prompt: tuple[str, ...],
    directory: str,
    tool: str | None,
    explain: bool,
    stream: bool,
    as_json: bool,
) -> None:
    """Run a coding task on the best available tool."""
    outcome = asyncio.run(
        _run(" ".join(prompt), directory, tool, explain, stream, as_json)
    )
    sys.exit(0 if outcome and outcome.result.success else 1)


async def _run(
    prompt: str,
    directory: str,
    tool: str | None,
    explain: bool,
    stream: bool,
    as_json: bool,
) -> DispatchOutcome | None:
    """Internal async implementation of the run command."""
    config = DispatcherConfig.from_env()
    tracer, meter = setup_telemetry(config)
    create_metrics(meter)

    sessions = SessionManager.load(config.state_dir)
    dispatcher = Dispatcher(config, sessions, tracer=tracer)
    request = TaskRequest.create(prompt, directory, stream=stream)

    if explain and not as_json:
        _print_analysis(dispatcher.explain(prompt, directory))
        console.print()

    try:
        if stream:
            outcome = await dispatcher.dispatch_stream(
                request, _print_event, tool=tool
            )
        else:
            outcome = await dispatcher.dispatch(request, tool=tool)
    except DispatchError as e:
        console.print(f"[red]Error:[/red] {e}")
        return None
    finally:
        sessions.save(config.state_dir)

    if as_json:
        click.echo(json.dumps(outcome.to_dict(), indent=2))
    elif not stream:
        result = outcome.result
        if result.output:
            console.print(result.output, markup=False, highlight=False)
        if not result.success:
            console.print(f"[red]Error:[/red] {result.error}")

    return outcome


def _print_event(event: StreamEvent) -> None:
    if event.type == "routing":
        console.print(
            f"[dim]-> {event.data['tool']} (session {event.data['sessionId']})[/dim]"
        )
    elif event.type == "output":
        console.print(event.data["content"], end="", markup=False, highlight=False)
    elif event.type == "error":
        console.print(f"\n[red]Error:[/red] {event.data['error']}")
    else:
        console.print(f"\n[green]Done[/green] ({event.data['status']})")


@cli.command()
@click.argument("prompt", nargs=-1, required=True)
@click.option("--dir", "-d", "directory", default=None, help="Project directory")
@click.option("--json", "as_json", is_flag=True, help="Print the analysis as JSON")
def explain(prompt: tuple[str, ...], directory: str | None, as_json: bool) -> None:
    """Show which tool a task would be routed to, without running it."""
    dispatcher = Dispatcher(DispatcherConfig.from_env())
    analysis = dispatcher.explain(" ".join(prompt), directory)

    if as_json:
        click.echo(json.dumps(analysis.to_dict(), indent=2))
    else:
        _print_analysis(analysis)


@cli.command()
@click.option("--probe/--no-probe", default=True, help="Check tool availability")
def tools(probe: bool) -> None:
    """List configured tools and their capabilities."""
    config = DispatcherConfig.from_env()
    dispatcher = Dispatcher(config)
    available = asyncio.run(dispatcher.availability()) if probe else {}

    for problem in config.validate():
        console.print(f"[yellow]Warning:[/yellow] {problem}")

    table = Table(title="Tools")
    table.add_column("Tool")
    table.add_column("Priority", justify="right")
    table.add_column("Enabled")
    table.add_column("Strengths")
    table.add_column("Complexity")
    if probe:
        table.add_column("Available")

    for tool in sorted(config.tools, key=lambda t: t.priority):
        capability = dispatcher.capability(tool.name)
        row = [
            tool.name,
            str(tool.priority),
            "yes" if tool.enabled else "no",
            ", ".join(s.value for s in capability.strengths) or "-",
            capability.complexity,
        ]
        if probe:
            row.append("[green]yes[/green]" if available.get(tool.name) else "[red]no[/red]")
        table.add_row(*row)

    console.print(table)


@cli.command()
@click.option("--tool", "-t", default=None, help="Only show sessions for this tool")
@click.option("--stats", is_flag=True, help="Show counts instead of sessions")
@click.option(
    "--cleanup",
    type=float,
    default=None,
    help="Remove finished sessions older than this many seconds",
)
def sessions(tool: str | None, stats: bool, cleanup: float | None) -> None:
    """List tracked sessions."""
    config = DispatcherConfig.from_env()
    manager = SessionManager.load(config.state_dir)

    if cleanup is not None:
        removed = manager.cleanup(cleanup)
        manager.save(config.state_dir)
        console.print(f"Removed {removed} session(s)")

    if stats:
        click.echo(json.dumps(manager.get_stats(), indent=2))
        return

    records = manager.get_by_tool(tool) if tool else manager.get_all()
    if not records:
        console.print("[yellow]No sessions found[/yellow]")
        return

    records.sort(key=lambda s: s.start_time, reverse=True)

    table = Table(title="Sessions")
    table.add_column("Session")
    table.add_column("Tool")
    table.add_column("Started")
    table.add_column("Status")
    table.add_column("Messages", justify="right")

    for session in records:
        color = STATUS_COLORS[session.status]
        table.add_row(
            session.id,
            session.tool,
            session.start_time.strftime("%Y-%m-%d %H:%M"),
            f"[{color}]{session.status}[/{color}]",
            str(len(session.messages)),
        )

    console.print(table)


def main() -> None:
    """Main entry point for the dispatcher CLI."""
    cli()


if __name__ == "__main__":
    main()
