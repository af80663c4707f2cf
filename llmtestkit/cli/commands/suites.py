"""Saved test suite commands for LLM Test Kit."""

import asyncio
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from llmtestkit.core.testkit_core.runner.engine import BROWSERS, PlaywrightEngine
from llmtestkit.core.testkit_core.runner.runner import TestRunner
from llmtestkit.core.testkit_core.suites.models import ExecutionStatus, TestSuite
from llmtestkit.core.testkit_core.suites.store import ExecutionStore, SuiteStore

from .core import get_data_dir, print_code, print_commands

console = Console()

suites_app = typer.Typer(help="Manage and run saved test suites")


def get_suite_or_exit(store: SuiteStore, version: int) -> TestSuite:
    suite = store.get_by_version(version)
    if suite is None:
        console.print(f"❌ Test suite v{version} not found", style="red")
        raise typer.Exit(1)
    return suite


@suites_app.command(name="list")
def list_suites(
    limit: int = typer.Option(20, "--limit", "-l", help="Maximum number of suites to show"),
) -> None:
    """List saved test suites, newest first."""
    suites = SuiteStore(get_data_dir()).list(limit=limit)

    if not suites:
        console.print("📂 No test suites found", style="dim")
        console.print("💡 Try: llmtestkit chat \"...\" --save \"My test\"", style="dim")
        return

    table = Table(title="📂 Test Suites", show_header=True, header_style="bold cyan")
    table.add_column("Version", justify="right", style="bold")
    table.add_column("Name")
    table.add_column("Commands", justify="right")
    table.add_column("Model", style="dim")
    table.add_column("Created", style="dim")

    for suite in suites:
        table.add_row(
            f"v{suite.version}",
            suite.name,
            str(len(suite.commands)),
            f"{suite.llm_provider}/{suite.llm_model}",
            suite.created_at.strftime("%Y-%m-%d %H:%M"),
        )

    console.print(table)


@suites_app.command()
def show(version: int, code: bool = typer.Option(True, "--code/--no-code", help="Show generated code")) -> None:
    """Show a saved test suite."""
    suite = get_suite_or_exit(SuiteStore(get_data_dir()), version)

    details = f"[bold]{suite.name}[/bold]\n"
    if suite.description:
        details += f"{suite.description}\n"
    details += f"\n[dim]Request:[/dim] {suite.nlp_input}"
    details += f"\n[dim]Model:[/dim] {suite.llm_provider}/{suite.llm_model}"
    details += f"\n[dim]Updated:[/dim] {suite.updated_at.strftime('%Y-%m-%d %H:%M')}"
    console.print(Panel(details, title=f"🧪 Test Suite v{suite.version}", border_style="blue"))

    if suite.commands:
        print_commands(suite.commands)
    if code:
        print_code(suite.generated_code)

    executions = ExecutionStore(get_data_dir()).list_for_suite(suite.id)
    if executions:
        last = executions[0]
        style = "green" if last.status == ExecutionStatus.PASSED else "red"
        console.print(f"Last run: {last.status.value} ({last.duration_ms}ms)", style=style)


@suites_app.command()
def rename(
    version: int,
    name: str,
    description: Optional[str] = typer.Option(None, "--description", "-d", help="New description"),
) -> None:
    """Rename a saved test suite (its version is unchanged)."""
    store = SuiteStore(get_data_dir())
    suite = get_suite_or_exit(store, version)
    store.update(suite.id, name=name, description=description)
    console.print(f"✓ Updated test suite v{version}: [bold]{name}[/bold]", style="green")


@suites_app.command()
def delete(version: int, yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation")) -> None:
    """Delete a saved test suite."""
    store = SuiteStore(get_data_dir())
    suite = get_suite_or_exit(store, version)

    if not yes and not typer.confirm(f"Delete test suite v{version} ({suite.name})?"):
        console.print("Cancelled", style="dim")
        return

    store.delete(suite.id)
    console.print(f"✓ Deleted test suite v{version}", style="green")


@suites_app.command()
def run(
    version: int,
    browser: str = typer.Option("chromium", "--browser", "-b", help=f"Browser: {', '.join(BROWSERS)}"),
    headed: bool = typer.Option(False, "--headed", help="Show the browser window"),
) -> None:
    """Replay a saved test suite in a real browser."""
    data_dir = get_data_dir()
    suite = get_suite_or_exit(SuiteStore(data_dir), version)

    if browser not in BROWSERS:
        console.print(f"❌ Unsupported browser: {browser}", style="red")
        raise typer.Exit(1)

    runner = TestRunner(
        executions=ExecutionStore(data_dir),
        screenshot_dir=data_dir / "screenshots",
        engine_factory=lambda: PlaywrightEngine(browser=browser, headless=not headed),
    )

    console.print(f"▶ Running v{suite.version}: {suite.name} ({browser})", style="bold blue")
    execution = asyncio.run(runner.run(suite))

    if execution.status == ExecutionStatus.PASSED:
        console.print(f"✅ Passed in {execution.duration_ms}ms", style="green")
    elif execution.status == ExecutionStatus.SKIPPED:
        console.print(f"⏭ Skipped: {execution.error}", style="yellow")
    else:
        console.print(f"❌ Failed: {execution.error}", style="red")

    for path in execution.screenshots:
        console.print(f"  📸 {path}", style="dim")

    if execution.status == ExecutionStatus.FAILED:
        raise typer.Exit(1)
