"""Generation, provider and cost commands for LLM Test Kit."""

import asyncio
import os
from pathlib import Path
from typing import List, Optional, Sequence

import typer
from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from llmtestkit.core.testkit_core.chat.store import ChatStore
from llmtestkit.core.testkit_core.commands.models import Command, Questionnaire
from llmtestkit.core.testkit_core.errors import TestKitError
from llmtestkit.core.testkit_core.llm.config import load_adapter_config
from llmtestkit.core.testkit_core.llm.usage_tracker import CostLedger
from llmtestkit.core.testkit_core.pipeline import NLPPipeline, describe_failure
from llmtestkit.core.testkit_core.suites.store import SuiteStore

console = Console()


def get_data_dir() -> Path:
    """Data directory: ``LLMTESTKIT_DATA_DIR`` or ``./data``."""
    return Path(os.environ.get("LLMTESTKIT_DATA_DIR", "data"))


def build_pipeline() -> NLPPipeline:
    """Load provider configuration and build the pipeline, exiting on config errors."""
    try:
        config = load_adapter_config()
        return NLPPipeline.from_config(config, get_data_dir())
    except TestKitError as e:
        console.print(f"❌ {describe_failure(e)}", style="red")
        raise typer.Exit(1)


def fail(exc: Exception) -> None:
    console.print(f"❌ {describe_failure(exc)}", style="red")
    raise typer.Exit(1)


def print_commands(commands: Sequence[Command]) -> None:
    table = Table(title="🧪 Test Commands", show_header=True, header_style="bold cyan")
    table.add_column("#", style="dim", width=3)
    table.add_column("Type", style="bold")
    table.add_column("Selector")
    table.add_column("Value")
    table.add_column("Description", style="dim")

    for i, command in enumerate(commands, 1):
        table.add_row(
            str(i),
            command.type,
            command.selector or "",
            command.value or "",
            command.description or "",
        )

    console.print(table)


def print_questionnaire(questionnaire: Questionnaire) -> None:
    lines: List[str] = []
    for i, question in enumerate(questionnaire.questions, 1):
        required = " [red]*[/red]" if question.required else ""
        lines.append(f"[bold]{i}. {question.text}[/bold]{required}")
        if question.options:
            for option in question.options:
                lines.append(f"   • {option.label} [dim]({option.value})[/dim]")
        elif question.placeholder:
            lines.append(f"   [dim]e.g. {question.placeholder}[/dim]")

    body = questionnaire.message
    if lines:
        body += "\n\n" + "\n".join(lines)

    console.print(Panel(body, title="❓ More details needed", border_style="yellow"))


def print_code(code: str) -> None:
    console.print(Panel(Syntax(code, "python", theme="ansi_dark"), title="📄 Generated Code", border_style="green"))


def chat(
    message: str,
    session: Optional[str] = typer.Option(None, "--session", "-s", help="Continue an existing chat session"),
    save: Optional[str] = typer.Option(None, "--save", help="Save the generated test as a suite with this name"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write generated code to a file"),
) -> None:
    """Turn a natural-language request into Playwright test steps."""

    async def run_chat():
        pipeline = build_pipeline()
        try:
            return await pipeline.chat(message, session_id=session)
        finally:
            await pipeline.aclose()

    try:
        reply = asyncio.run(run_chat())
    except (TestKitError, ValueError) as e:
        fail(e)

    result = reply.result
    console.print(f"💬 Session: {reply.session_id}", style="dim")

    if reply.is_clarification:
        print_questionnaire(reply.questionnaire)
        console.print(f"💡 Reply with: llmtestkit chat --session {reply.session_id} \"...\"", style="dim")
        return

    console.print(f"✓ {reply.content}", style="green")
    print_commands(reply.commands)
    print_code(reply.generated_code)
    console.print(
        f"🧠 {result.provider} ({result.model}) • {result.tokens_used or 0} tokens • ${result.cost or 0:.6f}",
        style="dim",
    )

    if output:
        output.write_text(reply.generated_code)
        console.print(f"✓ Wrote code to {output}", style="green")

    if save:
        suite = SuiteStore(get_data_dir()).create(
            name=save,
            nlp_input=message,
            generated_code=reply.generated_code,
            llm_provider=result.provider or "unknown",
            llm_model=result.model or "unknown",
            commands=reply.commands,
        )
        console.print(f"✓ Saved test suite v{suite.version}: [bold]{suite.name}[/bold]", style="green")


def compile_test(
    message: str,
    name: str = typer.Option("Generated Test", "--name", "-n", help="Test name"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write generated code to a file"),
) -> None:
    """Generate test code for a single request without chat history."""

    async def run_parse():
        pipeline = build_pipeline()
        try:
            result = await pipeline.parse(message)
            if result.needs_clarification():
                return result, None
            return result, pipeline.compile_result(result, test_name=name)
        finally:
            await pipeline.aclose()

    try:
        result, code = asyncio.run(run_parse())
    except (TestKitError, ValueError) as e:
        fail(e)

    if code is None:
        print_questionnaire(result.questionnaire)
        return

    if output:
        output.write_text(code)
        console.print(f"✓ Wrote {len(result.commands)} commands to {output}", style="green")
    else:
        typer.echo(code)


def history(session_id: str) -> None:
    """Show the messages of a chat session."""
    store = ChatStore(get_data_dir())
    messages = store.get_messages(session_id)

    if not messages:
        console.print(f"💬 No messages for session {session_id}", style="dim")
        return

    table = Table(title=f"💬 Session {session_id[:8]}", show_header=True, header_style="bold cyan", expand=True)
    table.add_column("Time", style="dim", width=8)
    table.add_column("Role", width=9)
    table.add_column("Message")
    table.add_column("Cmds", justify="right", width=4)

    for msg in messages:
        role_style = "cyan" if msg.role == "user" else "green"
        table.add_row(
            msg.timestamp.strftime("%H:%M:%S"),
            f"[{role_style}]{msg.role}[/{role_style}]",
            msg.content,
            str(len(msg.commands)) if msg.commands else "",
        )

    console.print(table)


def providers(
    check: bool = typer.Option(True, "--check/--no-check", help="Run health checks"),
) -> None:
    """List configured LLM providers and their health."""
    pipeline = build_pipeline()

    async def run_checks():
        try:
            return await pipeline.provider_health() if check else {}
        finally:
            await pipeline.aclose()

    health = asyncio.run(run_checks())

    table = Table(title="🔌 LLM Providers", show_header=True, header_style="bold cyan")
    table.add_column("Provider", style="bold")
    table.add_column("Model")
    table.add_column("Role")
    table.add_column("Health")

    for row in pipeline.providers():
        role = "primary" if row["primary"] else "fallback" if row["fallback"] else ""
        if not check:
            status = "[dim]not checked[/dim]"
        elif health.get(row["name"]):
            status = "[green]✓ healthy[/green]"
        else:
            status = "[red]✗ unhealthy[/red]"
        table.add_row(row["name"], row["model"] or "", role, status)

    console.print(table)


def costs() -> None:
    """Show LLM usage and cost totals."""
    ledger = CostLedger(get_data_dir())
    stats = ledger.get_stats()
    today = ledger.get_day_stats()

    if stats["request_count"] == 0:
        console.print("💰 No LLM usage recorded yet", style="dim")
        return

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Metric", style="bold")
    table.add_column("Value")
    table.add_row("Requests", str(stats["request_count"]))
    table.add_row("Total tokens", f"{stats['total_tokens']:,}")
    table.add_row("Total cost", f"${stats['total_cost']:.4f}")
    table.add_row("Avg per request", f"${stats['avg_cost_per_request']:.4f}")
    table.add_row("Today", f"{today.request_count} requests • ${today.total_cost:.4f}")
    if stats["estimated_requests"]:
        table.add_row("Estimated", f"{stats['estimated_requests']} requests used estimated token counts")

    console.print(Panel(table, title="💰 LLM Usage", border_style="blue"))

    by_provider = Table(show_header=True, header_style="bold cyan")
    by_provider.add_column("Provider")
    by_provider.add_column("Cost", justify="right")
    for name, cost in sorted(stats["cost_by_provider"].items()):
        by_provider.add_row(name, f"${cost:.4f}")
    console.print(by_provider)
