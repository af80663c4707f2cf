import logging

import typer
from rich.console import Console
from rich.logging import RichHandler

from .commands.core import chat, compile_test, providers, costs, history
from .commands.suites import suites_app

app = typer.Typer(help="LLM Test Kit - natural language to Playwright tests")


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_path=False)],
        force=True,
    )


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging")) -> None:
    setup_logging(verbose)


@app.command()
def hello() -> None:
    """Sanity check command."""
    typer.echo("LLM Test Kit is alive.")


# Register generation commands
app.command()(chat)
app.command(name="compile")(compile_test)  # "compile" is a Python builtin, so use name mapping
app.command()(history)

# Register provider and cost commands
app.command()(providers)
app.command()(costs)

# Register suite commands
app.add_typer(suites_app, name="suites")


# Entry point function for the CLI script
def cli() -> None:
    app()
