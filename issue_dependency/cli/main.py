"""Main CLI entry point."""

import logging

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler

from .commands import add_dependency, list_dependencies, remove_dependency, status
from .options import VERBOSE_OPTION

# Load environment variables from .env file
load_dotenv()

app = typer.Typer(
    name="gh-issue-dependency",
    help="Manage blocked-by / blocks relationships between GitHub issues",
    add_completion=False,
    context_settings={"help_option_names": ["-h", "--help"]},
)
console = Console()


@app.callback()
def main(verbose: bool = VERBOSE_OPTION) -> None:
    """Manage blocked-by / blocks relationships between GitHub issues."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        )
        # Request lines from httpx are noise next to our own retry logging
        logging.getLogger("httpx").setLevel(logging.WARNING)


app.command(name="list", context_settings={"help_option_names": ["-h", "--help"]})(
    list_dependencies
)
app.command(name="add", context_settings={"help_option_names": ["-h", "--help"]})(
    add_dependency
)
app.command(name="remove", context_settings={"help_option_names": ["-h", "--help"]})(
    remove_dependency
)
app.command(name="status", context_settings={"help_option_names": ["-h", "--help"]})(
    status
)


@app.command(context_settings={"help_option_names": ["-h", "--help"]})
def version() -> None:
    """Show version information."""
    from issue_dependency import __version__

    console.print(f"gh-issue-dependency v{__version__}")


if __name__ == "__main__":
    app()
