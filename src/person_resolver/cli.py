from __future__ import annotations

from pathlib import Path
from typing import Optional

from rich import print
import typer

from .commands import (
    cmd_check_url,
    cmd_create,
    cmd_extract_events,
    cmd_ping,
    cmd_resolve,
    cmd_search,
    get_config,
    setup_logging,
)
from .errors import InvalidQueryError, StorageError
from .models import SourceType

app = typer.Typer(add_completion=False)


@app.callback()
def _main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging")) -> None:
    setup_logging("DEBUG" if verbose else get_config().log_level)


@app.command()
def ping() -> None:
    """
    Sanity check: config files, key presence and adapter wiring.
    """
    cmd_ping()


@app.command("check-url")
def check_url(url: str) -> None:
    """Show which profile rule (if any) accepts a URL."""
    cmd_check_url(url)


@app.command()
def search(query: str) -> None:
    """Fan out to every source and print the ranked candidates."""
    cmd_search(query)


@app.command()
def resolve(
    query: str,
    store: Optional[Path] = typer.Option(None, "--store", help="Identity store JSON file"),
) -> None:
    """
    Tiered resolution: stored identity, source candidates, generative lookup.
    """
    try:
        cmd_resolve(query, store)
    except InvalidQueryError as e:
        print(f"[red]{e}[/red]")
        raise typer.Exit(code=2)
    except StorageError:
        print("[red]Internal server error[/red]")
        raise typer.Exit(code=1)


@app.command()
def create(
    title: str,
    source_type: SourceType = typer.Option(SourceType.ENCYCLOPEDIA, "--source-type", help="Source of the picked candidate"),
    store: Optional[Path] = typer.Option(None, "--store", help="Identity store JSON file"),
) -> None:
    """Create a profile from the candidate a user picked."""
    try:
        cmd_create(title, source_type.value, store)
    except InvalidQueryError as e:
        print(f"[red]{e}[/red]")
        raise typer.Exit(code=2)
    except StorageError:
        print("[red]Internal server error[/red]")
        raise typer.Exit(code=1)


@app.command("extract-events")
def extract_events(
    text_file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    name: str = typer.Option(..., "--name", help="Person the text is about"),
    out: Optional[Path] = typer.Option(None, "--out", help="Output JSON path"),
) -> None:
    """Extract dated timeline events from plain biographical text."""
    cmd_extract_events(text_file, name, out)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
