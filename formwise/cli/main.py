#!/usr/bin/env python3
"""Main CLI entry point for formwise."""
from __future__ import annotations

import logging
import sys
from typing import Optional

import click
from dotenv import find_dotenv, load_dotenv
from rich.console import Console
from rich.logging import RichHandler

from ..config import get_settings
from .commands import detect, match, providers

console = Console()


def configure_logging(level: Optional[str] = None) -> None:
    logging.basicConfig(
        level=(level or get_settings().log_level).upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )


@click.group()
@click.option("--log-level", default=None, help="Override FORMWISE_LOG_LEVEL (DEBUG, INFO, WARNING, ...)")
@click.version_option(version="0.1.0", prog_name="formwise")
def cli(log_level: Optional[str]):
    """
    formwise - find form fields and propose values from stored records.

    Works on JSON document snapshots, or on live pages through Playwright.
    """
    load_dotenv(find_dotenv(usecwd=True))
    get_settings.cache_clear()
    configure_logging(log_level)


cli.add_command(detect.detect_command)
cli.add_command(match.match_command)
cli.add_command(providers.providers_command)


def main():
    """Entry point for the CLI."""
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(130)
    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
