"""List the supported model providers."""
from __future__ import annotations

import os
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from ...config import get_settings
from ...matching.providers import list_providers

console = Console()


@click.command(name="providers")
def providers_command():
    """Show supported model providers and whether a usable key is configured."""
    settings = get_settings()

    table = Table(title="Model Providers", show_header=True, header_style="bold cyan", border_style="cyan")
    table.add_column("Provider", style="yellow")
    table.add_column("Name")
    table.add_column("Default Model", style="green")
    table.add_column("Key Env")
    table.add_column("Key", justify="center")
    table.add_column("Description", style="dim")

    for spec in list_providers():
        selected = settings.provider == spec.provider.value
        if not spec.requires_api_key:
            key_status = "[dim]not required[/dim]"
        elif spec.validate_key(settings.resolved_api_key(spec.api_key_env) if selected else _env_key(spec.api_key_env)):
            key_status = "[green]ok[/green]"
        else:
            key_status = "[red]missing[/red]"
        table.add_row(
            f"{spec.provider.value}{' *' if selected else ''}",
            spec.name,
            spec.default_model,
            spec.api_key_env or "-",
            key_status,
            spec.description,
        )

    console.print(table)
    if settings.provider:
        console.print("[dim]* selected via FORMWISE_PROVIDER[/dim]")


def _env_key(name: Optional[str]) -> Optional[str]:
    return os.getenv(name) if name else None
