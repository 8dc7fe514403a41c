"""Form detection command."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ...detection import DetectionResult, FormDetector
from ...dom.tree import DomNode, load_tree

console = Console()


def load_document(snapshot: Optional[str], url: Optional[str], *, save: Optional[str] = None, headless: bool = True) -> DomNode:
    """Read a saved snapshot, or capture ``url`` with Playwright."""

    if url and not save:
        from ...dom.snapshot import snapshot_url

        return snapshot_url(url, headless=headless)

    if url:
        from ...dom.snapshot import save_snapshot, snapshot_page
        from playwright.sync_api import sync_playwright

        with sync_playwright() as playwright:
            browser = playwright.chromium.launch(headless=headless)
            try:
                page = browser.new_page()
                page.goto(url, wait_until="domcontentloaded")
                path = save_snapshot(page, save)
                console.print(f"[dim]Snapshot saved to {path}[/dim]")
                return snapshot_page(page)
            finally:
                browser.close()

    if not snapshot:
        raise click.UsageError("Provide a SNAPSHOT file or --url")
    return load_tree(snapshot)


@click.command(name="detect")
@click.argument("snapshot", required=False, type=click.Path(exists=True, dir_okay=False))
@click.option("--url", help="Snapshot a live page instead of reading a file")
@click.option("--save", type=click.Path(dir_okay=False), help="Write the captured --url snapshot to this path")
@click.option("--headed", is_flag=True, help="Show the browser window when using --url")
@click.option("--json", "as_json", is_flag=True, help="Print the detection result as JSON")
def detect_command(snapshot: Optional[str], url: Optional[str], save: Optional[str], headed: bool, as_json: bool):
    """
    Detect forms and fillable fields.

    SNAPSHOT is a JSON document tree as written by --save.
    """
    root = load_document(snapshot, url, save=save, headless=not headed)
    result = FormDetector().detect(root)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    else:
        _print_detection(result, source=url or Path(snapshot).name)
    if not result.success:
        raise SystemExit(1)


def _print_detection(result: DetectionResult, *, source: str) -> None:
    if not result.success:
        console.print(f"[red]Detection failed:[/red] {result.error}")
        return

    console.print(Panel(
        f"[bold cyan]{result.total_fields} fields in {len(result.forms)} forms[/bold cyan]\n[dim]{source}[/dim]",
        border_style="cyan",
    ))

    for form in result.forms:
        table = Table(
            title=f"{form.name or form.id} [dim]({form.id})[/dim]",
            show_header=True,
            header_style="bold cyan",
            border_style="cyan",
        )
        table.add_column("Field", style="yellow")
        table.add_column("Type")
        table.add_column("Purpose", style="green")
        table.add_column("Labels")
        table.add_column("Context", style="dim")

        for detected in form.fields:
            metadata = detected.metadata
            table.add_row(
                detected.id,
                metadata.field_type,
                metadata.field_purpose,
                ", ".join(metadata.labels()) or "-",
                metadata.context() or "-",
            )
        console.print(table)
        console.print()
