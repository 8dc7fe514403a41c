"""Run detection and matching against a record file."""
from __future__ import annotations

import asyncio
import json
from dataclasses import replace
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from ...config import get_settings
from ...matching.constants import CONFIDENCE_LEVELS
from ...pipeline import AutofillPipeline, PipelineResult
from ...progress import ProgressUpdate, progress_description, progress_title, progress_value
from ...records import InMemoryRecordStore
from .detect import load_document

console = Console()


@click.command(name="match")
@click.argument("snapshot", required=False, type=click.Path(exists=True, dir_okay=False))
@click.option("--records", "-r", required=True, type=click.Path(exists=True, dir_okay=False), help="JSON file of stored records")
@click.option("--url", help="Snapshot a live page instead of reading a file")
@click.option("--threshold", type=click.FloatRange(0.0, 1.0), help="Auto-fill confidence threshold")
@click.option("--no-ai", is_flag=True, help="Use the rule-based matcher only")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
def match_command(
    snapshot: Optional[str],
    records: str,
    url: Optional[str],
    threshold: Optional[float],
    no_ai: bool,
    as_json: bool,
):
    """
    Propose a stored record for every detected field.

    --records is a JSON list of {id, question, answer, category} objects.
    """
    settings = get_settings()
    if threshold is not None:
        settings = replace(settings, confidence_threshold=threshold)
    if no_ai:
        settings = replace(settings, ai_enabled=False)

    store = InMemoryRecordStore.from_json(records)
    root = load_document(snapshot, url)
    pipeline = AutofillPipeline(settings, record_store=store, progress_callback=None if as_json else _report)
    result = asyncio.run(pipeline.run(root))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
        return

    _print_mappings(result)
    if not result.success:
        raise SystemExit(1)


def _report(update: ProgressUpdate) -> None:
    console.print(
        f"[cyan]{progress_value(update.state):>3}%[/cyan] "
        f"[bold]{progress_title(update.state)}[/bold] [dim]{progress_description(update)}[/dim]"
    )


def _confidence_style(confidence: float) -> str:
    if confidence >= CONFIDENCE_LEVELS["high"]:
        return "green"
    if confidence >= CONFIDENCE_LEVELS["medium"]:
        return "yellow"
    return "red"


def _print_mappings(result: PipelineResult) -> None:
    if not result.detection.success:
        console.print(f"[red]Detection failed:[/red] {result.detection.error}")
        return
    if result.matching is None or not result.matching.success:
        error = result.matching.error if result.matching is not None else "no result"
        console.print(f"[red]Matching failed:[/red] {error}")
        return

    labels = {
        detected.id: ", ".join(detected.metadata.labels()) or detected.metadata.context()
        for detected in result.detection.iter_fields()
    }

    table = Table(title="Proposed Mappings", show_header=True, header_style="bold cyan", border_style="cyan")
    table.add_column("Field", style="yellow")
    table.add_column("Label")
    table.add_column("Value", style="white")
    table.add_column("Confidence", justify="right")
    table.add_column("Auto-fill", justify="center")
    table.add_column("Reasoning", style="dim")

    for mapping in result.matching.mappings:
        style = _confidence_style(mapping.confidence)
        table.add_row(
            mapping.field_id,
            labels.get(mapping.field_id, "") or "-",
            mapping.value if mapping.value is not None else "[dim]-[/dim]",
            f"[{style}]{mapping.confidence:.0%}[/{style}]",
            "[green]yes[/green]" if mapping.auto_fill else "no",
            mapping.reasoning,
        )

    console.print(table)
    console.print(
        f"\n[bold]{result.matching.matched_count}[/bold] matches for "
        f"[bold]{len(result.matching.mappings)}[/bold] fields "
        f"in {result.matching.processing_time or 0:.1f}ms"
    )
