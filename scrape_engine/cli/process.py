"""CLI tool for running the data pipeline on a file and serving the API."""
import asyncio
import json
from pathlib import Path
from typing import Any, List, Optional, Type, TypeVar

import httpx
import typer
from pydantic import BaseModel, TypeAdapter
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..config import settings
from ..models import (
    AggregatedData,
    AggregationRule,
    CleaningRule,
    DataSchema,
    DataStatistics,
    ExportFormat,
    ExportMetadata,
    ProcessingJob,
    RawRecord,
    ValidationRule,
)
from ..services import DataPipeline

app = typer.Typer(help="Scrape Engine: session tracking and data processing")
console = Console()

M = TypeVar("M", bound=BaseModel)


def load_json(path: Path) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def load_models(path: Optional[Path], model: Type[M]) -> List[M]:
    if path is None:
        return []
    return TypeAdapter(List[model]).validate_python(load_json(path))


def load_raw_records(path: Path) -> List[RawRecord]:
    """Accept either full raw records or plain field maps."""
    items = load_json(path)
    if not isinstance(items, list):
        raise typer.BadParameter("Records file must contain a JSON array", param_hint="RECORDS")
    return [
        RawRecord.model_validate(item) if isinstance(item, dict) and "raw" in item else RawRecord(raw=item)
        for item in items
    ]


def create_summary_table(job: ProcessingJob, stats: DataStatistics) -> Table:
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Field", style="cyan bold", no_wrap=True)
    table.add_column("Value", style="white")

    status_color = "green" if not job.errors else "yellow"
    table.add_row("Job", job.id)
    table.add_row("Status", f"[{status_color}]{job.status.value.upper()}[/{status_color}]")
    table.add_row("Records", f"{job.processed_records}/{job.total_records}")
    table.add_row("Errors", str(len(job.errors)))
    table.add_row("Duplicates", str(stats.duplicate_records))
    table.add_row("Completeness", f"{stats.completeness_ratio:.2%}")
    table.add_row("Quality Score", f"{stats.quality_score:.3f}")
    return table


def create_schema_table(schema: DataSchema, stats: DataStatistics) -> Table:
    infos = {info.name: info for info in stats.fields}
    table = Table(title="Inferred Schema")
    table.add_column("Field", style="cyan")
    table.add_column("Type", style="magenta")
    table.add_column("Required")
    table.add_column("Unique", justify="right")
    table.add_column("Nulls", justify="right")
    table.add_column("Min / Avg / Max")

    for field in schema.fields:
        info = infos.get(field.name)
        numeric = ""
        if info and info.statistics and info.statistics.avg is not None:
            s = info.statistics
            numeric = f"{s.min:g} / {s.avg:.2f} / {s.max:g}"
        table.add_row(
            field.name,
            field.type.value,
            "[green]yes[/green]" if field.required else "no",
            str(info.unique_values) if info else "",
            str(info.null_count) if info else "",
            numeric,
        )
    return table


def create_errors_table(job: ProcessingJob) -> Table:
    table = Table(title="Record Errors", border_style="red")
    table.add_column("Record", style="cyan")
    table.add_column("Error", style="red")
    for error in job.errors:
        table.add_row(error.record_id, error.error)
    return table


def create_aggregation_table(groups: List[AggregatedData]) -> Table:
    table = Table(title="Aggregation")
    table.add_column("Group", style="cyan")
    table.add_column("Records", justify="right")
    table.add_column("Values")
    for group in groups:
        table.add_row(
            group.group_key if group.group_key is not None else "-",
            str(len(group.source_ids)),
            json.dumps(group.aggregated, default=str),
        )
    return table


@app.command()
def process(
    records: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON array of raw records"),
    rules: Optional[Path] = typer.Option(None, exists=True, help="JSON array of cleaning rules"),
    validation: Optional[Path] = typer.Option(None, exists=True, help="JSON array of validation rules"),
    aggregate: Optional[Path] = typer.Option(None, exists=True, help="JSON array of aggregation rules"),
    output: Optional[Path] = typer.Option(None, help="Write processed records to this file"),
    output_format: ExportFormat = typer.Option(ExportFormat.JSON, "--format", help="Output file format"),
):
    """
    Clean, validate and score a batch of records offline.

    Examples:

        scrape-engine process records.json --rules rules.json

        scrape-engine process records.json --validation checks.json --output cleaned.csv --format csv
    """
    pipeline = DataPipeline()
    raw_records = load_raw_records(records)
    cleaning_rules = load_models(rules, CleaningRule)
    validation_rules = load_models(validation, ValidationRule)
    aggregation_rules = load_models(aggregate, AggregationRule)

    console.print(f"\n[bold cyan]Processing {len(raw_records)} records from:[/bold cyan] {records}\n")

    job, processed = asyncio.run(
        pipeline.process_batch("cli", raw_records, cleaning_rules, validation_rules)
    )
    stats = pipeline.generate_data_statistics(processed)
    schema = pipeline.infer_data_schema(processed)

    console.print(Panel(create_summary_table(job, stats), title="Processing Complete", border_style="green"))
    if processed:
        console.print(create_schema_table(schema, stats))
    if job.errors:
        console.print(create_errors_table(job))

    if aggregation_rules:
        console.print(create_aggregation_table(pipeline.aggregate_data(processed, aggregation_rules)))

    if output:
        metadata = ExportMetadata()
        size = pipeline.writers.write(
            output_format, pipeline.to_rows(processed, metadata), output, metadata
        )
        console.print(f"\n[green]Wrote {len(processed)} records to[/green] {output} ({size} bytes)")

    if job.errors:
        raise typer.Exit(1)


@app.command()
def sessions(
    api_url: str = typer.Option("http://localhost:8000", help="API base URL"),
):
    """List the sessions of a running server."""
    try:
        response = httpx.get(f"{api_url}/api/sessions", timeout=10.0)
        response.raise_for_status()
    except httpx.HTTPError as e:
        console.print(f"[red]Error listing sessions: {e}[/red]")
        raise typer.Exit(1)

    status_colors = {
        "created": "white",
        "configuring": "yellow",
        "running": "blue",
        "paused": "yellow",
        "completed": "green",
        "failed": "red",
        "expired": "dim",
    }
    table = Table(title=f"Sessions ({response.json()['total']})")
    table.add_column("Session", style="cyan")
    table.add_column("Status")
    table.add_column("Raw", justify="right")
    table.add_column("Cleaned", justify="right")
    table.add_column("Expires")
    for session in response.json()["sessions"]:
        color = status_colors.get(session["status"], "white")
        table.add_row(
            session["session_id"],
            f"[{color}]{session['status']}[/{color}]",
            str(session["raw_records"]),
            str(session["cleaned_records"]),
            session["expires_at"],
        )
    console.print(table)


@app.command()
def serve(
    host: str = typer.Option(settings.host, help="Bind address"),
    port: int = typer.Option(settings.port, help="Port"),
    reload: bool = typer.Option(settings.debug, help="Reload on code changes"),
):
    """Run the HTTP API."""
    import uvicorn

    uvicorn.run(
        "scrape_engine.main:app",
        host=host,
        port=port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    app()
