"""Index command - Build and persist a FAISS index from error records."""
from pathlib import Path
from typing import Optional

import typer
from rich.table import Table

from errorlens.cli.common import console, load_and_index
from errorlens.core.exceptions import VectorStoreError


def index(
    records_file: Path = typer.Argument(
        ...,
        help="Error records JSONL file (one record with embedding per line)",
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output", "-o",
        help="Output directory for the index (default: auto-generated)",
    ),
) -> Path:
    """Build a FAISS similarity index from error embeddings."""
    _, store = load_and_index(records_file)

    try:
        saved = store.save(output)
    except VectorStoreError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    table = Table(title="Vector Store")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    for key, value in store.get_stats().items():
        table.add_row(key, str(value))
    console.print(table)

    console.print(f"[green]Index saved to:[/green] {saved}")
    return saved
