"""Helpers shared by CLI commands."""
from pathlib import Path
from typing import List, Tuple

import typer
from rich.console import Console

from errorlens.core.models import ErrorRecord
from errorlens.core.exceptions import ErrorLensError
from errorlens.data.loader import load_records_jsonl
from errorlens.embeddings.vector_store import FAISSVectorStore

console = Console()


def load_and_index(records_file: Path) -> Tuple[List[ErrorRecord], FAISSVectorStore]:
    """Load records and build an in-memory FAISS store from their embeddings."""
    if not records_file.exists():
        console.print(f"[red]Error:[/red] Records file not found: {records_file}")
        raise typer.Exit(1)

    try:
        console.print(f"Loading records from: {records_file}")
        records = load_records_jsonl(records_file)
        embedded = [r for r in records if r.has_embedding]
        console.print(
            f"[green]Loaded {len(records)} records ({len(embedded)} with embeddings)[/green]"
        )

        dimension = len(embedded[0].embedding) if embedded else None
        store = FAISSVectorStore(dimension=dimension)
        store.add_records(embedded)
    except ErrorLensError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    return records, store
