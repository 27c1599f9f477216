"""Cluster and stats commands - group similar errors."""
from pathlib import Path
from typing import Optional

import typer
from rich.table import Table

from errorlens.config import settings
from errorlens.core.models import ClusteringStatus
from errorlens.core.exceptions import ClusteringCancelledError, ErrorLensError
from errorlens.clustering.cancellation import CancellationToken
from errorlens.clustering.clusterer import SimilarityClusterer
from errorlens.cli.common import console, load_and_index
from errorlens.data.loader import save_groups_json
from errorlens.services.grouping import ErrorGroupingService, InMemoryErrorRepository
from errorlens.utils.logger import logger


def _build_service(
    records_file: Path,
    query_timeout: Optional[float],
) -> ErrorGroupingService:
    records, store = load_and_index(records_file)
    clusterer = SimilarityClusterer(store, query_timeout=query_timeout, show_progress=True)
    return ErrorGroupingService(InMemoryErrorRepository(records), store, clusterer=clusterer)


def cluster(
    records_file: Path = typer.Argument(
        ...,
        help="Error records JSONL file (one record with embedding per line)",
    ),
    threshold: float = typer.Option(
        settings.SIMILARITY_THRESHOLD,
        "--threshold", "-t",
        help="Similarity threshold in (0, 1] (higher = tighter groups)",
    ),
    min_group_size: int = typer.Option(
        settings.MIN_GROUP_SIZE,
        "--min-group-size",
        help="Only report groups with at least this many errors",
    ),
    hours: Optional[int] = typer.Option(
        None,
        "--hours",
        help="Only group errors from the last N hours (default: all errors)",
    ),
    query_timeout: Optional[float] = typer.Option(
        settings.QUERY_TIMEOUT,
        "--query-timeout",
        help="Seconds allowed per neighbor query",
    ),
    timeout: Optional[float] = typer.Option(
        settings.RUN_TIMEOUT,
        "--timeout",
        help="Seconds allowed for the whole run",
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output", "-o",
        help="Output JSON file (default: auto-generated)",
    ),
) -> Path:
    """Group similar errors by embedding similarity."""
    console.print("[bold blue]ErrorLens[/bold blue] - Grouping")
    console.print()

    logger.info(
        "Starting grouping",
        records=str(records_file),
        threshold=threshold,
        min_group_size=min_group_size,
        hours=hours,
    )

    service = _build_service(records_file, query_timeout)
    token = CancellationToken(timeout=timeout)

    try:
        if hours is None:
            groups = service.group_all_errors(threshold, min_group_size, cancel_token=token)
        else:
            groups = service.group_errors(threshold, min_group_size, hours, cancel_token=token)
    except ClusteringCancelledError as e:
        console.print(f"[yellow]Cancelled:[/yellow] {e}")
        logger.warning("Grouping cancelled", status=ClusteringStatus.CANCELLED.value)
        raise typer.Exit(2)
    except ErrorLensError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    console.print()
    table = Table(title=f"Error Groups (threshold={threshold}, min size={min_group_size})")
    table.add_column("Group", style="cyan")
    table.add_column("Name", style="white")
    table.add_column("Errors", justify="right", style="green")
    table.add_column("Severity", style="magenta")
    table.add_column("Avg similarity", justify="right")

    for group in groups:
        table.add_row(
            group.display_id,
            group.group_name,
            str(group.error_count),
            group.severity,
            f"{group.avg_similarity:.3f}",
        )

    console.print(table)

    if output is None:
        output = settings.PROCESSED_DATA_DIR / f"groups_{records_file.stem}.json"

    console.print(f"\nSaving groups to: {output}")
    save_groups_json(
        groups,
        output,
        status=ClusteringStatus.COMPLETED.value,
        threshold=threshold,
        min_group_size=min_group_size,
        hours=hours,
        source_records_file=str(records_file),
    )

    console.print("[green]Grouping complete![/green]")
    logger.info("Grouping complete", output=str(output), num_groups=len(groups))

    return output


def stats(
    records_file: Path = typer.Argument(
        ...,
        help="Error records JSONL file (one record with embedding per line)",
    ),
    threshold: float = typer.Option(
        settings.SIMILARITY_THRESHOLD,
        "--threshold", "-t",
        help="Similarity threshold in (0, 1]",
    ),
    hours: Optional[int] = typer.Option(
        None,
        "--hours",
        help="Only consider errors from the last N hours (default: all errors)",
    ),
) -> None:
    """Show grouping statistics (singleton groups included)."""
    service = _build_service(records_file, settings.QUERY_TIMEOUT)

    try:
        summary = service.get_grouping_statistics(threshold, hours)
    except ErrorLensError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    table = Table(title="Grouping Statistics")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Total groups", str(summary.total_groups))
    table.add_row("Errors clustered", str(summary.total_errors_clustered))
    table.add_row("Largest group", str(summary.largest_group_size))
    table.add_row("Average group size", f"{summary.average_group_size:.1f}")

    console.print(table)
