"""Main CLI application."""
import typer

from errorlens.cli.cluster import cluster, stats
from errorlens.cli.index import index

app = typer.Typer(
    name="errorlens",
    help="Group similar errors by embedding similarity.",
    add_completion=False,
)

app.command()(cluster)
app.command()(stats)
app.command()(index)


if __name__ == "__main__":
    app()
