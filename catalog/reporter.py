from __future__ import annotations

from typing import Optional

from rich import box
from rich.console import Console
from rich.table import Table

from catalog.domain.results import UpsertFailure, UpsertResult
from catalog.percentiles import PERCENTILE_RANKS, PercentileSnapshot

# Ranks shown as columns; the full 21-point snapshot is too wide for a terminal.
SUMMARY_RANKS = (0, 25, 50, 75, 90, 95, 100)


def print_percentiles(
    snapshot: PercentileSnapshot,
    console: Optional[Console] = None,
    ranks: tuple[int, ...] = SUMMARY_RANKS,
) -> None:
    """
    Render a percentile snapshot as a rich table, one row per attribute.
    """
    console = console or Console()

    if not snapshot:
        console.print("[yellow]No numeric values recorded yet.[/yellow]")
        return

    shown = [rank for rank in ranks if rank in PERCENTILE_RANKS]
    table = Table(
        title="Percentile Markers",
        box=box.ROUNDED,
        caption="Nearest-rank values (observed samples)",
    )
    table.add_column("Attribute", style="cyan", no_wrap=True)
    for rank in shown:
        style = "bold green" if rank in (0, 100) else "green"
        table.add_column(f"p{rank}", justify="right", style=style)

    for attribute, markers in snapshot.items():
        table.add_row(attribute, *(f"{markers[rank]:,.2f}" for rank in shown))

    console.print(table)


def print_upsert_result(result: UpsertResult, console: Optional[Console] = None) -> None:
    """
    Render the outcome of a batch upsert.

    Successful batches list created and updated keys; failed batches list the
    offending item with its messages.
    """
    console = console or Console()

    if isinstance(result, UpsertFailure):
        table = Table(title="Batch Rejected (nothing saved)", box=box.ROUNDED)
        table.add_column("Index", justify="right", style="magenta")
        table.add_column("Key", style="cyan")
        table.add_column("Errors", style="red")
        for error in result.errors:
            table.add_row(str(error.index), error.key or "-", "\n".join(error.messages))
        console.print(table)
        return

    table = Table(
        title="Batch Committed",
        box=box.ROUNDED,
        caption=f"created={result.created_count} updated={result.updated_count}",
    )
    table.add_column("Action", style="cyan", no_wrap=True)
    table.add_column("ID", justify="right", style="magenta")
    table.add_column("Key", style="green")
    for ref in result.created:
        table.add_row("created", str(ref.id), ref.key)
    for ref in result.updated:
        table.add_row("updated", str(ref.id), ref.key)
    console.print(table)


__all__ = ["SUMMARY_RANKS", "print_percentiles", "print_upsert_result"]
