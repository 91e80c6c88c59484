"""
Synthetic catalog data for local runs and demos.

Generates deterministic pseudo-random record patches, writes them as a
`{"records": [...]}` batch file, and optionally loads them through the
upsert orchestrator in fixed-size atomic batches.
"""

from __future__ import annotations

import json
import random
import sys
import tempfile
import time
from pathlib import Path
from typing import Any, Dict, List

import typer

from catalog.config import get_settings
from catalog.domain.models import Category, Status
from catalog.domain.results import UpsertSuccess
from catalog.infrastructure.store import create_store
from catalog.orchestrator import UpsertOrchestrator
from catalog.utils.logging import configure_logging

app = typer.Typer(help="Generate synthetic record patches and upsert them into the catalog.")

# Share of generated records that leave each optional numeric attribute empty.
SPARSE_RATE = 0.1


def _maybe(rng: random.Random, value: Any) -> Any:
    return None if rng.random() < SPARSE_RATE else value


def _generate_patches(rows: int, seed: int, prefix: str = "pattern") -> List[Dict[str, Any]]:
    rng = random.Random(seed)
    categories = [category.value for category in Category]
    statuses = [status.value for status in Status]

    patches: List[Dict[str, Any]] = []
    for i in range(rows):
        patch = {
            "key": f"{prefix}-{i:05d}",
            "category": rng.choice(categories),
            "status": rng.choice(statuses),
            "description": f"Synthetic {prefix} #{i}",
            "priority": _maybe(rng, rng.randint(1, 5)),
            "score": _maybe(rng, round(rng.uniform(0, 100), 2)),
            "complexity": _maybe(rng, rng.randint(1, 5)),
            "speed": _maybe(rng, rng.randint(1, 5)),
            "quality": _maybe(rng, rng.randint(1, 5)),
        }
        patches.append({name: value for name, value in patch.items() if value is not None})
    return patches


def _write_batch_file(path: Path, patches: List[Dict[str, Any]]) -> None:
    with path.open("w", encoding="utf-8") as f:
        json.dump({"records": patches}, f, indent=2)


def _load_in_batches(patches: List[Dict[str, Any]], batch_size: int) -> Dict[str, int]:
    store = create_store()
    store.ensure_schema()
    orchestrator = UpsertOrchestrator(store)
    totals = {"created": 0, "updated": 0, "failed_batches": 0}
    for start in range(0, len(patches), batch_size):
        result = orchestrator.run(patches[start : start + batch_size])
        if isinstance(result, UpsertSuccess):
            totals["created"] += result.created_count
            totals["updated"] += result.updated_count
        else:
            totals["failed_batches"] += 1
    return totals


@app.command()
def main(
    rows: int = typer.Option(
        500,
        "--rows",
        "-r",
        help="Number of records to generate.",
    ),
    batch_size: int = typer.Option(
        100,
        "--batch-size",
        "-b",
        help="Records per atomic upsert batch when loading.",
    ),
    seed: int = typer.Option(
        42,
        "--seed",
        help="Deterministic RNG seed.",
    ),
    output: Path | None = typer.Option(
        None,
        "--output",
        "-o",
        help="Optional batch file path (if omitted, a temp file will be used).",
    ),
    no_load: bool = typer.Option(
        False,
        "--no-load",
        help="Only write the batch file; skip loading into the store.",
    ),
) -> None:
    """
    Generate synthetic record patches and optionally upsert them.
    """
    configure_logging(level=get_settings().log_level)
    start = time.perf_counter()
    if output:
        batch_path = output
        batch_path.parent.mkdir(parents=True, exist_ok=True)
    else:
        tmpdir = Path(tempfile.mkdtemp(prefix="catalog_batch_"))
        batch_path = tmpdir / "records.json"

    typer.echo(f"Generating {rows:,} records -> {batch_path} (seed={seed})")
    patches = _generate_patches(rows, seed=seed)
    _write_batch_file(batch_path, patches)

    if no_load:
        typer.echo("Skipping load (no-load flag set).")
        return

    totals = _load_in_batches(patches, batch_size=batch_size)
    duration = time.perf_counter() - start
    typer.echo(
        f"Loaded in {duration:.2f}s: created={totals['created']} "
        f"updated={totals['updated']} failed_batches={totals['failed_batches']}"
    )


if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)
