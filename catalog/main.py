from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, List, Optional

import typer
import uvicorn

from catalog.api.app import create_app
from catalog.config import get_settings
from catalog.domain.results import UpsertSuccess
from catalog.infrastructure.store import create_store
from catalog.orchestrator import UpsertOrchestrator
from catalog.percentiles import PercentileEngine
from catalog.reporter import print_percentiles, print_upsert_result
from catalog.utils.logging import configure_logging

app = typer.Typer(help="Record catalog CLI.")


def _setup() -> None:
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)


def _load_batch(path: Path) -> List[Any]:
    """Read a batch file: either {"records": [...]} or a bare JSON array."""
    try:
        document = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise typer.BadParameter(f"cannot read batch file {path}: {exc}") from exc
    if isinstance(document, dict):
        document = document.get("records")
    if not isinstance(document, list):
        raise typer.BadParameter(f"{path} must hold a 'records' array")
    return document


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    if settings.db_backend == "sqlite":
        target = f"sqlite:{settings.sqlite_path}"
    else:
        target = f"{settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name}"
    typer.echo(
        f"DB={target} | env={settings.app_env} | log={settings.log_level} | "
        f"api_token={'set' if settings.api_token else 'missing'}"
    )


@app.command("init-db")
def init_db() -> None:
    """
    Create the records table and its indexes if they do not exist.
    """
    _setup()
    create_store().ensure_schema()
    typer.echo("Schema ready.")


@app.command()
def upsert(
    batch_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON batch file."),
    as_json: bool = typer.Option(False, "--json", help="Print the raw result payload."),
) -> None:
    """
    Apply a batch of record patches atomically.
    """
    _setup()
    batch = _load_batch(batch_file)
    result = UpsertOrchestrator(create_store()).run(batch)
    if as_json:
        typer.echo(json.dumps(result.to_payload(), indent=2))
    else:
        print_upsert_result(result)
    if not isinstance(result, UpsertSuccess):
        raise typer.Exit(code=1)


@app.command()
def percentiles(
    as_json: bool = typer.Option(False, "--json", help="Print the full snapshot as JSON."),
) -> None:
    """
    Compute percentile markers for the filterable numeric attributes.
    """
    _setup()
    snapshot = PercentileEngine(create_store()).compute()
    if as_json:
        typer.echo(json.dumps(snapshot, indent=2))
    else:
        print_percentiles(snapshot)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address (default from settings)."),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port (default from settings)."),
) -> None:
    """
    Run the HTTP API with uvicorn.
    """
    _setup()
    settings = get_settings()
    store = create_store(settings)
    store.ensure_schema()
    uvicorn.run(
        create_app(settings, store),
        host=host or settings.api_host,
        port=port or settings.api_port,
        log_config=None,
    )


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
