"""
Record Catalog - atomic batch upserts and percentile markers for a small catalog.

This package provides:

- A batch create-or-update engine that reconciles record patches against the
  store under all-or-nothing semantics
- A nearest-rank percentile engine feeding listing range filters
- PostgreSQL and SQLite record stores behind one contract
- A FastAPI surface with bearer-token protection, and a Typer CLI
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from catalog.config import Settings, get_settings
from catalog.domain.models import Record, RecordPatch
from catalog.domain.results import UpsertFailure, UpsertResult, UpsertSuccess
from catalog.orchestrator import UpsertOrchestrator, upsert_records
from catalog.percentiles import PercentileEngine, percentile_markers, percentile_rank
from catalog.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Domain
    "Record",
    "RecordPatch",
    "UpsertFailure",
    "UpsertResult",
    "UpsertSuccess",
    # Engines
    "PercentileEngine",
    "UpsertOrchestrator",
    "percentile_markers",
    "percentile_rank",
    "upsert_records",
    # Logging
    "configure_logging",
    "get_logger",
]
