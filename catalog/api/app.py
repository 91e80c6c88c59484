"""
FastAPI application exposing the catalog.

Routes
------
GET  /up                       liveness probe
GET  /api/metrics              app/health metrics (token only when configured)
GET  /api/records              filtered JSON listing (bearer token)
POST /api/records/bulk_upsert  atomic batch upsert (bearer token)
GET  /records                  listing ordered by key with percentile markers
GET  /records/{record_id}      single record

Build the app with `create_app(settings, store)`; both collaborators are
injected so tests and the CLI can swap the store and credentials.
"""

from __future__ import annotations

import re
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Query, Request, status
from fastapi.responses import JSONResponse

from catalog import __version__
from catalog.api.auth import BearerTokenGate
from catalog.api.errors import ApiError, install_error_handlers
from catalog.api.schemas import (
    BulkUpsertRequest,
    ListingRecord,
    ListingResponse,
    MetricsResponse,
    RecordListResponse,
)
from catalog.config import Settings, get_settings
from catalog.domain.models import Record
from catalog.domain.results import UpsertSuccess
from catalog.infrastructure.db_factory import PoolManager
from catalog.infrastructure.store import RecordStore, create_store
from catalog.orchestrator import UpsertOrchestrator
from catalog.percentiles import PercentileEngine, PercentileSnapshot, percentile_rank
from catalog.utils.logging import get_logger

log = get_logger(__name__)


def get_store(request: Request) -> RecordStore:
    return request.app.state.store


_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def _parse_limit(raw: Optional[str]) -> Optional[int]:
    """Leading integer of `raw`, 0 when there is none; blank means no limit."""
    if raw is None or not raw.strip():
        return None
    match = _LEADING_INT.match(raw)
    return max(int(match.group(1)), 0) if match else 0


def _listing_record(record: Record, snapshot: PercentileSnapshot) -> ListingRecord:
    ranks = {
        attribute: percentile_rank(getattr(record, attribute), markers)
        for attribute, markers in snapshot.items()
        if getattr(record, attribute) is not None
    }
    return ListingRecord(
        **record.model_dump(exclude={"average_metrics"}), percentile_ranks=ranks
    )


def create_app(
    settings: Optional[Settings] = None, store: Optional[RecordStore] = None
) -> FastAPI:
    settings = settings or get_settings()
    store = store if store is not None else create_store(settings)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        try:
            yield
        finally:
            if settings.db_backend == "postgres":
                PoolManager().close_all()

    app = FastAPI(title=settings.app_name, version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    install_error_handlers(app, debug=settings.app_env.lower() == "development")

    require_api_token = BearerTokenGate(settings.api_token)
    if not require_api_token.configured:
        log.warning("CATALOG_API_TOKEN is not set; protected routes will answer 500")
    metrics_gate = BearerTokenGate(
        settings.metrics_api_token if settings.is_production else None,
        optional=True,
        unauthorized_message="Unauthorized",
    )

    @app.get("/up")
    def up() -> dict:
        return {"status": "ok"}

    @app.get("/api/metrics", dependencies=[Depends(metrics_gate)])
    def metrics(store: RecordStore = Depends(get_store)) -> Any:
        timestamp = datetime.now(timezone.utc).isoformat()
        try:
            database_ok = store.ping()
            custom: Dict[str, Any] = {}
            if database_ok:
                custom["records"] = {
                    "total": store.count(),
                    "by_status": store.count_by_status(),
                }
            body = MetricsResponse(
                app_name=settings.app_name,
                environment=settings.app_env,
                timestamp=timestamp,
                version=__version__,
                health={"database": database_ok},
                custom=custom,
            )
        except Exception as exc:  # noqa: BLE001 - metrics failures are reported, not raised
            log.exception("Metrics collection failed")
            raise ApiError(
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                {
                    "error": "Metrics collection failed",
                    "message": str(exc),
                    "timestamp": timestamp,
                },
            ) from exc
        return body.model_dump()

    @app.get(
        "/api/records",
        response_model=RecordListResponse,
        dependencies=[Depends(require_api_token)],
    )
    def list_records(
        status_filter: Optional[str] = Query(default=None, alias="status"),
        category: Optional[str] = Query(default=None),
        limit: Optional[str] = Query(default=None),
        store: RecordStore = Depends(get_store),
    ) -> RecordListResponse:
        records = store.list_records(
            status=status_filter or None,
            category=category or None,
            limit=_parse_limit(limit),
        )
        return RecordListResponse(count=len(records), records=records)

    @app.post("/api/records/bulk_upsert", dependencies=[Depends(require_api_token)])
    def bulk_upsert(
        request: BulkUpsertRequest, store: RecordStore = Depends(get_store)
    ) -> JSONResponse:
        result = UpsertOrchestrator(store).run(request.records)
        status_code = (
            status.HTTP_201_CREATED
            if isinstance(result, UpsertSuccess)
            else status.HTTP_422_UNPROCESSABLE_ENTITY
        )
        return JSONResponse(status_code=status_code, content=result.to_payload())

    @app.get("/records", response_model=ListingResponse)
    def listing(store: RecordStore = Depends(get_store)) -> ListingResponse:
        records = store.list_records(order_by="key")
        snapshot = PercentileEngine(store).compute()
        return ListingResponse(
            count=len(records),
            records=[_listing_record(record, snapshot) for record in records],
            percentiles=snapshot,
        )

    @app.get("/records/{record_id}", response_model=Record)
    def show_record(record_id: int, store: RecordStore = Depends(get_store)) -> Record:
        record = store.get(record_id)
        if record is None:
            raise ApiError(status.HTTP_404_NOT_FOUND, {"error": "Record not found"})
        return record

    return app


__all__ = ["create_app", "get_store"]
