"""FastAPI application exposing scan control and the catalog over REST."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Sequence

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from catalog.store import count_by_type, count_records, get_record, list_records, list_scan_runs, record_to_dict
from library.directories import DirectorySettings
from scan.api import ScanService
from scan.logs import ScanLogger
from scan.orchestrator import ScanOrchestrator
from scan.types import FileType, ScanSettings
from storage.manager import ConnectionManager

from .auth import APIKeyAuth
from .models import (
    CatalogRecordsResponse,
    CatalogSummaryResponse,
    DirectoriesResponse,
    DirectoryChangeResponse,
    DirectoryRequest,
    FileRecordModel,
    HealthResponse,
    ScanRunModel,
    ScanRunsResponse,
)

LOGGER = logging.getLogger("stlcatalog.api")


@dataclass(slots=True)
class APIServerConfig:
    """Runtime configuration for the FastAPI application."""

    storage: ConnectionManager
    scan_settings: ScanSettings = field(default_factory=ScanSettings)
    working_dir: Optional[Path] = None
    api_key: Optional[str] = None
    cors_origins: Sequence[str] = ()
    app_version: str = "dev"
    default_limit: int = 100
    max_page_size: int = 500


def create_app(config: APIServerConfig) -> FastAPI:
    """Create a FastAPI application bound to the given configuration.

    The catalog schema is migrated before the application is built, so a
    :class:`storage.MigrationError` prevents the server from starting.
    """

    storage = config.storage
    applied = storage.migrate()
    if applied:
        LOGGER.info("Applied %d schema migration(s) to %s", len(applied), storage.describe())

    app = FastAPI(
        title="STL Catalog Local API",
        version=config.app_version,
        docs_url="/docs",
        openapi_url="/openapi.json",
    )

    allowed_origins: List[str] = [origin for origin in config.cors_origins if origin]
    if allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=allowed_origins,
            allow_methods=["GET", "POST", "DELETE"],
            allow_headers=["*"],
        )

    auth_dependency = APIKeyAuth(config.api_key)
    directories = DirectorySettings(storage)
    orchestrator = ScanOrchestrator(
        storage,
        directories,
        settings=config.scan_settings,
        scan_logger=ScanLogger(config.working_dir),
    )
    scan_service = ScanService(orchestrator)
    max_page_size = max(1, int(config.max_page_size))
    app.state.scan_service = scan_service

    @app.on_event("shutdown")
    def _shutdown() -> None:
        if scan_service.scan_cancel():
            LOGGER.info("Cancelled running scan on shutdown")
            scan_service.scan_join(timeout=10.0)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):  # type: ignore[override]
        start = time.perf_counter()
        response: Optional[Response] = None
        try:
            response = await call_next(request)
            return response
        finally:
            duration_ms = (time.perf_counter() - start) * 1000
            status_code = response.status_code if response is not None else 500
            LOGGER.info(
                "%s %s -> %s (%.1f ms)",
                request.method,
                request.url.path,
                status_code,
                duration_ms,
            )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(_request: Request, exc: HTTPException):
        if isinstance(exc.detail, dict):
            content = {"error": str(exc.detail.get("message", "")), "code": exc.detail.get("code")}
        else:
            content = {"error": str(exc.detail)}
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(_request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "invalid parameters", "details": exc.errors()},
        )

    def clamp_limit(value: Optional[int]) -> int:
        parsed = int(value) if value is not None else int(config.default_limit)
        return min(max(1, parsed), max_page_size)

    @app.get("/v1/health", response_model=HealthResponse)
    def health_check(_: str = Depends(auth_dependency)) -> HealthResponse:
        return HealthResponse(
            ok=True,
            version=config.app_version,
            time_utc=datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            storage=storage.describe(),
            scan_state=orchestrator.state.value,
        )

    @app.get("/v1/dirs", response_model=DirectoriesResponse)
    def dirs_list(_: str = Depends(auth_dependency)) -> DirectoriesResponse:
        return DirectoriesResponse(directories=directories.list_dirs())

    @app.post("/v1/dirs", response_model=DirectoryChangeResponse)
    def dirs_add(request: DirectoryRequest, _: str = Depends(auth_dependency)) -> DirectoryChangeResponse:
        try:
            added = directories.add_dir(request.directory)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return DirectoryChangeResponse(changed=added, directories=directories.list_dirs())

    @app.delete("/v1/dirs", response_model=DirectoryChangeResponse)
    def dirs_remove(
        directory: str = Query(..., min_length=1),
        _: str = Depends(auth_dependency),
    ) -> DirectoryChangeResponse:
        removed = directories.remove_dir(directory)
        return DirectoryChangeResponse(changed=removed, directories=directories.list_dirs())

    @app.get("/v1/catalog", response_model=CatalogRecordsResponse)
    def catalog_list(
        file_type: Optional[FileType] = Query(None),
        limit: Optional[int] = Query(None, ge=1),
        offset: int = Query(0, ge=0),
        _: str = Depends(auth_dependency),
    ) -> CatalogRecordsResponse:
        page_size = clamp_limit(limit)
        with storage.connection() as conn:
            total = count_records(conn, file_type=file_type)
            records = list_records(conn, file_type=file_type, limit=page_size, offset=offset)
        next_offset = offset + len(records) if offset + len(records) < total else None
        return CatalogRecordsResponse(
            results=[FileRecordModel(**record_to_dict(record)) for record in records],
            total=total,
            limit=page_size,
            offset=offset,
            next_offset=next_offset,
        )

    @app.get("/v1/catalog/record", response_model=FileRecordModel)
    def catalog_record(path: str = Query(..., min_length=1), _: str = Depends(auth_dependency)) -> FileRecordModel:
        with storage.connection() as conn:
            record = get_record(conn, path)
        if record is None:
            raise HTTPException(status_code=404, detail="record not found")
        return FileRecordModel(**record_to_dict(record))

    @app.get("/v1/catalog/summary", response_model=CatalogSummaryResponse)
    def catalog_summary(_: str = Depends(auth_dependency)) -> CatalogSummaryResponse:
        with storage.connection() as conn:
            by_type = count_by_type(conn)
        return CatalogSummaryResponse(total=sum(by_type.values()), by_type=by_type)

    @app.get("/v1/catalog/runs", response_model=ScanRunsResponse)
    def catalog_runs(limit: int = Query(20, ge=1, le=200), _: str = Depends(auth_dependency)) -> ScanRunsResponse:
        with storage.connection() as conn:
            runs = list_scan_runs(conn, limit=limit)
        return ScanRunsResponse(runs=[ScanRunModel(**run) for run in runs])

    app.include_router(scan_service.router(), dependencies=[Depends(auth_dependency)])
    return app


__all__ = ["APIServerConfig", "create_app"]
