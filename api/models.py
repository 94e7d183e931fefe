"""Pydantic schemas for the STL catalog local API."""
from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Health response summarising server readiness and scan state."""

    ok: bool = Field(True, description="Indicates the API server is reachable.")
    version: str = Field(..., description="Application version string.")
    time_utc: str = Field(..., description="Current UTC timestamp in ISO8601 format.")
    storage: str = Field(..., description="Catalog storage backend and location.")
    scan_state: str = Field(..., description="Current scan orchestrator state.")


class DirectoriesResponse(BaseModel):
    directories: List[str] = Field(default_factory=list, description="Configured directories, alphabetical.")


class DirectoryRequest(BaseModel):
    directory: str = Field(..., min_length=1, description="Directory to scan; '~' is expanded at scan time.")


class DirectoryChangeResponse(BaseModel):
    changed: bool = Field(..., description="False when the request was a no-op.")
    directories: List[str] = Field(default_factory=list)


class FileRecordModel(BaseModel):
    """A catalogued file keyed by canonical path."""

    path: str
    file_type: str = Field(..., description="stl, thingiverse_archive, other_archive, image or readme.")
    title: Optional[str] = None
    author: Optional[str] = None
    thing_id: Optional[str] = None
    size_bytes: Optional[int] = None
    modified_utc: Optional[str] = None
    model_count: Optional[int] = None
    image_count: Optional[int] = None
    generation: Optional[str] = None


class CatalogRecordsResponse(BaseModel):
    results: List[FileRecordModel]
    total: int = Field(..., ge=0)
    limit: int = Field(..., ge=1)
    offset: int = Field(..., ge=0)
    next_offset: Optional[int] = Field(None, description="Offset of the next page when more rows exist.")


class CatalogSummaryResponse(BaseModel):
    total: int = Field(..., ge=0)
    by_type: Dict[str, int] = Field(default_factory=dict)


class ScanRunModel(BaseModel):
    generation: str
    started_utc: str
    ended_utc: Optional[str] = None
    queued: int = 0
    completed: int = 0
    failed: int = 0
    records: int = 0
    cancelled: bool = False


class ScanRunsResponse(BaseModel):
    runs: List[ScanRunModel] = Field(default_factory=list)


__all__ = [
    "CatalogRecordsResponse",
    "CatalogSummaryResponse",
    "DirectoriesResponse",
    "DirectoryChangeResponse",
    "DirectoryRequest",
    "FileRecordModel",
    "HealthResponse",
    "ScanRunModel",
    "ScanRunsResponse",
]
