"""Command layer and HTTP routes for scan control."""
from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from .errors import AlreadyRunning, NoDirectories
from .orchestrator import ScanOrchestrator


class ProgressResponse(BaseModel):
    generation: Optional[str] = None
    state: str
    queued: int
    running: int
    completed: int
    failed: int
    elapsed_ms: int
    cancelled: bool = False


class StartResponse(BaseModel):
    generation: str
    progress: ProgressResponse


class JoinRequest(BaseModel):
    timeout: Optional[float] = Field(default=None, ge=0)


class JoinResponse(BaseModel):
    idle: bool
    progress: ProgressResponse


class ScanService:
    """Facade over :class:`ScanOrchestrator` used by the CLI and HTTP layer."""

    def __init__(self, orchestrator: ScanOrchestrator) -> None:
        self._orchestrator = orchestrator

    @property
    def orchestrator(self) -> ScanOrchestrator:
        return self._orchestrator

    def scan_start(self) -> None:
        self._orchestrator.start()

    def scan_progress(self) -> Dict[str, Any]:
        return self._orchestrator.progress().as_dict()

    def scan_join(self, timeout: Optional[float] = None) -> bool:
        return self._orchestrator.join(timeout)

    def scan_cancel(self) -> bool:
        return self._orchestrator.cancel()

    def router(self) -> APIRouter:
        router = APIRouter(prefix="/v1/scan", tags=["scan"])

        @router.post("/start", response_model=StartResponse, status_code=status.HTTP_202_ACCEPTED)
        def start() -> StartResponse:
            try:
                generation = self._orchestrator.start()
            except AlreadyRunning as exc:
                raise HTTPException(status_code=409, detail={"code": exc.code, "message": str(exc)}) from exc
            except NoDirectories as exc:
                raise HTTPException(status_code=400, detail={"code": exc.code, "message": str(exc)}) from exc
            return StartResponse(generation=generation, progress=ProgressResponse(**self.scan_progress()))

        @router.get("/progress", response_model=ProgressResponse)
        def progress() -> ProgressResponse:
            return ProgressResponse(**self.scan_progress())

        @router.post("/join", response_model=JoinResponse)
        def join(request: Optional[JoinRequest] = None) -> JoinResponse:
            timeout = request.timeout if request is not None else None
            idle = self.scan_join(timeout)
            return JoinResponse(idle=idle, progress=ProgressResponse(**self.scan_progress()))

        @router.post("/cancel", response_model=Dict[str, bool])
        def cancel() -> Dict[str, bool]:
            return {"cancelled": self.scan_cancel()}

        return router


__all__ = ["ScanService"]
