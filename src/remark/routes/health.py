"""Health check endpoints for liveness and readiness probes."""
from pathlib import Path
from typing import Literal

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

router = APIRouter(prefix="/health", tags=["health"])


class LivenessResponse(BaseModel):
    """Response model for liveness probe.

    Attributes:
        status: Always 'alive' when process is running.
    """

    status: Literal["alive"]


class ReadinessCheck(BaseModel):
    """Individual dependency check result.

    Attributes:
        name: Identifier for the dependency being checked.
        status: Result of the check ('ok' or 'failed').
        message: Error details when status is 'failed'.
    """

    name: str
    status: Literal["ok", "failed"]
    message: str | None = None


class ReadinessResponse(BaseModel):
    """Response model for readiness probe.

    Attributes:
        status: Overall readiness ('ready' or 'not_ready').
        checks: List of individual dependency check results.
        watched_files: Number of files on the watch list.
        active_sessions: Number of connected viewers.
    """

    status: Literal["ready", "not_ready"]
    checks: list[ReadinessCheck]
    watched_files: int
    active_sessions: int


def _check_directory(path: str) -> ReadinessCheck:
    """Verify the watch root exists and is listable.

    Args:
        path: Path to directory.

    Returns:
        Check result with status and optional error message.
    """
    try:
        p = Path(path)
        if p.exists() and p.is_dir():
            next(p.iterdir(), None)
            return ReadinessCheck(name=f"dir:{path}", status="ok")
        return ReadinessCheck(
            name=f"dir:{path}",
            status="failed",
            message="Directory not found",
        )
    except PermissionError as e:
        return ReadinessCheck(
            name=f"dir:{path}",
            status="failed",
            message=f"Permission denied: {e}",
        )
    except OSError as e:
        return ReadinessCheck(
            name=f"dir:{path}",
            status="failed",
            message=str(e),
        )


def _check_observer(request: Request) -> ReadinessCheck:
    """Verify the filesystem observer thread is running.

    Args:
        request: FastAPI request object.

    Returns:
        Check result with status and optional error message.
    """
    backend = getattr(request.app.state, "backend", None)
    if backend is not None and backend.is_alive:
        return ReadinessCheck(name="observer", status="ok")
    return ReadinessCheck(
        name="observer",
        status="failed",
        message="Filesystem observer is not running",
    )


@router.get("/live", response_model=LivenessResponse)
async def liveness() -> LivenessResponse:
    """Liveness probe endpoint.

    Returns:
        Liveness status response.
    """
    return LivenessResponse(status="alive")


@router.get("/ready", response_model=ReadinessResponse)
async def readiness(request: Request) -> JSONResponse:
    """Readiness probe endpoint.

    Validates that the watch root is accessible and the filesystem
    observer is running. Returns 200 if all checks pass, 503 if any fail.

    Args:
        request: FastAPI request object.

    Returns:
        Readiness status with individual check results.
    """
    checks = [
        _check_directory(request.app.state.settings.root),
        _check_observer(request),
    ]
    all_ok = all(c.status == "ok" for c in checks)
    watch_set = getattr(request.app.state, "watch_set", None)
    hub = getattr(request.app.state, "hub", None)
    response = ReadinessResponse(
        status="ready" if all_ok else "not_ready",
        checks=checks,
        watched_files=len(watch_set) if watch_set is not None else 0,
        active_sessions=hub.active_sessions if hub is not None else 0,
    )
    code = status.HTTP_200_OK if all_ok else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(content=response.model_dump(), status_code=code)
