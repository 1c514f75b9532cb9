"""Browser-facing pages: index, file list, rendered fragments and assets."""
import asyncio
from urllib.parse import parse_qs, urlparse

import structlog
from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import FileResponse, HTMLResponse, RedirectResponse, Response

from remark.content.pages import index_page, live_fragment, sidebar
from remark.content.paths import SecurityError, resolve_asset
from remark.content.render import RenderError
from remark.watch.watchset import WatchSet, sorted_for_display

logger = structlog.get_logger()

router = APIRouter(tags=["pages"])


def _current_filename(request: Request) -> str:
    """Read the viewed file from the htmx current-URL header."""
    current_url = request.headers.get("HX-Current-URL", "")
    values = parse_qs(urlparse(current_url).query).get("filename", [])
    return values[0] if values else ""


@router.get("/", response_class=HTMLResponse)
async def index(filename: str = Query(default="")) -> HTMLResponse:
    """Serve the page shell, optionally opened on one file.

    Args:
        filename: File to show in the viewer.

    Returns:
        Complete HTML page.
    """
    return HTMLResponse(index_page(filename))


@router.get("/sidebar", response_class=HTMLResponse)
async def file_index(request: Request) -> HTMLResponse:
    """List every watched file, highlighting the one being viewed.

    Args:
        request: FastAPI request object.

    Returns:
        HTML fragment with one link per watched file.
    """
    watch_set: WatchSet = request.app.state.watch_set
    paths = sorted_for_display(watch_set.snapshot())
    return HTMLResponse(sidebar(paths, _current_filename(request)))


@router.get("/markdown", response_class=HTMLResponse)
async def markdown(request: Request, filename: str = Query(default="")) -> Response:
    """Render a watched file and connect the viewer to its live stream.

    Unknown files send the client back to the index instead of failing.

    Args:
        request: FastAPI request object.
        filename: Watched file to render.

    Returns:
        HTML fragment, or a redirect to the index.

    Raises:
        HTTPException: If the file is watched but cannot be rendered.
    """
    watch_set: WatchSet = request.app.state.watch_set
    if filename not in watch_set:
        logger.info("markdown_redirect", filename=filename)
        if request.headers.get("HX-Request"):
            return Response(status_code=200, headers={"HX-Redirect": "/"})
        return RedirectResponse("/", status_code=308)

    try:
        rendered = await asyncio.to_thread(request.app.state.render, filename)
    except RenderError as e:
        logger.error("render_failed", filename=filename, error=str(e))
        raise HTTPException(status_code=500, detail=str(e)) from e

    return HTMLResponse(live_fragment(filename, rendered))


@router.get("/{asset_path:path}", include_in_schema=False)
async def asset(request: Request, asset_path: str) -> FileResponse:
    """Serve images referenced by rendered documents.

    Only image fetches are answered, and only from inside the watch root.

    Args:
        request: FastAPI request object.
        asset_path: Requested path relative to the watch root.

    Returns:
        The file contents.

    Raises:
        HTTPException: 404 for anything that is not a servable image.
    """
    if request.headers.get("Sec-Fetch-Dest") != "image":
        raise HTTPException(status_code=404, detail="Not Found")

    try:
        path = resolve_asset(request.app.state.settings.root, asset_path)
    except SecurityError as e:
        logger.warning("asset_rejected", path=e.path, reason=str(e))
        raise HTTPException(status_code=404, detail="Not Found") from e

    if not path.is_file():
        raise HTTPException(status_code=404, detail="Not Found")

    return FileResponse(path)
