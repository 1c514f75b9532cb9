"""WebSocket endpoint streaming re-rendered files to viewers."""

from typing import TYPE_CHECKING

from fastapi import APIRouter, Query, WebSocket

from remark.viewer.transport import WebSocketTransport

if TYPE_CHECKING:
    from remark.viewer.hub import ViewerHub

router = APIRouter(tags=["watch"])


@router.websocket("/watch")
async def watch(
    websocket: WebSocket,
    filename: str = Query(default="", description="Watched file to follow"),
) -> None:
    """Push a fresh render of the file every time it changes.

    Connections for files that are not watched are closed with code 1008
    and the reason "/", telling the client to go back to the index.

    Args:
        websocket: Incoming WebSocket connection.
        filename: Watched file to follow.
    """
    hub: ViewerHub = websocket.app.state.hub
    await hub.serve(filename, WebSocketTransport(websocket))
