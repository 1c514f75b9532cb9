"""Viewer sessions streaming rendered files to connected clients."""
from remark.viewer.hub import ViewerHub
from remark.viewer.session import SessionState, ViewerSession
from remark.viewer.transport import SessionTransport, TransportClosed, WebSocketTransport

__all__ = [
    "SessionState",
    "SessionTransport",
    "TransportClosed",
    "ViewerHub",
    "ViewerSession",
    "WebSocketTransport",
]
