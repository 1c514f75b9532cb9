"""Bidirectional transport used by viewer sessions."""
import contextlib
from typing import Protocol

from starlette.websockets import WebSocket, WebSocketDisconnect, WebSocketState

POLICY_VIOLATION = 1008


class TransportClosed(Exception):
    """Raised when the peer has gone away or the connection is unusable."""


class SessionTransport(Protocol):
    """Message-oriented connection owned by exactly one viewer session."""

    async def accept(self) -> None:
        """Complete the handshake."""
        ...

    async def reject(self, location: str) -> None:
        """Refuse the connection and point the client at another page."""
        ...

    async def receive(self) -> None:
        """Wait for the next inbound message. Raises TransportClosed."""
        ...

    async def send(self, message: str) -> None:
        """Send a text message. Raises TransportClosed."""
        ...

    async def close(self) -> None:
        """Release the connection. Safe to call on a dead connection."""
        ...


class WebSocketTransport:
    """SessionTransport over a Starlette WebSocket."""

    def __init__(self, websocket: WebSocket) -> None:
        self._websocket = websocket

    async def accept(self) -> None:
        try:
            await self._websocket.accept()
        except (WebSocketDisconnect, RuntimeError) as e:
            raise TransportClosed(str(e)) from e

    async def reject(self, location: str) -> None:
        """Accept, then close with a policy code whose reason is the location.

        Closing before the handshake would surface as a bare HTTP 403, which
        carries no reason to the browser.
        """
        try:
            await self._websocket.accept()
            await self._websocket.close(code=POLICY_VIOLATION, reason=location)
        except (WebSocketDisconnect, RuntimeError) as e:
            raise TransportClosed(str(e)) from e

    async def receive(self) -> None:
        try:
            message = await self._websocket.receive()
        except (WebSocketDisconnect, RuntimeError) as e:
            raise TransportClosed(str(e)) from e

        if message["type"] == "websocket.disconnect":
            raise TransportClosed(f"client closed with code {message.get('code')}")

    async def send(self, message: str) -> None:
        try:
            await self._websocket.send_text(message)
        except (WebSocketDisconnect, RuntimeError) as e:
            raise TransportClosed(str(e)) from e

    async def close(self) -> None:
        if (
            self._websocket.application_state != WebSocketState.CONNECTED
            or self._websocket.client_state != WebSocketState.CONNECTED
        ):
            return
        with contextlib.suppress(WebSocketDisconnect, RuntimeError, OSError):
            await self._websocket.close()
