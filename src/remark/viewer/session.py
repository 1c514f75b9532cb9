"""Viewer sessions: one live connection following one watched file."""

import asyncio
import uuid
from collections.abc import AsyncIterator, Callable
from enum import Enum

import structlog

from remark.content.render import RenderError
from remark.viewer.transport import SessionTransport, TransportClosed
from remark.watch.bus import ChangeEventBus
from remark.watch.types import ChangeEvent
from remark.watch.watchset import WatchSet

logger = structlog.get_logger()

REDIRECT_LOCATION = "/"


class SessionState(str, Enum):
    """Lifecycle states of a viewer session."""

    CONNECTING = "connecting"
    ACTIVE = "active"
    CLOSED = "closed"


class ViewerSession:
    """Pushes fresh renders of one file to one client.

    While active the session waits on two things at once: inbound
    transport messages, which only signal liveness, and change events for
    its target. Whichever loop sees the end first calls close(); the
    state flag makes every later call a no-op.

    Attributes:
        id: Unique session identifier.
        target: Watched path this session displays.
        state: Current lifecycle state.
        pushes: Number of renders delivered to the client.
    """

    def __init__(
        self,
        target: str,
        transport: SessionTransport,
        bus: ChangeEventBus,
        watch_set: WatchSet,
        render: Callable[[str], str],
    ) -> None:
        """Initialize viewer session.

        Args:
            target: Path the client asked to view.
            transport: Connection owned by this session.
            bus: Change event bus to listen on.
            watch_set: Watch set used to validate the target.
            render: Render gateway, called in a worker thread.
        """
        self.id = str(uuid.uuid4())
        self.target = target
        self.state = SessionState.CONNECTING
        self.pushes = 0
        self._transport = transport
        self._bus = bus
        self._watch_set = watch_set
        self._render = render
        self._subscriber_id: str | None = None
        self._events: AsyncIterator[ChangeEvent] | None = None
        self._tasks: list[asyncio.Task[None]] = []
        self._log = logger.bind(session_id=self.id, target=target)

    async def activate(self) -> bool:
        """Validate the target and complete the handshake.

        Returns:
            True if the session is now active, False if it was rejected.
        """
        if self.target not in self._watch_set:
            self._log.info("session_rejected", reason="not_watched")
            await self._reject()
            return False

        try:
            self._subscriber_id, self._events = await self._bus.subscribe(self.target)
        except ValueError as e:
            self._log.warning("session_rejected", reason=str(e))
            await self._reject()
            return False

        try:
            await self._transport.accept()
        except TransportClosed as e:
            self._log.warning("session_handshake_failed", error=str(e))
            await self.close("handshake_failed")
            return False

        self.state = SessionState.ACTIVE
        self._log.info("session_active")
        return True

    async def _reject(self) -> None:
        self.state = SessionState.CLOSED
        try:
            await self._transport.reject(REDIRECT_LOCATION)
        except TransportClosed:
            self._log.debug("session_reject_failed")

    async def run(self) -> None:
        """Activate the session and serve it until it closes."""
        if not await self.activate():
            return

        self._tasks = [
            asyncio.create_task(self._detect_close()),
            asyncio.create_task(self._pump_events()),
        ]
        try:
            await asyncio.wait(self._tasks, return_when=asyncio.FIRST_COMPLETED)
        finally:
            await self.close("session_ended")
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def _detect_close(self) -> None:
        try:
            while True:
                await self._transport.receive()
        except TransportClosed:
            await self.close("client_closed")

    async def _pump_events(self) -> None:
        if self._events is None:
            return

        async for event in self._events:
            if event.path != self.target:
                continue

            try:
                rendered = await asyncio.to_thread(self._render, event.path)
            except RenderError as e:
                self._log.warning("render_failed", error=str(e), event_id=event.id)
                continue

            if self.state is not SessionState.ACTIVE:
                return

            try:
                await self._transport.send(rendered)
            except TransportClosed as e:
                self._log.info("push_transport_closed", error=str(e))
                await self.close("write_failed")
                return
            except OSError as e:
                self._log.warning("push_failed", error=str(e), event_id=event.id)
                continue

            self.pushes += 1
            self._log.debug("pushed", event_id=event.id, pushes=self.pushes)

    async def close(self, reason: str) -> bool:
        """Move to CLOSED and release everything the session owns.

        Only the first call does any work.

        Args:
            reason: Why the session is closing, for the log.

        Returns:
            True if this call performed the transition.
        """
        if self.state is SessionState.CLOSED:
            return False
        self.state = SessionState.CLOSED

        current = asyncio.current_task()
        for task in self._tasks:
            if task is not current:
                task.cancel()

        if self._subscriber_id is not None:
            await self._bus.unsubscribe(self.target, self._subscriber_id)

        await self._transport.close()
        self._log.info("session_closed", reason=reason, pushes=self.pushes)
        return True
