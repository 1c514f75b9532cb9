"""Registry of live viewer sessions."""

from collections.abc import Callable

import structlog

from remark.viewer.session import ViewerSession
from remark.viewer.transport import SessionTransport
from remark.watch.bus import ChangeEventBus
from remark.watch.watchset import WatchSet

logger = structlog.get_logger()


class ViewerHub:
    """Creates viewer sessions and tracks the ones still running.

    Sessions are independent; the hub only exists so the server can count
    them and close them all on shutdown.
    """

    def __init__(
        self,
        bus: ChangeEventBus,
        watch_set: WatchSet,
        render: Callable[[str], str],
    ) -> None:
        """Initialize viewer hub.

        Args:
            bus: Change event bus shared by all sessions.
            watch_set: Watch set used to validate targets.
            render: Render gateway passed to each session.
        """
        self._bus = bus
        self._watch_set = watch_set
        self._render = render
        self._sessions: dict[str, ViewerSession] = {}

    @property
    def active_sessions(self) -> int:
        """Number of sessions that have not finished yet."""
        return len(self._sessions)

    async def serve(self, target: str, transport: SessionTransport) -> ViewerSession:
        """Run a viewer session for one connection until it closes.

        Args:
            target: Path the client asked to view.
            transport: Connection for the session.

        Returns:
            The finished session.
        """
        session = ViewerSession(target, transport, self._bus, self._watch_set, self._render)
        self._sessions[session.id] = session
        logger.info(
            "viewer_connected",
            session_id=session.id,
            target=target,
            active_sessions=self.active_sessions,
        )
        try:
            await session.run()
        finally:
            self._sessions.pop(session.id, None)
            logger.info(
                "viewer_disconnected",
                session_id=session.id,
                active_sessions=self.active_sessions,
            )
        return session

    async def shutdown(self) -> None:
        """Close every remaining session."""
        for session in list(self._sessions.values()):
            await session.close("server_shutdown")

        logger.info(
            "viewer_hub_shutdown",
            active_sessions=self.active_sessions,
            dropped_events=self._bus.dropped_events,
        )
