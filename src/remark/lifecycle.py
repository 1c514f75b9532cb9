"""Shutdown coordinator shared by the server and the watch loops."""
import asyncio

import structlog

logger = structlog.get_logger()


class GracefulShutdown:
    """Coordinates shutdown across async tasks.

    Signal handlers call trigger(); background loops that hit an
    unrecoverable error call fail(), which also records a non-zero exit
    code for the process.

    Attributes:
        is_triggered: Whether shutdown has been triggered.
        exit_code: Process exit code to use once the server stops.
    """

    def __init__(self) -> None:
        """Initialize shutdown coordinator."""
        self._triggered = False
        self._event = asyncio.Event()
        self.exit_code = 0

    @property
    def is_triggered(self) -> bool:
        """Check if shutdown has been triggered.

        Returns:
            True if shutdown signal received.
        """
        return self._triggered

    def trigger(self) -> None:
        """Signal all waiting tasks to begin shutdown.

        Idempotent - calling multiple times has no additional effect.
        """
        if self._triggered:
            return
        logger.info("shutdown_triggered")
        self._triggered = True
        self._event.set()

    def fail(self, reason: str) -> None:
        """Trigger shutdown because of a fatal error.

        Args:
            reason: Short description logged with the failure.
        """
        logger.critical("fatal_error", reason=reason)
        self.exit_code = 1
        self.trigger()

    async def wait_for_trigger(self) -> None:
        """Wait indefinitely for shutdown signal."""
        await self._event.wait()
