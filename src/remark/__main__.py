"""Entry point for the preview server."""

import argparse
import asyncio
import contextlib
import signal
import sys

import structlog
import uvicorn

from remark.app import create_app
from remark.config import Settings
from remark.lifecycle import GracefulShutdown
from remark.logging import configure_logging

logger = structlog.get_logger()


def parse_args(argv: list[str] | None = None) -> Settings:
    """Build settings from the environment, overridden by flags.

    Args:
        argv: Command-line arguments, defaults to sys.argv[1:].

    Returns:
        Effective configuration.
    """
    parser = argparse.ArgumentParser(
        prog="remark",
        description="Live preview of Markdown files in the browser.",
    )
    parser.add_argument("-p", "--port", type=int, help="port to run server on")
    parser.add_argument("-w", "--watch", help="whitespace-separated globs of files to watch")
    parser.add_argument("--root", help="directory the globs are resolved against")
    parser.add_argument("--host", help="address to bind")
    parser.add_argument("--debug", action="store_true", default=None, help="enable debug logging")
    args = parser.parse_args(argv)

    overrides = {
        "port": args.port,
        "patterns_raw": args.watch,
        "root": args.root,
        "host": args.host,
        "debug": args.debug,
    }
    return Settings(**{key: value for key, value in overrides.items() if value is not None})


def stop_cause(shutdown: GracefulShutdown) -> str:
    """Describe what ended a server run that started successfully."""
    if shutdown.exit_code != 0:
        return "fatal_error"
    if shutdown.is_triggered:
        return "signal"
    return "server_exit"


async def serve(settings: Settings) -> int:
    """Run uvicorn until a signal or a fatal error stops it.

    Args:
        settings: Server configuration.

    Returns:
        Process exit code.
    """
    shutdown = GracefulShutdown()
    app = create_app(settings, shutdown)

    config = uvicorn.Config(
        app,
        host=settings.host,
        port=settings.port,
        log_level="warning",
        access_log=False,
        timeout_graceful_shutdown=int(settings.shutdown_timeout),
    )
    server = uvicorn.Server(config)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, shutdown.trigger)

    async def shutdown_server() -> None:
        """Wait for shutdown signal and stop server."""
        await shutdown.wait_for_trigger()
        server.should_exit = True

    watcher = asyncio.create_task(shutdown_server())
    logger.info("remark_running", url=settings.base_url)
    try:
        await server.serve()
    except SystemExit as e:
        logger.critical("server_failed", code=e.code)
        return 1
    finally:
        watcher.cancel()

    if not server.started:
        logger.critical("server_failed", reason="startup did not complete")
        return 1
    logger.info("remark_stopped", cause=stop_cause(shutdown), exit_code=shutdown.exit_code)
    return shutdown.exit_code


def main() -> None:
    """Entry point for python -m remark."""
    settings = parse_args()
    configure_logging(debug=settings.debug, log_format=settings.log_format)

    code = 0
    with contextlib.suppress(KeyboardInterrupt):
        code = asyncio.run(serve(settings))

    sys.exit(code)


if __name__ == "__main__":
    main()
