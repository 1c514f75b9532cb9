"""FastAPI application factory and lifespan management."""

import asyncio
import contextlib
import functools
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from remark.config import Settings
from remark.content.render import render_markdown
from remark.lifecycle import GracefulShutdown
from remark.middleware.logging import RequestLoggingMiddleware
from remark.routes import health, pages, watch
from remark.viewer import ViewerHub
from remark.watch import (
    ChangeEvent,
    ChangeEventBus,
    GlobResolver,
    ObserverBackend,
    PatternError,
    WatchSet,
    run_notification_loop,
    run_resolver_loop,
)

logger = structlog.get_logger()

API_PREFIX = "/api/v1"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application lifecycle events.

    Builds the watch pipeline (resolver, bus, observer backend, watch
    set, viewer hub), resolves the patterns once so the first requests
    see a populated watch list, then starts the resolver and notification
    loops. Any failure before yielding aborts startup.

    Args:
        app: FastAPI application instance.

    Yields:
        None during application runtime.
    """
    settings: Settings = app.state.settings
    shutdown: GracefulShutdown = app.state.shutdown
    logger.info("remark_startup", url=settings.base_url, patterns=settings.patterns)

    try:
        resolver = GlobResolver(settings.patterns, settings.root)
    except PatternError as e:
        logger.critical("startup_failed", error=str(e))
        raise

    bus = ChangeEventBus(
        queue_size=settings.event_queue_size,
        max_subscribers=settings.max_sessions,
    )
    queue: asyncio.Queue[ChangeEvent] = asyncio.Queue()
    backend = ObserverBackend(settings.root, asyncio.get_running_loop(), queue)
    watch_set = WatchSet(backend, bus, base_url=settings.base_url)
    render = functools.partial(render_markdown, root=settings.root)
    hub = ViewerHub(bus, watch_set, render)

    app.state.bus = bus
    app.state.backend = backend
    app.state.watch_set = watch_set
    app.state.render = render
    app.state.hub = hub

    try:
        backend.start()
        watch_set.reconcile(await asyncio.to_thread(resolver.resolve))
    except OSError as e:
        logger.critical("startup_failed", error=str(e))
        backend.stop()
        raise

    tasks = [
        asyncio.create_task(run_notification_loop(queue, watch_set)),
        asyncio.create_task(
            run_resolver_loop(
                resolver,
                watch_set,
                settings.glob_interval_ms / 1000.0,
                on_fatal=shutdown.fail,
            )
        ),
    ]
    logger.info("remark_ready", watched_files=len(watch_set))

    try:
        yield
    finally:
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task

        await hub.shutdown()
        backend.stop()
        logger.info("remark_shutdown")


def create_app(
    settings: Settings | None = None,
    shutdown: GracefulShutdown | None = None,
) -> FastAPI:
    """Factory function to create configured FastAPI application.

    Args:
        settings: Configuration instance. Creates default if None.
        shutdown: Shutdown coordinator notified of fatal errors.

    Returns:
        Configured FastAPI application.
    """
    if settings is None:
        settings = Settings()

    app = FastAPI(
        title="remark",
        version="0.1.0",
        lifespan=lifespan,
        docs_url=f"{API_PREFIX}/docs" if settings.debug else None,
        redoc_url=None,
        openapi_url=f"{API_PREFIX}/openapi.json" if settings.debug else None,
    )
    app.state.settings = settings
    app.state.shutdown = shutdown if shutdown is not None else GracefulShutdown()

    probe_paths = {f"{API_PREFIX}{route.path}" for route in health.router.routes}
    app.add_middleware(RequestLoggingMiddleware, quiet_paths=probe_paths | {"/sidebar"})

    app.include_router(health.router, prefix=API_PREFIX)
    app.include_router(watch.router)
    app.include_router(pages.router)

    return app
