"""Viewer session lifecycle and fan-out tests."""

import asyncio
from collections.abc import Callable

import pytest

from remark.viewer.hub import ViewerHub
from remark.viewer.session import SessionState, ViewerSession
from remark.watch.bus import ChangeEventBus
from remark.watch.types import ChangeEvent, ChangeKind
from remark.watch.watchset import WatchSet


async def wait_until(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    """Poll until predicate holds or fail the test."""
    for _ in range(int(timeout / 0.01)):
        if predicate():
            return
        await asyncio.sleep(0.01)
    raise AssertionError("condition not reached")


def modified(path: str) -> ChangeEvent:
    return ChangeEvent(kind=ChangeKind.MODIFIED, path=path)


@pytest.fixture
def start_session(watch_set: WatchSet, bus: ChangeEventBus, make_transport, render):
    """Start a session as a task and wait for it to become active."""
    started: list[asyncio.Task[None]] = []

    async def start(target: str):
        transport = make_transport()
        session = ViewerSession(target, transport, bus, watch_set, render)
        task = asyncio.create_task(session.run())
        started.append(task)
        await wait_until(lambda: session.state is not SessionState.CONNECTING)
        return session, transport, task

    return start


@pytest.mark.asyncio
async def test_scenario_modify_then_delete(watch_set: WatchSet, start_session) -> None:
    """One push per modification, none after removal, active until closed."""
    watch_set.reconcile(["docs/a.md"])
    assert watch_set.snapshot() == ("docs/a.md",)

    session, transport, task = await start_session("docs/a.md")
    assert session.state is SessionState.ACTIVE
    assert transport.accepted

    await watch_set.handle(modified("docs/a.md"))
    pushed = await asyncio.wait_for(transport.outbox.get(), 1.0)
    assert "docs/a.md" in pushed
    assert session.pushes == 1

    await watch_set.handle(ChangeEvent(kind=ChangeKind.REMOVED, path="docs/a.md"))
    assert watch_set.snapshot() == ()
    await watch_set.handle(modified("docs/a.md"))
    await asyncio.sleep(0.05)
    assert transport.sent == [pushed]
    assert session.state is SessionState.ACTIVE

    transport.disconnect()
    await asyncio.wait_for(task, 1.0)
    assert session.state is SessionState.CLOSED


@pytest.mark.asyncio
async def test_unwatched_target_is_rejected(start_session) -> None:
    """A target outside the watch list redirects the client to the index."""
    session, transport, task = await start_session("docs/missing.md")
    await asyncio.wait_for(task, 1.0)

    assert session.state is SessionState.CLOSED
    assert transport.rejected_to == "/"
    assert not transport.accepted


@pytest.mark.asyncio
async def test_session_limit_rejects(watch_set: WatchSet, make_transport, render) -> None:
    """When the bus is full the session is rejected instead of activated."""
    watch_set.reconcile(["docs/a.md"])
    bus = ChangeEventBus(max_subscribers=0)
    transport = make_transport()
    session = ViewerSession("docs/a.md", transport, bus, watch_set, render)

    assert not await session.activate()
    assert transport.rejected_to == "/"
    assert session.state is SessionState.CLOSED


@pytest.mark.asyncio
async def test_only_target_events_are_pushed(
    watch_set: WatchSet, bus: ChangeEventBus, start_session
) -> None:
    """Events for other files never reach the session."""
    watch_set.reconcile(["docs/a.md", "docs/b.md"])
    session, transport, _ = await start_session("docs/a.md")

    await watch_set.handle(modified("docs/b.md"))
    await bus.publish(modified("docs/b.md"))
    await watch_set.handle(modified("docs/a.md"))

    pushed = await asyncio.wait_for(transport.outbox.get(), 1.0)
    await asyncio.sleep(0.05)
    assert transport.sent == [pushed]
    assert "docs/a.md" in pushed
    await session.close("test_done")


@pytest.mark.asyncio
async def test_wildcard_events_are_filtered(watch_set: WatchSet, bus: ChangeEventBus, start_session) -> None:
    """The session ignores events whose subject is not its target."""
    watch_set.reconcile(["docs/a.md"])
    session, transport, _ = await start_session("docs/a.md")

    # Sneak an event for another path onto the session's own queue.
    for queue in bus._subscribers["docs/a.md"].values():
        queue.put_nowait(modified("docs/other.md"))
    await asyncio.sleep(0.05)

    assert transport.sent == []
    assert session.state is SessionState.ACTIVE
    await session.close("test_done")


@pytest.mark.asyncio
async def test_render_failure_keeps_session_active(watch_set: WatchSet, start_session) -> None:
    """A file that fails to render is skipped, not fatal."""
    watch_set.reconcile(["docs/broken.md"])
    session, transport, _ = await start_session("docs/broken.md")

    await watch_set.handle(modified("docs/broken.md"))
    await asyncio.sleep(0.05)

    assert transport.sent == []
    assert session.state is SessionState.ACTIVE
    await session.close("test_done")


@pytest.mark.asyncio
async def test_inbound_messages_are_ignored(watch_set: WatchSet, start_session) -> None:
    """Client messages only prove liveness."""
    watch_set.reconcile(["docs/a.md"])
    session, transport, _ = await start_session("docs/a.md")

    transport.client_message("hello")
    transport.client_message("again")
    await asyncio.sleep(0.05)

    assert session.state is SessionState.ACTIVE
    await session.close("test_done")


@pytest.mark.asyncio
async def test_write_failure_closes_session(watch_set: WatchSet, start_session) -> None:
    """A dead transport found while pushing closes the session."""
    watch_set.reconcile(["docs/a.md"])
    session, transport, task = await start_session("docs/a.md")
    transport.fail_sends = True

    await watch_set.handle(modified("docs/a.md"))
    await asyncio.wait_for(task, 1.0)

    assert session.state is SessionState.CLOSED
    assert transport.close_calls == 1


@pytest.mark.asyncio
async def test_close_happens_exactly_once(watch_set: WatchSet, bus: ChangeEventBus, start_session) -> None:
    """Both loops may see the end, but only the first performs teardown."""
    watch_set.reconcile(["docs/a.md"])
    session, transport, task = await start_session("docs/a.md")

    assert await session.close("first") is True
    transport.disconnect()
    assert await session.close("second") is False
    await asyncio.wait_for(task, 1.0)

    assert transport.close_calls == 1
    assert bus.subscriber_count == 0


@pytest.mark.asyncio
async def test_closing_one_session_leaves_others(
    watch_set: WatchSet, bus: ChangeEventBus, start_session
) -> None:
    """Closing a session affects neither other sessions nor the watch list."""
    watch_set.reconcile(["docs/a.md"])
    first, first_transport, first_task = await start_session("docs/a.md")
    second, second_transport, _ = await start_session("docs/a.md")

    first_transport.disconnect()
    await asyncio.wait_for(first_task, 1.0)

    assert first.state is SessionState.CLOSED
    assert second.state is SessionState.ACTIVE
    assert watch_set.snapshot() == ("docs/a.md",)

    await watch_set.handle(modified("docs/a.md"))
    await asyncio.wait_for(second_transport.outbox.get(), 1.0)
    assert first_transport.sent == []
    await second.close("test_done")


@pytest.mark.asyncio
async def test_hub_tracks_sessions(watch_set: WatchSet, bus: ChangeEventBus, make_transport, render) -> None:
    """The hub counts running sessions and closes them on shutdown."""
    watch_set.reconcile(["docs/a.md"])
    hub = ViewerHub(bus, watch_set, render)
    transport = make_transport()

    task = asyncio.create_task(hub.serve("docs/a.md", transport))
    await wait_until(lambda: transport.accepted)
    assert hub.active_sessions == 1

    await hub.shutdown()
    session = await asyncio.wait_for(task, 1.0)

    assert session.state is SessionState.CLOSED
    assert hub.active_sessions == 0
