"""Pytest configuration and fixtures."""

import asyncio
import sys
from collections.abc import Callable, Iterator
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from fastapi.testclient import TestClient

from remark.app import create_app
from remark.config import Settings
from remark.content.render import RenderError
from remark.viewer.transport import TransportClosed
from remark.watch.bus import ChangeEventBus
from remark.watch.watchset import WatchSet


class FakeBackend:
    """Subscription backend that records calls instead of watching."""

    def __init__(self) -> None:
        self.subscribed: list[str] = []
        self.unsubscribed: list[str] = []
        self.missing: set[str] = set()

    def subscribe(self, path: str) -> None:
        if path in self.missing:
            raise FileNotFoundError(f"No such file: {path}")
        self.subscribed.append(path)

    def unsubscribe(self, path: str) -> None:
        self.unsubscribed.append(path)


class FakeTransport:
    """In-memory session transport driven by the test."""

    def __init__(self) -> None:
        self.accepted = False
        self.rejected_to: str | None = None
        self.close_calls = 0
        self.fail_sends = False
        self.sent: list[str] = []
        self.outbox: asyncio.Queue[str] = asyncio.Queue()
        self._inbound: asyncio.Queue[str | None] = asyncio.Queue()

    async def accept(self) -> None:
        self.accepted = True

    async def reject(self, location: str) -> None:
        self.rejected_to = location

    async def receive(self) -> None:
        message = await self._inbound.get()
        if message is None:
            raise TransportClosed("client closed")

    async def send(self, message: str) -> None:
        if self.fail_sends:
            raise TransportClosed("broken pipe")
        self.sent.append(message)
        self.outbox.put_nowait(message)

    async def close(self) -> None:
        self.close_calls += 1

    def client_message(self, text: str = "ping") -> None:
        self._inbound.put_nowait(text)

    def disconnect(self) -> None:
        self._inbound.put_nowait(None)


def fake_render(path: str) -> str:
    """Render gateway stand-in; files named broken*.md fail."""
    if Path(path).name.startswith("broken"):
        raise RenderError("failed to convert markdown", path)
    return f"<div id=\"markdown\">{path}</div>"


@pytest.fixture
def backend() -> FakeBackend:
    """Create a recording subscription backend."""
    return FakeBackend()


@pytest.fixture
def bus() -> ChangeEventBus:
    """Create a change event bus."""
    return ChangeEventBus(queue_size=1, max_subscribers=8)


@pytest.fixture
def watch_set(backend: FakeBackend, bus: ChangeEventBus) -> WatchSet:
    """Create a watch set over the fake backend."""
    return WatchSet(backend, bus, base_url="http://localhost:8888")


@pytest.fixture
def make_transport() -> Callable[[], FakeTransport]:
    """Factory for in-memory transports."""
    return FakeTransport


@pytest.fixture
def render() -> Callable[[str], str]:
    """Render gateway stand-in."""
    return fake_render


@pytest.fixture
def docs_root(tmp_path: Path) -> Path:
    """Create a small tree of Markdown files."""
    (tmp_path / "docs").mkdir()
    (tmp_path / "docs" / "a.md").write_text("# A\n\nfirst file\n")
    (tmp_path / "docs" / "B.md").write_text("# B\n")
    (tmp_path / "README.md").write_text("# Readme\n")
    (tmp_path / "notes.txt").write_text("not markdown\n")
    return tmp_path


@pytest.fixture
def settings(docs_root: Path) -> Settings:
    """Create test settings rooted at the docs tree."""
    return Settings(
        host="127.0.0.1",
        port=8888,
        debug=True,
        root=str(docs_root),
        patterns_raw="docs/*.md README.md",
        glob_interval_ms=20,
    )


@pytest.fixture
def client(settings: Settings) -> Iterator[TestClient]:
    """Create test client with the watch pipeline running."""
    app = create_app(settings)
    with TestClient(app) as test_client:
        yield test_client
