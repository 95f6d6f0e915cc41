import asyncio

import pytest

from ratesync.main import create_app
from ratesync.realtime import RealtimeHub


@pytest.fixture(autouse=True)
def _isolated_db(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """Every test gets its own sqlite file."""
    monkeypatch.setenv("DB_PATH", str(tmp_path / "ratesync.db"))


@pytest.fixture
def hub():
    return RealtimeHub()


@pytest.fixture
def app(hub):
    return create_app(hub=hub)


class FakeSession:
    """Server-side websocket stand-in for the hub."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.accepted = False
        self.closed = False
        self.sent: list[str] = []

    async def accept(self):
        self.accepted = True

    async def send_text(self, msg: str):
        if self.fail:
            raise RuntimeError("socket is gone")
        self.sent.append(msg)

    async def close(self):
        self.closed = True


class FakeSocket:
    """Client-side connection: yields pushed frames until dropped."""

    def __init__(self):
        self._frames: asyncio.Queue = asyncio.Queue()
        self.closed = False

    def push(self, frame):
        self._frames.put_nowait(frame)

    def drop(self):
        self._frames.put_nowait(None)

    def fail(self, exc: BaseException):
        self._frames.put_nowait(exc)

    def __aiter__(self):
        return self

    async def __anext__(self):
        frame = await self._frames.get()
        if frame is None:
            raise StopAsyncIteration
        if isinstance(frame, BaseException):
            raise frame
        return frame

    async def close(self):
        self.closed = True


class FakeConnector:
    """Plays back connect outcomes in order; blocks once they run out."""

    def __init__(self, outcomes=()):
        self.outcomes = list(outcomes)
        self.calls = 0

    async def __call__(self, url):
        self.calls += 1
        if not self.outcomes:
            await asyncio.Event().wait()
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


async def wait_for(predicate, timeout: float = 2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.001)
