import asyncio
import contextlib
import logging
from enum import Enum
from typing import Callable

import httpx
import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from . import config
from .backoff import Backoff
from .cache import PRODUCTS_KEY, RATES_KEY, QueryCache
from .schemas import Product, Rate
from .topics import Handler, MalformedEnvelope, TopicRegistry, decode_envelope

log = logging.getLogger(__name__)


class State(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    CLOSED = "closed"


class ReconnectingSubscriber:
    """One shared websocket to the hub with topic subscriptions on top.

    The socket is opened lazily by the first ``subscribe`` and then kept for
    the life of the process; dropping the last subscription does not close
    it. Lost connections are retried after a growing delay (see ``Backoff``).
    Envelopes published while disconnected are not replayed.
    """

    def __init__(
        self,
        url: str | None = None,
        backoff: Backoff | None = None,
        connector=None,
        on_state_change: Callable[[State], None] | None = None,
    ):
        self.url = url or config.WS_URL
        self.backoff = backoff or Backoff()
        self.on_state_change = on_state_change
        self.state = State.IDLE
        self._connector = connector or websockets.connect
        self._registry = TopicRegistry()
        self._ws = None
        self._task: asyncio.Task | None = None

    def _set_state(self, state: State):
        if state is self.state:
            return
        log.debug(f"[websocket] {self.state.value} -> {state.value}")
        self.state = state
        if self.on_state_change:
            try:
                self.on_state_change(state)
            except Exception:
                log.exception("[websocket] state listener failed")

    def connect(self):
        """Start the connection loop unless it is already running."""
        if self._task is not None and not self._task.done():
            return
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run())
        self._set_state(State.CONNECTING)

    def subscribe(self, topic, handler: Handler) -> Callable[[], None]:
        self.connect()
        return self._registry.add(topic, handler)

    def dispatch(self, frame) -> int:
        """Deliver one frame to the handlers of its topic; returns how many ran."""
        try:
            envelope = decode_envelope(frame)
        except MalformedEnvelope as e:
            log.warning(f"[websocket] dropping malformed frame {str(frame)[:80]!r}: {e}")
            return 0

        handlers = self._registry.handlers(envelope.event)
        for handler in handlers:
            try:
                handler(envelope.data)
            except Exception:
                log.exception(f"[websocket] handler for {envelope.event} failed")
        return len(handlers)

    async def _run(self):
        while True:
            self._set_state(State.CONNECTING)
            log.info(f"[websocket] connecting to {self.url}")
            try:
                ws = await self._connector(self.url)
            except (OSError, WebSocketException, asyncio.TimeoutError) as e:
                log.warning(f"[websocket] connect failed: {e!r}")
            except Exception:
                log.exception("[websocket] connect failed")
            else:
                self._ws = ws
                self.backoff.reset()
                self._set_state(State.CONNECTED)
                log.info("[websocket] connected")
                try:
                    async for frame in ws:
                        self.dispatch(frame)
                    log.info("[websocket] connection closed")
                except (ConnectionClosed, OSError) as e:
                    log.warning(f"[websocket] connection lost: {e!r}")
                except Exception:
                    log.exception("[websocket] connection lost")
                finally:
                    self._ws = None
                    await self._close_quietly(ws)

            self._set_state(State.DISCONNECTED)
            delay = self.backoff.fail()
            log.info(f"[websocket] reconnecting in {delay:.1f}s")
            await asyncio.sleep(delay)

    async def _close_quietly(self, ws):
        try:
            await ws.close()
        except Exception as e:
            log.debug(f"[websocket] close on dead socket: {e!r}")

    async def close(self):
        """Stop reconnecting and close the socket so the hub drops the session now."""
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        ws, self._ws = self._ws, None
        if ws is not None:
            await self._close_quietly(ws)
        self._set_state(State.CLOSED)


class StorefrontAPI:
    """Fetches the authoritative collections over REST."""

    def __init__(self, base_url: str | None = None, client: httpx.AsyncClient | None = None):
        self._client = client or httpx.AsyncClient(base_url=base_url or config.API_URL, timeout=10)

    async def fetch_rates(self) -> list[Rate]:
        resp = await self._client.get("/api/rates")
        resp.raise_for_status()
        return [Rate.model_validate(r) for r in resp.json()]

    async def fetch_products(self) -> list[Product]:
        resp = await self._client.get("/api/products")
        resp.raise_for_status()
        return [Product.model_validate(p) for p in resp.json()]

    async def refresh(self, cache: QueryCache):
        """Replace the cached collections with the server's current state."""
        rates = await self.fetch_rates()
        products = await self.fetch_products()
        cache.set_query_data(RATES_KEY, rates)
        cache.set_query_data(PRODUCTS_KEY, products)

    async def aclose(self):
        await self._client.aclose()
