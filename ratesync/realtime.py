import logging
from typing import Set

from fastapi import WebSocket

from .topics import MalformedEnvelope, encode_envelope

log = logging.getLogger("uvicorn.error")


class RealtimeHub:
    """Live websocket sessions and best-effort fan-out of topic envelopes.

    Sessions are anonymous: a reconnecting client is just a new session.
    """

    def __init__(self):
        self.sessions: Set[WebSocket] = set()

    @property
    def session_count(self) -> int:
        return len(self.sessions)

    async def connect(self, ws: WebSocket):
        await ws.accept()
        self.sessions.add(ws)
        log.info(f"[WS] session opened ({len(self.sessions)} live)")

    def disconnect(self, ws: WebSocket):
        if ws in self.sessions:
            self.sessions.discard(ws)
            log.info(f"[WS] session closed ({len(self.sessions)} live)")

    async def publish(self, topic, payload) -> int:
        """Send ``payload`` under ``topic`` to every live session.

        Never raises: the mutation that triggered the publish has already
        committed. Returns how many sessions the frame was written to.
        """
        try:
            msg = encode_envelope(topic, payload)
        except MalformedEnvelope:
            log.exception(f"[HUB] dropping unpublishable {topic} payload")
            return 0

        if not self.sessions:
            return 0

        log.info(f"[HUB] broadcasting {msg[:120]}")
        sent = 0
        dead = []
        for ws in list(self.sessions):
            try:
                await ws.send_text(msg)
                sent += 1
            except Exception as e:
                log.warning(f"[HUB] send failed, dropping session: {e!r}")
                dead.append(ws)
        for ws in dead:
            self.disconnect(ws)
        return sent

    async def close(self):
        for ws in list(self.sessions):
            try:
                await ws.close()
            except Exception as e:
                log.debug(f"[HUB] close on dead session: {e!r}")
            self.disconnect(ws)
