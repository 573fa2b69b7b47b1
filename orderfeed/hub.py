# orderfeed/hub.py
from collections import defaultdict
from typing import Dict, Set, Tuple
import logging

from fastapi import WebSocket

log = logging.getLogger("hub")

DEFAULT_CHANNEL = "default"

# (authenticated, channel) -> sockets
Key = Tuple[bool, str]


class Hub:
    """Fan-out of order payloads to WebSocket subscribers, split by auth and channel."""

    def __init__(self):
        self.channels: Dict[Key, Set[WebSocket]] = defaultdict(set)

    def register(self, ws: WebSocket, channel: str = DEFAULT_CHANNEL, authenticated: bool = False):
        self.channels[(authenticated, channel)].add(ws)
        log.info("Client registered. Authenticated: %s, Channel: %s", authenticated, channel)

    def unregister(self, ws: WebSocket, channel: str = DEFAULT_CHANNEL, authenticated: bool = False):
        key = (authenticated, channel)
        subs = self.channels.get(key)
        if subs is None or ws not in subs:
            return
        subs.discard(ws)
        if not subs:
            del self.channels[key]
        log.info("Client unregistered. Authenticated: %s, Channel: %s", authenticated, channel)

    def count(self, channel: str = DEFAULT_CHANNEL, authenticated: bool = False) -> int:
        return len(self.channels.get((authenticated, channel), ()))

    async def broadcast(self, payload: dict, channel: str = DEFAULT_CHANNEL,
                        authenticated: bool = False) -> int:
        """Send to every subscriber of the channel; returns how many got it."""
        subs = self.channels.get((authenticated, channel))
        if not subs:
            return 0
        dead = []
        sent = 0
        for ws in list(subs):
            try:
                await ws.send_json(payload)
                sent += 1
            except Exception as e:
                log.warning("Dropping subscriber on %s: %s", channel, e)
                dead.append(ws)
        for ws in dead:
            self.unregister(ws, channel, authenticated)
        return sent
