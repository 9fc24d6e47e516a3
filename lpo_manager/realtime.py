"""
Per-match WebSocket rooms. Clients join room match_<id> and receive
match_started, match_update and match_finished events as JSON.
"""
from __future__ import annotations

import logging
from typing import Any

from fastapi import WebSocket

logger = logging.getLogger(__name__)


def room_name(match_id: str) -> str:
    return f"match_{match_id}"


class MatchBroadcaster:
    def __init__(self) -> None:
        self._rooms: dict[str, list[WebSocket]] = {}

    def subscribe(self, match_id: str, ws: WebSocket) -> None:
        self._rooms.setdefault(room_name(match_id), []).append(ws)

    def unsubscribe(self, match_id: str, ws: WebSocket) -> None:
        room = room_name(match_id)
        sockets = self._rooms.get(room)
        if not sockets:
            return
        if ws in sockets:
            sockets.remove(ws)
        if not sockets:
            del self._rooms[room]

    def subscriber_count(self, match_id: str) -> int:
        return len(self._rooms.get(room_name(match_id), []))

    async def publish(self, match_id: str, event: str, payload: dict[str, Any]) -> int:
        """Send to every socket in the room; sockets that fail are dropped. Returns deliveries."""
        delivered = 0
        for ws in list(self._rooms.get(room_name(match_id), [])):
            try:
                await ws.send_json({"type": event, **payload})
                delivered += 1
            except Exception:
                logger.warning("Dropping dead socket in %s", room_name(match_id), exc_info=True)
                self.unsubscribe(match_id, ws)
        return delivered
