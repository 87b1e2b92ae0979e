"""In-process change feed for battles.

Presentation layers learn about transaction outcomes only through this feed: every
committed write publishes the full battle snapshot to that battle's subscribers.
Subscribers are read-only; nothing here ever mutates a battle.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[dict[str, Any]], None]


class BattleBroadcaster:
    def __init__(self) -> None:
        self._subscribers: dict[str, list[SnapshotCallback]] = {}

    def subscribe(self, battle_id: str, callback: SnapshotCallback) -> Callable[[], None]:
        """Register *callback* for *battle_id*; returns a function that unsubscribes it."""
        self._subscribers.setdefault(battle_id, []).append(callback)

        def unsubscribe() -> None:
            callbacks = self._subscribers.get(battle_id)
            if callbacks and callback in callbacks:
                callbacks.remove(callback)
                if not callbacks:
                    del self._subscribers[battle_id]

        return unsubscribe

    def subscriber_count(self, battle_id: str) -> int:
        return len(self._subscribers.get(battle_id, []))

    def publish(self, battle_id: str, snapshot: dict[str, Any]) -> None:
        for callback in list(self._subscribers.get(battle_id, [])):
            try:
                callback(snapshot)
            except Exception:
                # A broken observer must not undo or block a committed write
                logger.exception("Subscriber callback failed for battle %s", battle_id)

    def close(self, battle_id: str) -> None:
        """Drop every subscriber of a deleted battle."""
        self._subscribers.pop(battle_id, None)


battle_events = BattleBroadcaster()
