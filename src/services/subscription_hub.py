from collections.abc import Callable

import structlog

from src.schemas.leaderboard import Leaderboard

logger = structlog.get_logger()

LeaderboardCallback = Callable[[Leaderboard], None]


class SubscriptionHub:
    """Per-leaderboard-key callback registry with synchronous fan-out."""

    def __init__(self) -> None:
        # dict keys keep registration order and ignore duplicate callbacks
        self._subscribers: dict[str, dict[LeaderboardCallback, None]] = {}

    def subscribe(self, key: str, callback: LeaderboardCallback) -> Callable[[], None]:
        """Register a callback for key and return a function that removes it."""
        self._subscribers.setdefault(key, {})[callback] = None

        def unsubscribe() -> None:
            callbacks = self._subscribers.get(key)
            if callbacks is None:
                return
            callbacks.pop(callback, None)
            if not callbacks:
                del self._subscribers[key]

        return unsubscribe

    def notify(self, key: str, leaderboard: Leaderboard) -> None:
        callbacks = self._subscribers.get(key)
        if not callbacks:
            return
        for callback in list(callbacks):
            try:
                callback(leaderboard)
            except Exception:
                logger.exception("Leaderboard subscriber failed", key=key)

    def subscriber_count(self, key: str) -> int:
        return len(self._subscribers.get(key, {}))

    def clear(self) -> None:
        self._subscribers.clear()
