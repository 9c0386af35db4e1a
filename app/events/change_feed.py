import inspect
import logging
from typing import List

from app.schemas.records import ItemChange
from app.stores.base import ChangeCallback, Unsubscribe

log = logging.getLogger("change_feed")


class ChangeFeed:
    """In-process fan-out of item change notifications."""

    def __init__(self):
        self._subscribers: List[ChangeCallback] = []

    def subscribe(self, callback: ChangeCallback) -> Unsubscribe:
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def publish(self, change: ItemChange) -> None:
        # Iterate over a copy: callbacks may unsubscribe themselves
        for callback in list(self._subscribers):
            try:
                result = callback(change)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                log.error(f"Subscriber {callback!r} failed for item {change.item_id}: {e}")


# Shared by the Tortoise store and the outbox poller
item_change_feed = ChangeFeed()
