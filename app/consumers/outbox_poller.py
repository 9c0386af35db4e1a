import asyncio
import logging
from app.models.outbox import OutboxEvent
from app.events.change_feed import ChangeFeed, item_change_feed
from app.events.outbox_utility import ITEM_CHANGED, LOW_STOCK_ALERT
from app.schemas.records import ItemChange
from app.core.db import init_db, close_db
from app.core.logging import setup_logging
from app.core.config import POLLING_INTERVAL, MAX_ATTEMPTS, BATCH_SIZE

log = logging.getLogger("outbox_poller")


async def dispatch_event(event: OutboxEvent, feed: ChangeFeed = item_change_feed):
    """Routes an OutboxEvent to the change feed or the alert log."""
    event_type = event.event_type
    payload = event.payload

    log.debug(f"Poller DISPATCHING: {event_type} (ID: {event.id.hex[:8]}...)")

    if event_type == ITEM_CHANGED:
        await feed.publish(ItemChange(
            item_id=payload["item_id"],
            quantity=payload["quantity"],
            status=payload["status"],
            is_low_stock=payload["is_low_stock"],
            changed_at=event.created_at,
        ))

    elif event_type == LOW_STOCK_ALERT:
        log.warning(
            f"LOW STOCK: '{payload.get('name')}' ({payload.get('item_id')}) has "
            f"{payload.get('quantity')} left, minimum {payload.get('min_stock_level')}."
        )

    else:
        log.warning(f"No handler found for event type: {event_type}")


async def poll_outbox_for_new_events(feed: ChangeFeed = item_change_feed) -> int:
    """
    Queries the Outbox table for unpublished events and attempts to dispatch them.
    Returns how many were published.
    """
    # Select events that haven't been published and haven't exceeded max attempts
    events = await OutboxEvent.filter(published=False, attempts__lt=MAX_ATTEMPTS).limit(BATCH_SIZE).order_by('created_at')

    published = 0
    for event in events:
        try:
            await dispatch_event(event, feed)

            event.published = True
            await event.save(update_fields=['published'])
            published += 1

        except Exception as e:
            event.attempts += 1
            event.last_error = str(e)
            await event.save(update_fields=["attempts", "last_error"])
            log.error(f"Dispatch of {event.event_type} ({event.id}) failed, attempt {event.attempts}/{MAX_ATTEMPTS}: {e}")
    return published


async def run_poller(feed: ChangeFeed = item_change_feed, interval: float = POLLING_INTERVAL):
    """Polls forever; cancel the task to stop. Shared by the API process and the standalone worker."""
    while True:
        try:
            await poll_outbox_for_new_events(feed)
        except Exception as e:
            log.error(f"Poller encountered a critical DB error: {e}.")

        await asyncio.sleep(interval)


async def start_outbox_poller():
    """Entry point for running the poller as its own process."""
    await init_db()
    log.info("--- Outbox Poller Service Started ---")
    try:
        await run_poller()
    finally:
        await close_db()


if __name__ == "__main__":
    setup_logging()
    try:
        asyncio.run(start_outbox_poller())
    except KeyboardInterrupt:
        log.info("Poller service stopped.")
