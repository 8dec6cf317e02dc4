import asyncio
import logging
from hyperlocal.models.outbox import OutboxEvent
from hyperlocal.consumers.notification_consumer import handle_event
from hyperlocal.core.db import init_db, close_db
from hyperlocal.core.config import POLLING_INTERVAL, MAX_ATTEMPTS, BATCH_SIZE

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
log = logging.getLogger("outbox_poller")


async def dispatch_event(event: OutboxEvent):
    """
    Routes an OutboxEvent to the notification consumer.
    This stands in for a message broker (like Kafka/RabbitMQ) dispatcher.
    """
    log.info(f"Poller DISPATCHING: {event.event_type} (ID: {event.id.hex[:8]}...)")
    await handle_event(event.event_type, event.payload, event.id)


async def poll_outbox_for_new_events() -> int:
    """
    Queries the Outbox table for unpublished events and attempts to dispatch them.
    Returns the number of events published.
    """
    # Select events that haven't been published and haven't exceeded max attempts
    events = await OutboxEvent.filter(published=False, attempts__lt=MAX_ATTEMPTS).limit(BATCH_SIZE).order_by('created_at')

    published = 0
    for event in events:
        try:
            # 1. Dispatch the event (calls the notification handler)
            await dispatch_event(event)

            # 2. Mark the event as published on success
            event.published = True
            await event.save(update_fields=['published'])
            published += 1

        except Exception:
            # 3. Increment attempts on failure and save
            event.attempts += 1
            await event.save(update_fields=['attempts'])
            log.exception(f"Dispatch failed for event {event.id} (attempt {event.attempts}).")
    return published


async def start_outbox_poller():
    """Main loop for the poller service."""
    await init_db()
    log.info("--- Outbox Poller Service Started ---")

    try:
        while True:
            try:
                await poll_outbox_for_new_events()
            except Exception as e:
                log.error(f"Poller encountered a critical DB error: {e}.")

            await asyncio.sleep(POLLING_INTERVAL)
    finally:
        await close_db()

if __name__ == "__main__":
    try:
        asyncio.run(start_outbox_poller())
    except KeyboardInterrupt:
        log.info("Poller service stopped.")
