import logging
from typing import Dict, Any
from uuid import UUID

from tortoise.transactions import in_transaction

from hyperlocal.models.processed_event import ProcessedEvent

log = logging.getLogger("notification_consumer")

CONSUMER_NAME = "notifications"


def send_notification(recipient: str, channel: str, message: str) -> None:
    """
    Hands a message to the SMS/push gateway. Delivery is fire-and-forget;
    this deployment only records the message.
    """
    log.info(f"[{channel.upper()}] to {recipient}: {message}")


def _order_placed(payload: Dict[str, Any]) -> None:
    send_notification(
        payload["store_owner_id"], "push",
        f"New order {payload['order_number']} received (total {payload['total']}).",
    )
    send_notification(
        payload["customer_id"], "sms",
        f"Your order {payload['order_number']} has been placed.",
    )


def _status_changed(payload: Dict[str, Any]) -> None:
    status = payload["new_status"].replace("_", " ")
    send_notification(
        payload["customer_id"], "sms",
        f"Your order {payload['order_number']} is now {status}.",
    )


def _order_cancelled(payload: Dict[str, Any]) -> None:
    send_notification(
        payload["customer_id"], "sms",
        f"Your order {payload['order_number']} was cancelled: {payload.get('reason') or 'no reason given'}.",
    )


def _rider_assigned(payload: Dict[str, Any]) -> None:
    send_notification(
        payload["customer_id"], "sms",
        f"{payload['rider_name']} ({payload['rider_phone']}) will deliver order {payload['order_number']}.",
    )


def _low_stock(payload: Dict[str, Any]) -> None:
    send_notification(
        payload["store_id"], "push",
        f"Product {payload['product_id']} is running low ({payload['stock']} left).",
    )


HANDLERS = {
    "order.placed.v1": _order_placed,
    "order.cancelled.v1": _order_cancelled,
    "order.rider_assigned.v1": _rider_assigned,
    "inventory.low_stock_alert.v1": _low_stock,
}


def resolve_handler(event_type: str):
    if event_type in HANDLERS:
        return HANDLERS[event_type]
    if event_type.startswith("order.status."):
        return _status_changed
    return None


async def handle_event(event_type: str, event_payload: Dict[str, Any], event_id: UUID) -> bool:
    """
    Sends the notification for one outbox event, at most once per event.
    Returns False when the event was already processed or has no handler.
    Errors propagate so the poller can count the attempt.
    """
    event_id_str = str(event_id)

    # Idempotency Check
    if await ProcessedEvent.filter(event_id=event_id_str, consumer=CONSUMER_NAME).exists():
        log.info(f"Idempotency: Event {event_id_str} already processed.")
        return False

    handler = resolve_handler(event_type)
    if handler is None:
        log.warning(f"No notification handler for event type: {event_type}")
        return False

    async with in_transaction() as conn:
        await ProcessedEvent.create(event_id=event_id_str, consumer=CONSUMER_NAME, using_db=conn)
        handler(event_payload)
    return True
