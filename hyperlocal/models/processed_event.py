from tortoise import fields, models
import uuid


class ProcessedEvent(models.Model):
    """
    Table used for Idempotency in Consumers. Stores the UUID of an OutboxEvent
    together with the consumer that handled it, so a notification is sent once.
    """
    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    event_id = fields.CharField(max_length=128)
    consumer = fields.CharField(max_length=64, default="notifications")
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "processed_events"
        unique_together = (("event_id", "consumer"),)
