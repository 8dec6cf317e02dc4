from tortoise import fields, models
import uuid


class OutboxEvent(models.Model):
    """
    The Outbox table stores notification events atomically with the business
    transaction that produced them (Transactional Outbox Pattern).
    """
    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    tenant = fields.CharField(max_length=64)
    aggregate_type = fields.CharField(max_length=64) # e.g., 'order', 'product'
    aggregate_id = fields.UUIDField(null=True) # ID of the entity that generated the event
    event_type = fields.CharField(max_length=128) # e.g., 'order.placed.v1'
    payload = fields.JSONField() # The actual event data
    published = fields.BooleanField(default=False)
    attempts = fields.IntField(default=0)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "outbox_events"
        indexes = [
            ("published", "attempts", "created_at"),  # Poller scan
        ]
