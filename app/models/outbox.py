from tortoise import fields, models
import uuid


class OutboxEvent(models.Model):
    """
    Item change notifications, written in the same database transaction as
    the quantity write. The outbox poller hands them to change-feed subscribers.
    """
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    aggregate_type = fields.CharField(max_length=64)
    aggregate_id = fields.UUIDField(null=True)
    event_type = fields.CharField(max_length=128) # e.g., 'inventory.item.changed.v1'
    payload = fields.JSONField()
    published = fields.BooleanField(default=False)
    attempts = fields.IntField(default=0) # Failed dispatches; the poller gives up at MAX_ATTEMPTS
    last_error = fields.TextField(null=True)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "outbox_events"
        indexes = (("published", "created_at"),)
