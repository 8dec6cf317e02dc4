from tortoise import fields, models
import uuid

from hyperlocal.services.geometry import Point, Polygon


class Zone(models.Model):
    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    tenant = fields.CharField(max_length=64)
    name = fields.CharField(max_length=255)
    code = fields.CharField(max_length=32)
    # Ordered ring of [lat, lng] pairs, closed implicitly. Never mutated after creation.
    boundary = fields.JSONField()
    center_lat = fields.FloatField()
    center_lng = fields.FloatField()
    radius_km = fields.FloatField()
    eta_min = fields.IntField(default=15)  # minutes
    eta_max = fields.IntField(default=45)  # minutes
    is_active = fields.BooleanField(default=True)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "zones"
        unique_together = (("tenant", "code"),)
        indexes = [
            ("tenant", "is_active"),  # Zone resolution scans
        ]

    @property
    def polygon(self) -> Polygon:
        return Polygon.from_pairs(self.boundary)

    @property
    def center(self) -> Point:
        return Point(self.center_lat, self.center_lng)
