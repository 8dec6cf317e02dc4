from enum import Enum
from tortoise import fields, models
import uuid

from hyperlocal.services.geometry import Point


class RiderStatus(str, Enum):
    OFFLINE = "offline"
    ONLINE = "online"
    BUSY = "busy"
    ON_LEAVE = "on_leave"


class VehicleType(str, Enum):
    BIKE = "bike"
    SCOOTER = "scooter"
    BICYCLE = "bicycle"
    CAR = "car"


class Rider(models.Model):
    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    tenant = fields.CharField(max_length=64)
    name = fields.CharField(max_length=255)
    phone = fields.CharField(max_length=20)
    vehicle_type = fields.CharEnumField(VehicleType, default=VehicleType.BIKE)
    vehicle_number = fields.CharField(max_length=32, null=True)
    zones = fields.ManyToManyField("models.Zone", related_name="riders", through="rider_zones")

    current_lat = fields.FloatField(null=True)
    current_lng = fields.FloatField(null=True)
    location_updated_at = fields.DatetimeField(null=True)

    status = fields.CharEnumField(RiderStatus, default=RiderStatus.OFFLINE)
    is_verified = fields.BooleanField(default=False)
    is_active = fields.BooleanField(default=True)

    # Earnings ledger
    balance = fields.DecimalField(max_digits=14, decimal_places=2, default=0)
    total_earned = fields.DecimalField(max_digits=14, decimal_places=2, default=0)
    today_earned = fields.DecimalField(max_digits=14, decimal_places=2, default=0)
    week_earned = fields.DecimalField(max_digits=14, decimal_places=2, default=0)
    month_earned = fields.DecimalField(max_digits=14, decimal_places=2, default=0)

    # Performance counters
    total_orders = fields.IntField(default=0)
    completed_orders = fields.IntField(default=0)
    cancelled_orders = fields.IntField(default=0)
    rating = fields.FloatField(default=0)
    rating_count = fields.IntField(default=0)

    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "riders"
        unique_together = (("tenant", "phone"),)
        indexes = [
            ("tenant", "status", "is_active"),  # Eligible rider scans
        ]

    @property
    def location(self):
        if self.current_lat is None or self.current_lng is None:
            return None
        return Point(self.current_lat, self.current_lng)

    @property
    def is_eligible(self) -> bool:
        """Verified, active and online. Zone membership is checked separately."""
        return self.is_active and self.is_verified and self.status == RiderStatus.ONLINE

    def credit(self, amount):
        """Adds a delivery payout to the balance and every period aggregate."""
        self.balance += amount
        self.total_earned += amount
        self.today_earned += amount
        self.week_earned += amount
        self.month_earned += amount
