import uuid
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field

from hyperlocal.models.rider import RiderStatus, VehicleType
from hyperlocal.schemas.zone import LatLng


class RiderRegisterRequest(BaseModel):
    name: str = Field(..., min_length=2)
    phone: str = Field(..., pattern=r"^[6-9]\d{9}$")
    vehicle_type: VehicleType
    vehicle_number: str = Field(..., min_length=5)
    zone_ids: List[uuid.UUID] = Field(..., min_length=1)
    # Only read when an admin registers a rider on behalf of a user
    user_id: Optional[uuid.UUID] = None


class LocationUpdate(LatLng):
    pass


class AvailabilityUpdate(BaseModel):
    status: RiderStatus


class RiderDeliveryUpdate(BaseModel):
    """Rider-side progress on an assigned order."""
    status: str = Field(..., pattern=r"^(picked_up|delivered)$")
    note: str = ""


class RiderResponse(BaseModel):
    id: uuid.UUID
    name: str
    phone: str
    vehicle_type: VehicleType
    status: RiderStatus
    is_verified: bool
    is_active: bool
    location: Optional[LatLng] = None
    location_updated_at: Optional[datetime] = None
    distance_km: Optional[float] = None

    @classmethod
    def from_model(cls, rider, distance_km=None) -> "RiderResponse":
        location = rider.location
        return cls(
            id=rider.id,
            name=rider.name,
            phone=rider.phone,
            vehicle_type=rider.vehicle_type,
            status=rider.status,
            is_verified=rider.is_verified,
            is_active=rider.is_active,
            location=LatLng(lat=location.lat, lng=location.lng) if location else None,
            location_updated_at=rider.location_updated_at,
            distance_km=distance_km,
        )
