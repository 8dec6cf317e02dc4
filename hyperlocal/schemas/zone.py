import uuid
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator


class LatLng(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class ZoneCreateRequest(BaseModel):
    name: str = Field(..., min_length=2)
    code: str = Field(..., min_length=2, max_length=32)
    boundary: List[List[float]] = Field(..., description="Ring of [lat, lng] pairs, closed implicitly.")
    center: Optional[LatLng] = Field(None, description="Defaults to the middle of the boundary's bounding box.")
    radius_km: float = Field(..., ge=1, le=50)
    eta_min: int = Field(15, ge=5, le=120)
    eta_max: int = Field(45, ge=5, le=180)

    @field_validator("boundary")
    @classmethod
    def _pairs(cls, value):
        if len(value) < 3:
            raise ValueError("boundary needs at least 3 vertices")
        for pair in value:
            if len(pair) != 2:
                raise ValueError("each vertex must be a [lat, lng] pair")
        return value


class ZoneResponse(BaseModel):
    id: uuid.UUID
    name: str
    code: str
    boundary: List[List[float]]
    center: LatLng
    radius_km: float
    eta_min: int
    eta_max: int
    is_active: bool

    @classmethod
    def from_model(cls, zone) -> "ZoneResponse":
        return cls(
            id=zone.id,
            name=zone.name,
            code=zone.code,
            boundary=zone.boundary,
            center=LatLng(lat=zone.center_lat, lng=zone.center_lng),
            radius_km=zone.radius_km,
            eta_min=zone.eta_min,
            eta_max=zone.eta_max,
            is_active=zone.is_active,
        )
