"""
Delivery vehicle schemas.
"""
from pydantic import BaseModel, Field
from uuid import UUID
from datetime import date
from typing import Optional
from app.models.vehicle import VehicleStatus


class UnplannedVehicleCreate(BaseModel):
    vehicle_code: str = Field(min_length=1)
    factory_id: Optional[UUID] = None
    arrival_date: Optional[date] = None
    arrival_time: Optional[str] = Field(default=None, pattern=r"^\d{2}:\d{2}$")
    notes: Optional[str] = None


class VehicleResponse(BaseModel):
    id: UUID
    factory_id: Optional[UUID] = None
    vehicle_code: str
    vehicle_number: Optional[int] = None
    scheduled_date: Optional[date] = None
    status: VehicleStatus
    is_unplanned: bool = False
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class RemovedItemResponse(BaseModel):
    confirmation_id: UUID
    item_id: UUID
    assembly_mark: Optional[str] = None
    guid: Optional[str] = None
    arrived_vehicle_id: UUID
    arrival_date: Optional[date] = None
    receiving_vehicle_id: Optional[UUID] = None
    receiving_vehicle_code: Optional[str] = None
