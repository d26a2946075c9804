"""
Unassigned arrival report schemas.
"""
from pydantic import BaseModel
from uuid import UUID
from datetime import datetime
from typing import Optional


class UnassignedCreate(BaseModel):
    guid: Optional[str] = None
    assembly_mark: Optional[str] = None
    item_id: Optional[UUID] = None
    location: Optional[str] = None
    notes: Optional[str] = None


class UnassignedResolve(BaseModel):
    item_id: Optional[UUID] = None


class UnassignedResponse(BaseModel):
    id: UUID
    item_id: Optional[UUID] = None
    guid: Optional[str] = None
    assembly_mark: Optional[str] = None
    location: Optional[str] = None
    notes: Optional[str] = None
    reported_at: Optional[datetime] = None
    reported_by: Optional[str] = None
    is_resolved: bool
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None
    arrived_vehicle_id: Optional[UUID] = None

    class Config:
        from_attributes = True
