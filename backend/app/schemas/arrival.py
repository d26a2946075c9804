"""
Arrival schemas.
"""
from pydantic import BaseModel, Field
from uuid import UUID
from datetime import date, datetime
from typing import Optional, List, Dict, Any
from app.models.confirmation import ConfirmationStatus


class UnloadResources(BaseModel):
    """Machines and labour used to unload a vehicle, as head counts."""
    crane: Optional[int] = Field(default=None, ge=0)
    forklift: Optional[int] = Field(default=None, ge=0)
    poomtostuk: Optional[int] = Field(default=None, ge=0)
    manual: Optional[int] = Field(default=None, ge=0)
    workforce: Optional[int] = Field(default=None, ge=0)

    class Config:
        extra = "forbid"


class ArrivalStart(BaseModel):
    vehicle_id: UUID
    arrival_date: Optional[date] = None
    arrival_time: Optional[str] = Field(default=None, pattern=r"^\d{2}:\d{2}$")


class ArrivalUpdate(BaseModel):
    arrival_date: Optional[date] = None
    arrival_time: Optional[str] = Field(default=None, pattern=r"^\d{2}:\d{2}$")
    unload_start_time: Optional[str] = Field(default=None, pattern=r"^\d{2}:\d{2}$")
    unload_end_time: Optional[str] = Field(default=None, pattern=r"^\d{2}:\d{2}$")
    unload_resources: Optional[UnloadResources] = None
    unload_location: Optional[str] = None
    reg_number: Optional[str] = None
    trailer_number: Optional[str] = None
    notes: Optional[str] = None


class ArrivalResponse(BaseModel):
    id: UUID
    vehicle_id: UUID
    arrival_date: date
    arrival_time: Optional[str] = None
    unload_start_time: Optional[str] = None
    unload_end_time: Optional[str] = None
    unload_resources: Optional[Dict[str, Any]] = None
    unload_location: Optional[str] = None
    reg_number: Optional[str] = None
    trailer_number: Optional[str] = None
    notes: Optional[str] = None
    is_confirmed: bool
    confirmed_at: Optional[datetime] = None
    confirmed_by: Optional[str] = None

    class Config:
        from_attributes = True


class ItemStatusUpdate(BaseModel):
    status: ConfirmationStatus
    note: Optional[str] = None


class BulkStatusRequest(BaseModel):
    status: ConfirmationStatus = ConfirmationStatus.CONFIRMED


class SelectedStatusRequest(BulkStatusRequest):
    item_ids: List[UUID]


class MassStatusRequest(BaseModel):
    item_ids: List[UUID]
    status: ConfirmationStatus
    note: Optional[str] = None


class BulkStatusResult(BaseModel):
    updated: int
    inserted: int
    skipped: int


class MassStatusResult(BaseModel):
    applied: int
    created_arrivals: int
    skipped: List[Dict[str, Any]] = []


class ReassignRequest(BaseModel):
    item_id: UUID
    source_vehicle_id: Optional[UUID] = None


class AddFromModelRequest(BaseModel):
    guid: str
    assembly_mark: Optional[str] = None
    product_name: Optional[str] = None
    model_id: Optional[str] = None
    object_runtime_id: Optional[int] = None
    weight: Optional[float] = None


class ModelSelectionResult(BaseModel):
    reassigned: List[UUID] = []
    added: List[UUID] = []
    skipped: List[Dict[str, Any]] = []


class ModelPickStatus(ModelSelectionResult):
    arrival_id: UUID
    active: bool


class SelectionClick(BaseModel):
    item_id: UUID
    shift: bool = False
    statuses: Optional[List[ConfirmationStatus]] = None


class SelectionResult(BaseModel):
    selected: List[UUID]
    viewer_synced: bool


class ConfirmationResponse(BaseModel):
    confirmation_id: UUID
    arrived_vehicle_id: UUID
    item_id: UUID
    status: ConfirmationStatus
    note: Optional[str] = None
    confirmed_at: Optional[datetime] = None
    confirmed_by: Optional[str] = None
    source_vehicle_id: Optional[UUID] = None
    source_vehicle_code: Optional[str] = None

    class Config:
        from_attributes = True


class UndoResult(BaseModel):
    item_id: UUID
    restored_vehicle_id: Optional[UUID] = None
    item_removed: bool


class ArrivalItemRow(BaseModel):
    item_id: UUID
    guid: Optional[str] = None
    assembly_mark: str
    product_name: Optional[str] = None
    weight: Optional[float] = None
    ordinal: int
    total: int
    label: str
    status: ConfirmationStatus
    note: Optional[str] = None
    photo_count: int = 0
    source_vehicle_code: Optional[str] = None
    confirmation_id: Optional[UUID] = None


class ArrivalDetail(BaseModel):
    arrival: ArrivalResponse
    vehicle_code: str
    items: List[ArrivalItemRow]
    counts: Dict[str, int]


class ColorGroupsResponse(BaseModel):
    groups: Dict[str, List[str]]


class PhotoResponse(BaseModel):
    id: UUID
    arrived_vehicle_id: UUID
    item_id: Optional[UUID] = None
    confirmation_id: Optional[UUID] = None
    file_name: str
    file_url: str
    file_size: Optional[int] = None
    mime_type: Optional[str] = None
    description: Optional[str] = None
    uploaded_at: Optional[datetime] = None
    uploaded_by: Optional[str] = None

    class Config:
        from_attributes = True
