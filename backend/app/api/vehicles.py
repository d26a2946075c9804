"""
Delivery vehicle API endpoints.
"""
import logging
from datetime import date
from fastapi import APIRouter, Depends, HTTPException, status
from typing import List, Optional
from uuid import UUID
from app.api.deps import get_store, service_error
from app.models import DeliveryVehicle
from app.schemas.arrival import ArrivalResponse
from app.schemas.vehicle import UnplannedVehicleCreate, VehicleResponse, RemovedItemResponse
from app.services.arrival_store import ArrivalStore
from app.services.reassignment import removed_items_for_vehicle
from app.services.reconciliation import create_unplanned_vehicle

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=List[VehicleResponse])
async def list_vehicles(
    scheduled_date: Optional[date] = None,
    include_unplanned: bool = True,
    store: ArrivalStore = Depends(get_store)
):
    """List the project's vehicles, optionally for one scheduled date."""
    query = store.db.query(DeliveryVehicle).filter(DeliveryVehicle.project_id == store.project_id)
    if scheduled_date:
        query = query.filter(DeliveryVehicle.scheduled_date == scheduled_date)
    if not include_unplanned:
        query = query.filter(DeliveryVehicle.is_unplanned.is_(False))
    return query.order_by(
        DeliveryVehicle.scheduled_date,
        DeliveryVehicle.sort_order,
        DeliveryVehicle.vehicle_code,
    ).all()


@router.post("/unplanned", response_model=ArrivalResponse, status_code=status.HTTP_201_CREATED)
async def create_unplanned(
    payload: UnplannedVehicleCreate,
    store: ArrivalStore = Depends(get_store)
):
    """Register a vehicle that arrived without being scheduled."""
    try:
        logger.info(f"Creating unplanned vehicle {payload.vehicle_code} for project {store.project_id}")
        return create_unplanned_vehicle(
            store,
            payload.vehicle_code.strip(),
            factory_id=payload.factory_id,
            arrival_date=payload.arrival_date,
            notes=payload.notes,
            arrival_time=payload.arrival_time,
        )
    except HTTPException:
        raise
    except Exception as e:
        raise service_error(store.db, e, "create unplanned vehicle")


@router.get("/{vehicle_id}/removed-items", response_model=List[RemovedItemResponse])
async def list_removed_items(
    vehicle_id: UUID,
    store: ArrivalStore = Depends(get_store)
):
    """Items scheduled for this vehicle that were delivered with another one."""
    try:
        return removed_items_for_vehicle(store, vehicle_id)
    except Exception as e:
        raise service_error(store.db, e, "list removed items")
