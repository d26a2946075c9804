"""
Unassigned arrival report API endpoints.
"""
import logging
from fastapi import APIRouter, Depends, status
from typing import List, Optional
from uuid import UUID
from app.api.deps import get_store, service_error
from app.schemas.unassigned import UnassignedCreate, UnassignedResolve, UnassignedResponse
from app.services.arrival_store import ArrivalStore
from app.services.unassigned_resolver import list_unassigned, report_unassigned, resolve_unassigned

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("", response_model=UnassignedResponse, status_code=status.HTTP_201_CREATED)
async def create_report(
    payload: UnassignedCreate,
    store: ArrivalStore = Depends(get_store)
):
    """Report an item found on site without a delivery."""
    try:
        return report_unassigned(
            store,
            guid=payload.guid,
            assembly_mark=payload.assembly_mark,
            location=payload.location,
            notes=payload.notes,
            item_id=payload.item_id,
        )
    except Exception as e:
        raise service_error(store.db, e, "report unassigned item")


@router.get("", response_model=List[UnassignedResponse])
async def list_reports(
    include_resolved: bool = False,
    store: ArrivalStore = Depends(get_store)
):
    return list_unassigned(store, include_resolved)


@router.post("/{report_id}/resolve", response_model=UnassignedResponse)
async def resolve_report(
    report_id: UUID,
    payload: Optional[UnassignedResolve] = None,
    store: ArrivalStore = Depends(get_store)
):
    """Confirm the reported item on its vehicle's arrival."""
    try:
        return resolve_unassigned(store, report_id, payload.item_id if payload else None)
    except Exception as e:
        raise service_error(store.db, e, "resolve unassigned item")
