"""
Arrival reconciliation API endpoints.
"""
import logging
from fastapi import APIRouter, Depends, File as FastAPIFile, Form, HTTPException, Request, Response, UploadFile, status
from typing import List, Optional
from uuid import UUID
from app.api.deps import get_store, service_error
from app.schemas.arrival import (
    AddFromModelRequest,
    ArrivalDetail,
    ArrivalResponse,
    ArrivalStart,
    ArrivalUpdate,
    BulkStatusRequest,
    BulkStatusResult,
    ColorGroupsResponse,
    ConfirmationResponse,
    ItemStatusUpdate,
    MassStatusRequest,
    MassStatusResult,
    ModelPickStatus,
    ModelSelectionResult,
    PhotoResponse,
    ReassignRequest,
    SelectedStatusRequest,
    SelectionClick,
    SelectionResult,
    UndoResult,
)
from app.services.arrival_photos import add_photo, delete_photo
from app.services.arrival_store import ArrivalStore
from app.services.derived_views import (
    RangeSelection,
    activate_coloring,
    arrival_color_groups,
    arrival_detail,
    clear_selection,
    click_item,
    deactivate_coloring,
)
from app.services.model_pick import start_model_pick, stop_model_pick
from app.services.reassignment import add_from_model, apply_model_selection, reassign, undo_reassign
from app.services.reconciliation import (
    complete_arrival,
    confirm_all_pending,
    confirm_selected,
    mass_apply_status,
    set_item_status,
    start_arrival,
    update_arrival,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/arrivals", response_model=ArrivalResponse)
async def start(
    payload: ArrivalStart,
    store: ArrivalStore = Depends(get_store)
):
    """Start (or reopen) the arrival of a scheduled vehicle."""
    try:
        return start_arrival(store, payload.vehicle_id, payload.arrival_date, payload.arrival_time)
    except Exception as e:
        raise service_error(store.db, e, "start arrival")


@router.post("/arrivals/mass-status", response_model=MassStatusResult)
async def mass_status(
    payload: MassStatusRequest,
    store: ArrivalStore = Depends(get_store)
):
    """Apply one status to items spread over several vehicles."""
    try:
        return mass_apply_status(store, payload.item_ids, payload.status, payload.note)
    except Exception as e:
        raise service_error(store.db, e, "apply status")


@router.get("/arrivals/{arrival_id}", response_model=ArrivalDetail)
async def get_arrival(
    arrival_id: UUID,
    store: ArrivalStore = Depends(get_store)
):
    """Arrival with its item rows and status counts."""
    try:
        detail = arrival_detail(store, arrival_id)
        detail["arrival"] = ArrivalResponse.model_validate(detail["arrival"])
        return detail
    except Exception as e:
        raise service_error(store.db, e, "load arrival")


@router.patch("/arrivals/{arrival_id}", response_model=ArrivalResponse)
async def patch_arrival(
    arrival_id: UUID,
    payload: ArrivalUpdate,
    store: ArrivalStore = Depends(get_store)
):
    try:
        return update_arrival(store, arrival_id, payload.model_dump(exclude_unset=True))
    except Exception as e:
        raise service_error(store.db, e, "update arrival")


@router.post("/arrivals/{arrival_id}/complete", response_model=ArrivalResponse)
async def complete(
    arrival_id: UUID,
    store: ArrivalStore = Depends(get_store)
):
    """Lock the arrival and mark confirmed items delivered."""
    try:
        return complete_arrival(store, arrival_id)
    except Exception as e:
        raise service_error(store.db, e, "complete arrival")


@router.put("/arrivals/{arrival_id}/items/{item_id}/status", response_model=ConfirmationResponse)
async def put_item_status(
    arrival_id: UUID,
    item_id: UUID,
    payload: ItemStatusUpdate,
    store: ArrivalStore = Depends(get_store)
):
    try:
        entry = set_item_status(store, arrival_id, item_id, payload.status, payload.note)
    except Exception as e:
        raise service_error(store.db, e, "set item status")
    if entry is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Status was written but could not be read back, reload the arrival"
        )
    return entry


@router.post("/arrivals/{arrival_id}/confirm-all", response_model=BulkStatusResult)
async def confirm_all(
    arrival_id: UUID,
    payload: Optional[BulkStatusRequest] = None,
    store: ArrivalStore = Depends(get_store)
):
    """Move every pending item of the arrival to the requested status."""
    payload = payload or BulkStatusRequest()
    try:
        return confirm_all_pending(store, arrival_id, payload.status)
    except Exception as e:
        raise service_error(store.db, e, "confirm all items")


@router.post("/arrivals/{arrival_id}/confirm-selected", response_model=BulkStatusResult)
async def confirm_selection(
    arrival_id: UUID,
    payload: SelectedStatusRequest,
    store: ArrivalStore = Depends(get_store)
):
    try:
        return confirm_selected(store, arrival_id, payload.item_ids, payload.status)
    except Exception as e:
        raise service_error(store.db, e, "confirm selected items")


@router.post("/arrivals/{arrival_id}/reassign", response_model=ConfirmationResponse)
async def reassign_item(
    arrival_id: UUID,
    payload: ReassignRequest,
    store: ArrivalStore = Depends(get_store)
):
    """Record that an item scheduled for another vehicle came with this one."""
    try:
        return reassign(store, arrival_id, payload.item_id, payload.source_vehicle_id)
    except Exception as e:
        raise service_error(store.db, e, "reassign item")


@router.post("/arrivals/{arrival_id}/add-from-model", response_model=ConfirmationResponse)
async def add_model_item(
    arrival_id: UUID,
    payload: AddFromModelRequest,
    store: ArrivalStore = Depends(get_store)
):
    """Add an object picked in the model viewer to the arrival."""
    try:
        return add_from_model(
            store,
            arrival_id,
            payload.guid,
            assembly_mark=payload.assembly_mark,
            product_name=payload.product_name,
            model_id=payload.model_id,
            object_runtime_id=payload.object_runtime_id,
            weight=payload.weight,
        )
    except Exception as e:
        raise service_error(store.db, e, "add item from model")


@router.post("/arrivals/{arrival_id}/model-selection", response_model=ModelSelectionResult)
async def model_selection(
    arrival_id: UUID,
    payload: List[AddFromModelRequest],
    store: ArrivalStore = Depends(get_store)
):
    """Apply objects picked in the viewer: scheduled items are reassigned, the rest added."""
    try:
        return apply_model_selection(store, arrival_id, [pick.model_dump() for pick in payload])
    except Exception as e:
        raise service_error(store.db, e, "apply model selection")


@router.post("/arrivals/{arrival_id}/model-pick", response_model=ModelPickStatus)
async def start_pick(
    arrival_id: UUID,
    request: Request,
    store: ArrivalStore = Depends(get_store)
):
    """Start polling the viewer selection and apply every new pick to the arrival."""
    try:
        session = start_model_pick(request.app.state.model_pick, store, arrival_id)
    except Exception as e:
        raise service_error(store.db, e, "start model pick")
    return session.status()


@router.get("/arrivals/{arrival_id}/model-pick", response_model=ModelPickStatus)
async def pick_status(
    arrival_id: UUID,
    request: Request,
    store: ArrivalStore = Depends(get_store)
):
    session = request.app.state.model_pick.get((store.project_id, arrival_id))
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Model pick is not running")
    return session.status()


@router.delete("/arrivals/{arrival_id}/model-pick", response_model=ModelPickStatus)
async def stop_pick(
    arrival_id: UUID,
    request: Request,
    store: ArrivalStore = Depends(get_store)
):
    session = stop_model_pick(request.app.state.model_pick, store.project_id, arrival_id)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Model pick is not running")
    return session.status()


@router.delete("/confirmations/{confirmation_id}", response_model=UndoResult)
async def undo(
    confirmation_id: UUID,
    store: ArrivalStore = Depends(get_store)
):
    """Undo a reassignment or model addition."""
    try:
        return undo_reassign(store, confirmation_id)
    except Exception as e:
        raise service_error(store.db, e, "undo reassignment")


@router.get("/arrivals/{arrival_id}/color-groups", response_model=ColorGroupsResponse)
async def color_groups(
    arrival_id: UUID,
    paint: bool = False,
    store: ArrivalStore = Depends(get_store)
):
    """Viewer color groups of the arrival; `paint=true` also paints them."""
    try:
        groups = activate_coloring(store, arrival_id) if paint else arrival_color_groups(store, arrival_id)
        return {"groups": groups}
    except Exception as e:
        raise service_error(store.db, e, "compute color groups")


@router.delete("/arrivals/{arrival_id}/color-groups", status_code=status.HTTP_204_NO_CONTENT)
async def clear_color_groups(
    arrival_id: UUID,
    store: ArrivalStore = Depends(get_store)
):
    deactivate_coloring(store, arrival_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/arrivals/{arrival_id}/photos", response_model=PhotoResponse, status_code=status.HTTP_201_CREATED)
async def upload_photo(
    arrival_id: UUID,
    file: UploadFile = FastAPIFile(...),
    item_id: Optional[UUID] = Form(default=None),
    description: Optional[str] = Form(default=None),
    store: ArrivalStore = Depends(get_store)
):
    """Upload a photo for the arrival, optionally for one item."""
    data = await file.read()
    try:
        return add_photo(
            store,
            arrival_id,
            file.filename or "photo",
            data,
            mime_type=file.content_type,
            item_id=item_id,
            description=description,
        )
    except Exception as e:
        raise service_error(store.db, e, "upload photo")


@router.delete("/photos/{photo_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_photo(
    photo_id: UUID,
    store: ArrivalStore = Depends(get_store)
):
    try:
        delete_photo(store, photo_id)
    except Exception as e:
        raise service_error(store.db, e, "delete photo")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


def _selection_for(request: Request, store: ArrivalStore, arrival_id: UUID) -> RangeSelection:
    return request.app.state.selections.setdefault((store.project_id, arrival_id), RangeSelection())


@router.post("/arrivals/{arrival_id}/selection/click", response_model=SelectionResult)
async def click_selection(
    arrival_id: UUID,
    payload: SelectionClick,
    request: Request,
    store: ArrivalStore = Depends(get_store)
):
    """Click (or shift-click) an item row; the viewer selection follows."""
    try:
        return click_item(
            store,
            arrival_id,
            _selection_for(request, store, arrival_id),
            payload.item_id,
            shift=payload.shift,
            statuses=payload.statuses,
        )
    except Exception as e:
        raise service_error(store.db, e, "update selection")


@router.delete("/arrivals/{arrival_id}/selection", response_model=SelectionResult)
async def reset_selection(
    arrival_id: UUID,
    request: Request,
    store: ArrivalStore = Depends(get_store)
):
    synced = clear_selection(store, _selection_for(request, store, arrival_id))
    return {"selected": [], "viewer_synced": synced}
