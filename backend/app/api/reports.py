"""
Report API endpoints.
"""
from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse
from uuid import UUID
from app.api.deps import get_store, service_error
from app.services.arrival_store import ArrivalStore
from app.services.excel_export import generate_arrival_report

router = APIRouter()


@router.get("/arrivals/{arrival_id}/excel")
async def download_arrival_excel(
    arrival_id: UUID,
    store: ArrivalStore = Depends(get_store)
):
    """Download the Excel report of one arrival."""
    try:
        file_path = generate_arrival_report(store, arrival_id)
    except Exception as e:
        raise service_error(store.db, e, "generate Excel report")
    return FileResponse(
        file_path,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        filename=f"arrival_report_{arrival_id}.xlsx"
    )
