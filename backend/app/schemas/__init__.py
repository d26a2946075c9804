from .vehicle import UnplannedVehicleCreate, VehicleResponse, RemovedItemResponse
from .arrival import (
    UnloadResources,
    ArrivalStart,
    ArrivalUpdate,
    ArrivalResponse,
    ArrivalDetail,
    ArrivalItemRow,
    ItemStatusUpdate,
    BulkStatusRequest,
    SelectedStatusRequest,
    MassStatusRequest,
    BulkStatusResult,
    MassStatusResult,
    ReassignRequest,
    AddFromModelRequest,
    ModelSelectionResult,
    ModelPickStatus,
    SelectionClick,
    SelectionResult,
    ConfirmationResponse,
    UndoResult,
    ColorGroupsResponse,
    PhotoResponse,
)
from .unassigned import UnassignedCreate, UnassignedResolve, UnassignedResponse

__all__ = [
    "UnplannedVehicleCreate",
    "VehicleResponse",
    "RemovedItemResponse",
    "UnloadResources",
    "ArrivalStart",
    "ArrivalUpdate",
    "ArrivalResponse",
    "ArrivalDetail",
    "ArrivalItemRow",
    "ItemStatusUpdate",
    "BulkStatusRequest",
    "SelectedStatusRequest",
    "MassStatusRequest",
    "BulkStatusResult",
    "MassStatusResult",
    "ReassignRequest",
    "AddFromModelRequest",
    "ModelSelectionResult",
    "ModelPickStatus",
    "SelectionClick",
    "SelectionResult",
    "ConfirmationResponse",
    "UndoResult",
    "ColorGroupsResponse",
    "PhotoResponse",
    "UnassignedCreate",
    "UnassignedResolve",
    "UnassignedResponse",
]
