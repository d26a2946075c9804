from .factory import DeliveryFactory
from .vehicle import DeliveryVehicle, VehicleStatus
from .item import DeliveryItem, ItemStatus
from .arrived_vehicle import ArrivedVehicle
from .confirmation import ArrivalConfirmation, ConfirmationStatus
from .photo import ArrivalPhoto
from .history import DeliveryHistory, HistoryChangeType
from .unassigned_arrival import UnassignedArrival

__all__ = [
    "DeliveryFactory",
    "DeliveryVehicle",
    "VehicleStatus",
    "DeliveryItem",
    "ItemStatus",
    "ArrivedVehicle",
    "ArrivalConfirmation",
    "ConfirmationStatus",
    "ArrivalPhoto",
    "DeliveryHistory",
    "HistoryChangeType",
    "UnassignedArrival",
]
