"""
Arrival store - the per-session state object for the reconciliation services.

Holds the database session, project scope, acting user, collaborators and the
current ledger snapshot. Every write runs inside `mutation()`, which reloads
the ledger when it exits, whether the write succeeded or not.
"""
from __future__ import annotations

from contextlib import contextmanager
from datetime import date, datetime
from typing import Dict, Iterator, List, Optional, Set
from uuid import UUID
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config.palette_loader import get_palette
from app.models import ArrivedVehicle, DeliveryItem, DeliveryVehicle
from app.services.errors import ArrivalLockedError, NotFoundError
from app.services.photo_storage import PhotoStorage
from app.services.status_ledger import StatusLedger, load_ledger
from app.services.viewer import ViewerClient

logger = logging.getLogger(__name__)


class ArrivalStore:
    def __init__(
        self,
        db: Session,
        project_id: str,
        acting_user: str = "unknown",
        *,
        viewer: Optional[ViewerClient] = None,
        photo_storage: Optional[PhotoStorage] = None,
        palette: Optional[Dict[str, Dict[str, int]]] = None,
        active_coloring: Optional[Set[UUID]] = None,
    ) -> None:
        self.db = db
        self.project_id = project_id
        self.acting_user = acting_user or "unknown"
        self.viewer = viewer
        self.photo_storage = photo_storage
        self.palette = palette or get_palette()
        # Arrivals whose status colors are currently painted in the viewer
        self.active_coloring: Set[UUID] = active_coloring if active_coloring is not None else set()
        self.ledger: StatusLedger = load_ledger(db, project_id)

    def reload(self) -> StatusLedger:
        self.ledger = load_ledger(self.db, self.project_id)
        return self.ledger

    @contextmanager
    def mutation(self) -> Iterator["ArrivalStore"]:
        try:
            yield self
        except Exception:
            self.db.rollback()
            try:
                self.reload()
            except SQLAlchemyError:
                logger.exception("Ledger reload failed after an aborted write")
            raise
        self.reload()

    @staticmethod
    def now() -> datetime:
        return datetime.utcnow()

    @staticmethod
    def today() -> date:
        return date.today()

    # Lookups

    def get_vehicle(self, vehicle_id: Optional[UUID]) -> Optional[DeliveryVehicle]:
        if vehicle_id is None:
            return None
        return (
            self.db.query(DeliveryVehicle)
            .filter(DeliveryVehicle.project_id == self.project_id, DeliveryVehicle.id == vehicle_id)
            .first()
        )

    def require_vehicle(self, vehicle_id: UUID) -> DeliveryVehicle:
        vehicle = self.get_vehicle(vehicle_id)
        if not vehicle:
            raise NotFoundError(f"Vehicle {vehicle_id} not found")
        return vehicle

    def get_item(self, item_id: Optional[UUID]) -> Optional[DeliveryItem]:
        if item_id is None:
            return None
        return (
            self.db.query(DeliveryItem)
            .filter(DeliveryItem.project_id == self.project_id, DeliveryItem.id == item_id)
            .first()
        )

    def require_item(self, item_id: UUID) -> DeliveryItem:
        item = self.get_item(item_id)
        if not item:
            raise NotFoundError(f"Item {item_id} not found")
        return item

    def get_items(self, item_ids) -> Dict[UUID, DeliveryItem]:
        ids = list(item_ids)
        if not ids:
            return {}
        rows = (
            self.db.query(DeliveryItem)
            .filter(DeliveryItem.project_id == self.project_id, DeliveryItem.id.in_(ids))
            .all()
        )
        return {row.id: row for row in rows}

    def items_by_guid(self, guids) -> Dict[str, DeliveryItem]:
        guid_list = [g for g in guids if g]
        if not guid_list:
            return {}
        rows = (
            self.db.query(DeliveryItem)
            .filter(DeliveryItem.project_id == self.project_id, DeliveryItem.guid.in_(guid_list))
            .order_by(DeliveryItem.created_at)
            .all()
        )
        found: Dict[str, DeliveryItem] = {}
        for row in rows:
            found.setdefault(row.guid, row)
        return found

    def vehicle_items(self, vehicle_id: UUID) -> List[DeliveryItem]:
        return (
            self.db.query(DeliveryItem)
            .filter(DeliveryItem.project_id == self.project_id, DeliveryItem.vehicle_id == vehicle_id)
            .order_by(DeliveryItem.sort_order, DeliveryItem.assembly_mark, DeliveryItem.created_at)
            .all()
        )

    def project_guids(self) -> List[str]:
        rows = (
            self.db.query(DeliveryItem.guid)
            .filter(DeliveryItem.project_id == self.project_id, DeliveryItem.guid.isnot(None))
            .all()
        )
        return list(dict.fromkeys(row.guid for row in rows))

    def get_arrival(self, arrival_id: Optional[UUID]) -> Optional[ArrivedVehicle]:
        if arrival_id is None:
            return None
        return (
            self.db.query(ArrivedVehicle)
            .filter(ArrivedVehicle.project_id == self.project_id, ArrivedVehicle.id == arrival_id)
            .first()
        )

    def require_arrival(self, arrival_id: UUID, writable: bool = False) -> ArrivedVehicle:
        arrival = self.get_arrival(arrival_id)
        if not arrival:
            raise NotFoundError(f"Arrival {arrival_id} not found")
        if writable and arrival.is_confirmed:
            raise ArrivalLockedError(f"Arrival {arrival_id} is already confirmed")
        return arrival

    def arrival_for_vehicle(self, vehicle_id: UUID) -> Optional[ArrivedVehicle]:
        """Earliest arrival of a vehicle; (vehicle, date) uniqueness is not enforced."""
        return (
            self.db.query(ArrivedVehicle)
            .filter(ArrivedVehicle.project_id == self.project_id, ArrivedVehicle.vehicle_id == vehicle_id)
            .order_by(ArrivedVehicle.arrival_date, ArrivedVehicle.created_at)
            .first()
        )

    def open_arrival_for_vehicle(self, vehicle_id: UUID, arrival_date: Optional[date] = None) -> Optional[ArrivedVehicle]:
        """Earliest unconfirmed arrival of a vehicle, preferring one on `arrival_date`."""
        query = self.db.query(ArrivedVehicle).filter(
            ArrivedVehicle.project_id == self.project_id,
            ArrivedVehicle.vehicle_id == vehicle_id,
            ArrivedVehicle.is_confirmed.is_(False),
        ).order_by(ArrivedVehicle.arrival_date, ArrivedVehicle.created_at)
        if arrival_date is not None:
            on_date = query.filter(ArrivedVehicle.arrival_date == arrival_date).first()
            if on_date is not None:
                return on_date
        return query.first()
