"""
Status ledger - an in-memory snapshot of arrival confirmations and photos.

The ledger is a pure function of the rows it was built from. It is never
patched in place: every mutation path reloads it through `load_ledger`.
"""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import UUID
import logging

from sqlalchemy.orm import Session

from app.models import ArrivalConfirmation, ArrivalPhoto, ConfirmationStatus

logger = logging.getLogger(__name__)

LedgerKey = Tuple[UUID, UUID]  # (arrived_vehicle_id, item_id)


@dataclass(frozen=True)
class LedgerEntry:
    confirmation_id: UUID
    arrived_vehicle_id: UUID
    item_id: UUID
    status: ConfirmationStatus
    note: Optional[str] = None
    confirmed_at: Optional[datetime] = None
    confirmed_by: Optional[str] = None
    source_vehicle_id: Optional[UUID] = None
    source_vehicle_code: Optional[str] = None

    @property
    def is_model_discovered(self) -> bool:
        return self.status == ConfirmationStatus.ADDED and self.source_vehicle_id is None


@dataclass(frozen=True)
class PhotoRef:
    id: UUID
    arrived_vehicle_id: UUID
    item_id: Optional[UUID]
    file_name: str
    file_url: str
    uploaded_at: Optional[datetime] = None


@dataclass
class StatusLedger:
    entries: Dict[LedgerKey, LedgerEntry] = field(default_factory=dict)
    item_photos: Dict[LedgerKey, List[PhotoRef]] = field(default_factory=dict)
    arrival_photos: Dict[UUID, List[PhotoRef]] = field(default_factory=dict)
    by_arrival: Dict[UUID, List[LedgerEntry]] = field(default_factory=dict)
    by_confirmation: Dict[UUID, LedgerEntry] = field(default_factory=dict)
    loaded_at: datetime = field(default_factory=datetime.utcnow)

    def get(self, arrived_vehicle_id: UUID, item_id: UUID) -> Optional[LedgerEntry]:
        return self.entries.get((arrived_vehicle_id, item_id))

    def has_entry(self, arrived_vehicle_id: UUID, item_id: UUID) -> bool:
        return (arrived_vehicle_id, item_id) in self.entries

    def status(self, arrived_vehicle_id: UUID, item_id: UUID) -> ConfirmationStatus:
        """Status of the pair; pairs without a row are pending."""
        entry = self.entries.get((arrived_vehicle_id, item_id))
        return entry.status if entry else ConfirmationStatus.PENDING

    def note(self, arrived_vehicle_id: UUID, item_id: UUID) -> Optional[str]:
        entry = self.entries.get((arrived_vehicle_id, item_id))
        return entry.note if entry else None

    def photos(self, arrived_vehicle_id: UUID, item_id: UUID) -> List[PhotoRef]:
        return self.item_photos.get((arrived_vehicle_id, item_id), [])

    def photo_count(self, arrived_vehicle_id: UUID, item_id: UUID) -> int:
        return len(self.item_photos.get((arrived_vehicle_id, item_id), []))

    def entries_for_arrival(self, arrived_vehicle_id: UUID) -> List[LedgerEntry]:
        return self.by_arrival.get(arrived_vehicle_id, [])

    def entry_by_id(self, confirmation_id: UUID) -> Optional[LedgerEntry]:
        return self.by_confirmation.get(confirmation_id)

    def added_entries(self) -> List[LedgerEntry]:
        return [e for e in self.entries.values() if e.status == ConfirmationStatus.ADDED]

    def status_counts(self, arrived_vehicle_id: UUID, item_ids: Optional[Iterable[UUID]] = None) -> Dict[str, int]:
        """
        Count statuses for an arrival.

        With `item_ids`, every listed item is counted (absent rows as pending);
        without, only the ledgered rows are counted.
        """
        counts: Counter = Counter({s.value: 0 for s in ConfirmationStatus})
        if item_ids is None:
            for entry in self.entries_for_arrival(arrived_vehicle_id):
                counts[entry.status.value] += 1
        else:
            for item_id in item_ids:
                counts[self.status(arrived_vehicle_id, item_id).value] += 1
        return dict(counts)


def _coerce_status(value) -> ConfirmationStatus:
    if isinstance(value, ConfirmationStatus):
        return value
    return ConfirmationStatus(value)


def build_ledger(
    confirmations: Iterable[ArrivalConfirmation],
    photos: Iterable[ArrivalPhoto] = (),
) -> StatusLedger:
    """Build all ledger indices from scratch. Rows must be ordered oldest first."""
    ledger = StatusLedger()
    duplicates = 0

    for row in confirmations:
        key = (row.arrived_vehicle_id, row.item_id)
        if key in ledger.entries:
            # Legacy rows from before the unique key; the oldest one wins
            duplicates += 1
            continue
        entry = LedgerEntry(
            confirmation_id=row.id,
            arrived_vehicle_id=row.arrived_vehicle_id,
            item_id=row.item_id,
            status=_coerce_status(row.status),
            note=row.notes,
            confirmed_at=row.confirmed_at,
            confirmed_by=row.confirmed_by,
            source_vehicle_id=row.source_vehicle_id,
            source_vehicle_code=row.source_vehicle_code,
        )
        ledger.entries[key] = entry
        ledger.by_arrival.setdefault(row.arrived_vehicle_id, []).append(entry)
        ledger.by_confirmation[row.id] = entry

    for photo in photos:
        ref = PhotoRef(
            id=photo.id,
            arrived_vehicle_id=photo.arrived_vehicle_id,
            item_id=photo.item_id,
            file_name=photo.file_name,
            file_url=photo.file_url,
            uploaded_at=photo.uploaded_at,
        )
        ledger.arrival_photos.setdefault(photo.arrived_vehicle_id, []).append(ref)
        if photo.item_id is not None:
            ledger.item_photos.setdefault((photo.arrived_vehicle_id, photo.item_id), []).append(ref)

    if duplicates:
        logger.warning("Ledger snapshot contained %d duplicate (arrival, item) rows", duplicates)
    return ledger


def load_ledger(db: Session, project_id: str) -> StatusLedger:
    confirmations = (
        db.query(ArrivalConfirmation)
        .filter(ArrivalConfirmation.project_id == project_id)
        .order_by(ArrivalConfirmation.confirmed_at, ArrivalConfirmation.id)
        .all()
    )
    photos = (
        db.query(ArrivalPhoto)
        .filter(ArrivalPhoto.project_id == project_id)
        .order_by(ArrivalPhoto.uploaded_at, ArrivalPhoto.id)
        .all()
    )
    return build_ledger(confirmations, photos)
