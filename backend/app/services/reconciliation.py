"""
Reconciliation writer - applies arrival status changes to the durable store.

Every status change goes through the same read-update-or-insert routine:
the ledger says whether a row is believed to exist, an UPDATE filtered by
(arrival, item) is tried first when it does, and an INSERT follows when the
UPDATE touched nothing. The ledger is never patched locally; callers run
inside `store.mutation()` which reloads it afterwards.
"""
from datetime import date
from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID
import logging

from sqlalchemy.exc import IntegrityError

from app.models import (
    ArrivalConfirmation,
    ArrivedVehicle,
    ConfirmationStatus,
    DeliveryFactory,
    DeliveryItem,
    DeliveryVehicle,
    HistoryChangeType,
    ItemStatus,
    VehicleStatus,
)
from app.schemas.arrival import UnloadResources
from app.services.arrival_store import ArrivalStore
from app.services.errors import InvalidStatusError, NotFoundError
from app.services.history import record_history

logger = logging.getLogger(__name__)

ITEM_WRITABLE_STATUSES = (
    ConfirmationStatus.PENDING,
    ConfirmationStatus.CONFIRMED,
    ConfirmationStatus.MISSING,
)
BULK_STATUSES = (ConfirmationStatus.CONFIRMED, ConfirmationStatus.MISSING)

ARRIVAL_EDITABLE_FIELDS = (
    "arrival_date",
    "arrival_time",
    "unload_start_time",
    "unload_end_time",
    "unload_resources",
    "unload_location",
    "reg_number",
    "trailer_number",
    "notes",
)


def coerce_status(value: Any) -> ConfirmationStatus:
    if isinstance(value, ConfirmationStatus):
        return value
    try:
        return ConfirmationStatus(value)
    except ValueError:
        raise InvalidStatusError(f"Unknown confirmation status: {value!r}")


def _pair_query(store: ArrivalStore, arrival_id: UUID, item_id: UUID):
    return store.db.query(ArrivalConfirmation).filter(
        ArrivalConfirmation.arrived_vehicle_id == arrival_id,
        ArrivalConfirmation.item_id == item_id,
    )


def _row_values(
    store: ArrivalStore,
    status: ConfirmationStatus,
    note: Optional[str],
    source_vehicle_id: Optional[UUID],
    source_vehicle_code: Optional[str],
) -> Dict[str, Any]:
    values = {
        "status": status.value,
        "confirmed_at": store.now(),
        "confirmed_by": store.acting_user,
        # Provenance only ever lives on added rows
        "source_vehicle_id": source_vehicle_id if status == ConfirmationStatus.ADDED else None,
        "source_vehicle_code": source_vehicle_code if status == ConfirmationStatus.ADDED else None,
    }
    if note is not None:
        values["notes"] = note
    return values


def write_status(
    store: ArrivalStore,
    arrival_id: UUID,
    item_id: UUID,
    status: ConfirmationStatus,
    note: Optional[str] = None,
    *,
    source_vehicle_id: Optional[UUID] = None,
    source_vehicle_code: Optional[str] = None,
) -> None:
    """
    Idempotent upsert of one (arrival, item) ledger row, committed on its own.

    A note of None keeps whatever note the row already has. Does not reload
    the ledger; that is the job of the surrounding `store.mutation()`.
    """
    db = store.db
    values = _row_values(store, status, note, source_vehicle_id, source_vehicle_code)

    if store.ledger.has_entry(arrival_id, item_id):
        updated = _pair_query(store, arrival_id, item_id).update(values, synchronize_session=False)
        if updated:
            db.commit()
            return
        logger.info(
            "Ledger believed a row for arrival %s item %s but none exists, inserting",
            arrival_id,
            item_id,
        )

    try:
        db.add(ArrivalConfirmation(
            project_id=store.project_id,
            arrived_vehicle_id=arrival_id,
            item_id=item_id,
            **values,
        ))
        db.commit()
    except IntegrityError:
        # Another writer created the pair since the ledger was loaded
        db.rollback()
        logger.info("Row for arrival %s item %s already exists, updating instead", arrival_id, item_id)
        if not _pair_query(store, arrival_id, item_id).update(values, synchronize_session=False):
            raise
        db.commit()


def _apply_item_status(
    store: ArrivalStore,
    arrival: ArrivedVehicle,
    item_id: UUID,
    status: ConfirmationStatus,
    note: Optional[str],
) -> None:
    current = store.ledger.get(arrival.id, item_id)
    if current is not None and current.status == ConfirmationStatus.ADDED:
        raise InvalidStatusError(
            f"Item {item_id} was added to arrival {arrival.id}; undo the reassignment instead"
        )
    old_status = store.ledger.status(arrival.id, item_id)
    write_status(store, arrival.id, item_id, status, note)

    if status == ConfirmationStatus.MISSING and old_status != ConfirmationStatus.MISSING:
        record_history(
            store.db,
            store.project_id,
            item_id,
            HistoryChangeType.STATUS_CHANGED,
            store.acting_user,
            vehicle_id=arrival.vehicle_id,
            old_status=old_status.value,
            new_status=status.value,
            reason=note,
        )


def set_item_status(
    store: ArrivalStore,
    arrival_id: UUID,
    item_id: UUID,
    status: Any,
    note: Optional[str] = None,
):
    """Set one item's status on an arrival. Returns the reloaded ledger entry."""
    status = coerce_status(status)
    if status not in ITEM_WRITABLE_STATUSES:
        raise InvalidStatusError(f"Status {status.value!r} can only be set by reassignment")

    with store.mutation():
        arrival = store.require_arrival(arrival_id, writable=True)
        store.require_item(item_id)
        _apply_item_status(store, arrival, item_id, status, note)
        logger.info("Arrival %s item %s -> %s by %s", arrival_id, item_id, status.value, store.acting_user)
    return store.ledger.get(arrival_id, item_id)


def _bulk_write(
    store: ArrivalStore,
    arrival: ArrivedVehicle,
    item_ids: Iterable[UUID],
    status: ConfirmationStatus,
) -> Dict[str, int]:
    db = store.db
    targets = list(dict.fromkeys(item_ids))
    known = store.get_items(targets)
    unknown = [item_id for item_id in targets if item_id not in known]
    if unknown:
        raise NotFoundError(f"Items not found: {', '.join(str(i) for i in unknown)}")

    pending: List[UUID] = []
    absent: List[UUID] = []
    skipped = 0
    for item_id in targets:
        # Items moved to another vehicle keep their old row but are no longer part of this arrival
        if known[item_id].vehicle_id != arrival.vehicle_id:
            skipped += 1
            continue
        entry = store.ledger.get(arrival.id, item_id)
        if entry is None:
            absent.append(item_id)
        elif entry.status == ConfirmationStatus.PENDING:
            pending.append(item_id)
        else:
            skipped += 1

    values = _row_values(store, status, None, None, None)
    written: List[UUID] = []

    updated = 0
    if pending:
        updated = (
            db.query(ArrivalConfirmation)
            .filter(
                ArrivalConfirmation.arrived_vehicle_id == arrival.id,
                ArrivalConfirmation.item_id.in_(pending),
                ArrivalConfirmation.status == ConfirmationStatus.PENDING.value,
            )
            .update(values, synchronize_session=False)
        )
        db.commit()
        if updated == len(pending):
            written.extend(pending)
        elif updated:
            # Rows this call wrote carry its own timestamp
            written.extend(
                row.item_id
                for row in db.query(ArrivalConfirmation.item_id).filter(
                    ArrivalConfirmation.arrived_vehicle_id == arrival.id,
                    ArrivalConfirmation.item_id.in_(pending),
                    ArrivalConfirmation.confirmed_at == values["confirmed_at"],
                )
            )
        if updated < len(pending):
            existing = {
                row.item_id
                for row in db.query(ArrivalConfirmation.item_id).filter(
                    ArrivalConfirmation.arrived_vehicle_id == arrival.id,
                    ArrivalConfirmation.item_id.in_(pending),
                )
            }
            vanished = [item_id for item_id in pending if item_id not in existing]
            if vanished:
                logger.info("%d pending row(s) on arrival %s vanished, inserting", len(vanished), arrival.id)
                absent.extend(vanished)
            skipped += len(pending) - updated - len(vanished)

    inserted = 0
    if absent:
        try:
            db.add_all([
                ArrivalConfirmation(
                    project_id=store.project_id,
                    arrived_vehicle_id=arrival.id,
                    item_id=item_id,
                    **values,
                )
                for item_id in absent
            ])
            db.commit()
            inserted = len(absent)
            written.extend(absent)
        except IntegrityError:
            db.rollback()
            logger.info("Bulk insert on arrival %s collided, writing rows one by one", arrival.id)
            for item_id in absent:
                try:
                    db.add(ArrivalConfirmation(
                        project_id=store.project_id,
                        arrived_vehicle_id=arrival.id,
                        item_id=item_id,
                        **values,
                    ))
                    db.commit()
                    inserted += 1
                    written.append(item_id)
                except IntegrityError:
                    db.rollback()
                    # Only a row that is still pending may be overwritten
                    count = (
                        _pair_query(store, arrival.id, item_id)
                        .filter(ArrivalConfirmation.status == ConfirmationStatus.PENDING.value)
                        .update(values, synchronize_session=False)
                    )
                    db.commit()
                    updated += count
                    skipped += 1 - count
                    if count:
                        written.append(item_id)

    if status == ConfirmationStatus.MISSING:
        written_set = set(written)
        for item_id in [item_id for item_id in targets if item_id in written_set]:
            record_history(
                db,
                store.project_id,
                item_id,
                HistoryChangeType.STATUS_CHANGED,
                store.acting_user,
                vehicle_id=arrival.vehicle_id,
                old_status=ConfirmationStatus.PENDING.value,
                new_status=status.value,
            )

    logger.info(
        "Bulk %s on arrival %s: updated=%d inserted=%d skipped=%d",
        status.value,
        arrival.id,
        updated,
        inserted,
        skipped,
    )
    return {"updated": updated, "inserted": inserted, "skipped": skipped}


def _bulk_status(status: Any) -> ConfirmationStatus:
    status = coerce_status(status)
    if status not in BULK_STATUSES:
        raise InvalidStatusError(f"Bulk updates only accept confirmed or missing, got {status.value!r}")
    return status


def confirm_selected(
    store: ArrivalStore,
    arrival_id: UUID,
    item_ids: Iterable[UUID],
    status: Any = ConfirmationStatus.CONFIRMED,
) -> Dict[str, int]:
    """Move the selected items that are still pending (or unledgered) to `status`."""
    status = _bulk_status(status)
    with store.mutation():
        arrival = store.require_arrival(arrival_id, writable=True)
        return _bulk_write(store, arrival, item_ids, status)


def confirm_all_pending(
    store: ArrivalStore,
    arrival_id: UUID,
    status: Any = ConfirmationStatus.CONFIRMED,
) -> Dict[str, int]:
    """Move every pending item of the arrival to `status`."""
    status = _bulk_status(status)
    with store.mutation():
        arrival = store.require_arrival(arrival_id, writable=True)
        item_ids = [item.id for item in store.vehicle_items(arrival.vehicle_id)]
        item_ids.extend(
            entry.item_id
            for entry in store.ledger.entries_for_arrival(arrival.id)
            if entry.status == ConfirmationStatus.ADDED
        )
        return _bulk_write(store, arrival, item_ids, status)


def mass_apply_status(
    store: ArrivalStore,
    item_ids: Iterable[UUID],
    status: Any,
    note: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Apply a status to items spread over many vehicles.

    Each item is written against its current vehicle's arrival, which is
    created (with pending rows) when the vehicle has not arrived yet.
    """
    status = coerce_status(status)
    if status not in ITEM_WRITABLE_STATUSES:
        raise InvalidStatusError(f"Status {status.value!r} can only be set by reassignment")

    applied = 0
    created_arrivals = 0
    skipped: List[Dict[str, Any]] = []

    with store.mutation():
        targets = list(dict.fromkeys(item_ids))
        items = store.get_items(targets)
        for item_id in targets:
            item = items.get(item_id)
            if item is None:
                skipped.append({"item_id": item_id, "reason": "not_found"})
                continue
            if item.vehicle_id is None:
                skipped.append({"item_id": item_id, "reason": "no_vehicle"})
                continue

            arrival = store.arrival_for_vehicle(item.vehicle_id)
            if arrival is None:
                arrival = create_arrival(store, store.require_vehicle(item.vehicle_id))
                store.reload()
                created_arrivals += 1
            if arrival.is_confirmed:
                skipped.append({"item_id": item_id, "reason": "arrival_confirmed"})
                continue
            if store.ledger.status(arrival.id, item_id) == ConfirmationStatus.ADDED:
                skipped.append({"item_id": item_id, "reason": "added"})
                continue

            _apply_item_status(store, arrival, item_id, status, note)
            applied += 1

    if skipped:
        logger.info("Mass %s skipped %d item(s)", status.value, len(skipped))
    logger.info("Mass %s applied to %d item(s), %d arrival(s) created", status.value, applied, created_arrivals)
    return {"applied": applied, "created_arrivals": created_arrivals, "skipped": skipped}


def create_arrival(
    store: ArrivalStore,
    vehicle: DeliveryVehicle,
    arrival_date: Optional[date] = None,
    arrival_time: Optional[str] = None,
    *,
    seed_items: bool = True,
) -> ArrivedVehicle:
    """
    Create an arrival plus one pending row per item currently on the vehicle.

    With `seed_items=False` the arrival starts empty and the vehicle status is
    left alone; used for follow-up arrivals of a vehicle that already came.
    """
    db = store.db
    now = store.now()
    arrival = ArrivedVehicle(
        project_id=store.project_id,
        vehicle_id=vehicle.id,
        arrival_date=arrival_date or vehicle.scheduled_date or store.today(),
        arrival_time=arrival_time or now.strftime("%H:%M"),
        created_by=store.acting_user,
        updated_by=store.acting_user,
    )
    db.add(arrival)
    db.flush()

    items = store.vehicle_items(vehicle.id) if seed_items else []
    db.add_all([
        ArrivalConfirmation(
            project_id=store.project_id,
            arrived_vehicle_id=arrival.id,
            item_id=item.id,
            status=ConfirmationStatus.PENDING.value,
        )
        for item in items
    ])
    if seed_items:
        vehicle.status = VehicleStatus.ARRIVED.value
        vehicle.updated_by = store.acting_user
    db.commit()
    logger.info(
        "Arrival %s started for vehicle %s with %d item(s)",
        arrival.id,
        vehicle.vehicle_code,
        len(items),
    )
    return arrival


def start_arrival(
    store: ArrivalStore,
    vehicle_id: UUID,
    arrival_date: Optional[date] = None,
    arrival_time: Optional[str] = None,
) -> ArrivedVehicle:
    """Return the vehicle's arrival, creating it on first use."""
    with store.mutation():
        vehicle = store.require_vehicle(vehicle_id)
        existing = store.arrival_for_vehicle(vehicle.id)
        if existing is not None:
            return existing
        return create_arrival(store, vehicle, arrival_date, arrival_time)


def create_unplanned_vehicle(
    store: ArrivalStore,
    vehicle_code: str,
    factory_id: Optional[UUID] = None,
    arrival_date: Optional[date] = None,
    notes: Optional[str] = None,
    arrival_time: Optional[str] = None,
) -> ArrivedVehicle:
    """Register a vehicle that turned up without being on the schedule."""
    with store.mutation():
        if factory_id is not None:
            factory = (
                store.db.query(DeliveryFactory)
                .filter(DeliveryFactory.project_id == store.project_id, DeliveryFactory.id == factory_id)
                .first()
            )
            if not factory:
                raise NotFoundError(f"Factory {factory_id} not found")

        vehicle = DeliveryVehicle(
            project_id=store.project_id,
            factory_id=factory_id,
            vehicle_code=vehicle_code,
            scheduled_date=arrival_date or store.today(),
            status=VehicleStatus.ARRIVED.value,
            is_unplanned=True,
            notes=notes,
            created_by=store.acting_user,
            updated_by=store.acting_user,
        )
        store.db.add(vehicle)
        store.db.flush()
        logger.info("Unplanned vehicle %s registered", vehicle_code)
        return create_arrival(store, vehicle, arrival_date, arrival_time)


def update_arrival(store: ArrivalStore, arrival_id: UUID, fields: Dict[str, Any]) -> ArrivedVehicle:
    with store.mutation():
        arrival = store.require_arrival(arrival_id, writable=True)
        for key, value in fields.items():
            if key not in ARRIVAL_EDITABLE_FIELDS:
                raise ValueError(f"Arrival field {key!r} cannot be edited")
            if key == "arrival_date" and value is None:
                raise ValueError("arrival_date cannot be cleared")
            if key == "unload_resources" and value is not None:
                value = UnloadResources.model_validate(value).model_dump()
            setattr(arrival, key, value)
        arrival.updated_by = store.acting_user
        store.db.commit()
        store.db.refresh(arrival)
        return arrival


def complete_arrival(store: ArrivalStore, arrival_id: UUID) -> ArrivedVehicle:
    """
    Lock the arrival.

    Items confirmed on this arrival become delivered; the vehicle is marked
    completed. Pending and missing items keep their item status.
    """
    db = store.db
    with store.mutation():
        arrival = store.require_arrival(arrival_id, writable=True)
        confirmed_ids = [
            row.item_id
            for row in db.query(ArrivalConfirmation.item_id).filter(
                ArrivalConfirmation.arrived_vehicle_id == arrival.id,
                ArrivalConfirmation.status == ConfirmationStatus.CONFIRMED.value,
            )
        ]
        if confirmed_ids:
            # Items reassigned away since confirmation are delivered by their new arrival
            db.query(DeliveryItem).filter(
                DeliveryItem.id.in_(confirmed_ids),
                DeliveryItem.vehicle_id == arrival.vehicle_id,
            ).update(
                {"status": ItemStatus.DELIVERED.value, "updated_by": store.acting_user},
                synchronize_session=False,
            )

        vehicle = store.get_vehicle(arrival.vehicle_id)
        if vehicle is not None:
            vehicle.status = VehicleStatus.COMPLETED.value
            vehicle.updated_by = store.acting_user

        arrival.is_confirmed = True
        arrival.confirmed_at = store.now()
        arrival.confirmed_by = store.acting_user
        arrival.updated_by = store.acting_user
        db.commit()
        db.refresh(arrival)
        logger.info("Arrival %s completed, %d item(s) delivered", arrival.id, len(confirmed_ids))
        return arrival
