"""
Reassignment protocol - moving items between vehicles at arrival time.

An item that shows up on a different truck than scheduled gets an `added`
ledger row on the receiving arrival that remembers where it came from, and
its current vehicle pointer is moved. Items picked straight from the model
(never scheduled) get an `added` row with no source vehicle.

Each step commits on its own; re-running an interrupted reassignment
finishes it without creating duplicates.
"""
from typing import Any, Dict, List, Optional, Sequence, Tuple
from uuid import UUID
import logging

from app.models import (
    ArrivalConfirmation,
    ArrivalPhoto,
    ConfirmationStatus,
    DeliveryHistory,
    DeliveryItem,
    HistoryChangeType,
    ItemStatus,
    UnassignedArrival,
)
from app.services.arrival_store import ArrivalStore
from app.services.errors import InvalidReassignmentError, NotFoundError
from app.services.history import record_history
from app.services.reconciliation import write_status
from app.services.status_ledger import LedgerEntry
from app.services.viewer import object_details, paint_guids

logger = logging.getLogger(__name__)

MODEL_NOTE = "Added from model (not in delivery schedule)"


def vehicle_note(vehicle_code: str) -> str:
    return f"Added from vehicle {vehicle_code}"


def _paint(store: ArrivalStore, guid: Optional[str], color_key: str) -> None:
    if guid:
        paint_guids(store.viewer, [guid], store.palette[color_key])


def reassign(
    store: ArrivalStore,
    target_arrival_id: UUID,
    item_id: UUID,
    source_vehicle_id: Optional[UUID] = None,
) -> Optional[LedgerEntry]:
    """
    Move a scheduled item onto the target arrival.

    `source_vehicle_id` defaults to the item's current vehicle and must match
    it when given.
    """
    with store.mutation():
        db = store.db
        arrival = store.require_arrival(target_arrival_id, writable=True)
        item = store.require_item(item_id)

        if item.vehicle_id is None:
            raise InvalidReassignmentError(f"Item {item.assembly_mark} is not on any vehicle")
        if item.vehicle_id == arrival.vehicle_id:
            entry = store.ledger.get(arrival.id, item.id)
            if entry is not None and entry.status == ConfirmationStatus.ADDED:
                logger.info("Item %s already reassigned to arrival %s", item.id, arrival.id)
                return entry
            raise InvalidReassignmentError(f"Item {item.assembly_mark} is already on the target vehicle")
        source_id = source_vehicle_id or item.vehicle_id
        if source_id != item.vehicle_id:
            raise InvalidReassignmentError(
                f"Item {item.assembly_mark} is on vehicle {item.vehicle_id}, not {source_id}"
            )

        source = store.require_vehicle(source_id)
        target_vehicle = store.require_vehicle(arrival.vehicle_id)
        source_code = source.vehicle_code
        target_code = target_vehicle.vehicle_code
        arrival_date = arrival.arrival_date

        confirmed_elsewhere = [
            entry for entry in store.ledger.entries.values()
            if entry.item_id == item.id
            and entry.arrived_vehicle_id != arrival.id
            and entry.status == ConfirmationStatus.CONFIRMED
        ]
        if confirmed_elsewhere:
            logger.warning(
                "Item %s is already confirmed on arrival(s) %s, adding it to %s anyway",
                item.assembly_mark,
                ", ".join(str(e.arrived_vehicle_id) for e in confirmed_elsewhere),
                arrival.id,
            )

        note = vehicle_note(source_code)
        write_status(
            store,
            arrival.id,
            item.id,
            ConfirmationStatus.ADDED,
            note,
            source_vehicle_id=source.id,
            source_vehicle_code=source_code,
        )

        old_date = item.scheduled_date
        item.vehicle_id = target_vehicle.id
        item.scheduled_date = arrival_date
        item.updated_by = store.acting_user
        db.commit()

        record_history(
            db,
            store.project_id,
            item.id,
            HistoryChangeType.VEHICLE_CHANGED,
            store.acting_user,
            vehicle_id=target_vehicle.id,
            old_vehicle_id=source.id,
            old_vehicle_code=source_code,
            new_vehicle_id=target_vehicle.id,
            new_vehicle_code=target_code,
            old_date=old_date,
            new_date=arrival_date,
            new_status=ConfirmationStatus.ADDED.value,
            reason=note,
        )
        guid = item.guid
        logger.info("Item %s moved from %s to %s", item.assembly_mark, source_code, target_code)

    if arrival.id in store.active_coloring:
        _paint(store, guid, "added_from_vehicle")
    return store.ledger.get(arrival.id, item_id)


def add_from_model(
    store: ArrivalStore,
    target_arrival_id: UUID,
    guid: str,
    assembly_mark: Optional[str] = None,
    product_name: Optional[str] = None,
    model_id: Optional[str] = None,
    object_runtime_id: Optional[int] = None,
    weight: Optional[Any] = None,
) -> Optional[LedgerEntry]:
    """
    Add an object picked in the model to the arrival.

    A GUID that already belongs to a project item is reassigned instead of
    creating a second item for the same object.
    """
    if not guid:
        raise ValueError("guid is required")

    existing = store.items_by_guid([guid]).get(guid)
    if existing is not None:
        if existing.vehicle_id is None:
            raise InvalidReassignmentError(f"Item {existing.assembly_mark} exists but is not on any vehicle")
        logger.info("GUID %s belongs to item %s, reassigning", guid, existing.assembly_mark)
        return reassign(store, target_arrival_id, existing.id)

    if not assembly_mark:
        raise ValueError("assembly_mark is required for an item not in the schedule")

    with store.mutation():
        db = store.db
        arrival = store.require_arrival(target_arrival_id, writable=True)
        target_vehicle = store.require_vehicle(arrival.vehicle_id)
        arrival_id = arrival.id
        item = DeliveryItem(
            project_id=store.project_id,
            vehicle_id=target_vehicle.id,
            model_id=model_id,
            guid=guid,
            object_runtime_id=object_runtime_id,
            assembly_mark=assembly_mark,
            product_name=product_name,
            weight=weight,
            scheduled_date=arrival.arrival_date,
            status=ItemStatus.DELIVERED.value,
            created_by=store.acting_user,
            updated_by=store.acting_user,
        )
        db.add(item)
        db.commit()
        item_id = item.id

        write_status(store, arrival_id, item_id, ConfirmationStatus.ADDED, MODEL_NOTE)
        record_history(
            db,
            store.project_id,
            item_id,
            HistoryChangeType.CREATED,
            store.acting_user,
            vehicle_id=target_vehicle.id,
            new_vehicle_id=target_vehicle.id,
            new_vehicle_code=target_vehicle.vehicle_code,
            new_date=item.scheduled_date,
            new_status=ConfirmationStatus.ADDED.value,
            reason=MODEL_NOTE,
        )
        logger.info("Item %s added from model to arrival %s", assembly_mark, arrival_id)

    if arrival_id in store.active_coloring:
        _paint(store, guid, "added_from_model")
    return store.ledger.get(arrival_id, item_id)


def _date_before_move(store: ArrivalStore, item_id: UUID, from_vehicle_id: UUID, to_vehicle_id: UUID, fallback):
    """Scheduled date the item had before its latest move between the two vehicles."""
    move = (
        store.db.query(DeliveryHistory)
        .filter(
            DeliveryHistory.project_id == store.project_id,
            DeliveryHistory.item_id == item_id,
            DeliveryHistory.change_type == HistoryChangeType.VEHICLE_CHANGED,
            DeliveryHistory.old_vehicle_id == from_vehicle_id,
            DeliveryHistory.new_vehicle_id == to_vehicle_id,
        )
        .order_by(DeliveryHistory.changed_at.desc())
        .first()
    )
    if move is None or move.old_date is None:
        return fallback
    return move.old_date


def undo_reassign(store: ArrivalStore, confirmation_id: UUID) -> Dict[str, Any]:
    """
    Reverse a reassignment recorded by an `added` row.

    Vehicle-sourced rows put the item back on its source vehicle; model
    rows delete the item they created.
    """
    with store.mutation():
        db = store.db
        row = (
            db.query(ArrivalConfirmation)
            .filter(ArrivalConfirmation.project_id == store.project_id, ArrivalConfirmation.id == confirmation_id)
            .first()
        )
        if not row:
            raise NotFoundError(f"Confirmation {confirmation_id} not found")
        if row.status != ConfirmationStatus.ADDED.value:
            raise InvalidReassignmentError(f"Confirmation {confirmation_id} is not a reassignment")

        arrival = store.require_arrival(row.arrived_vehicle_id, writable=True)
        arrival_id = arrival.id
        target_vehicle = store.get_vehicle(arrival.vehicle_id)
        target_code = target_vehicle.vehicle_code if target_vehicle else None
        item = store.get_item(row.item_id)
        item_id = row.item_id
        source_id = row.source_vehicle_id
        guid = item.guid if item else None

        db.query(ArrivalPhoto).filter(ArrivalPhoto.confirmation_id == row.id).update(
            {"confirmation_id": None}, synchronize_session=False
        )

        if source_id is not None:
            source = store.get_vehicle(source_id)
            if source is None:
                raise NotFoundError(f"Source vehicle {source_id} no longer exists")
            db.query(ArrivalConfirmation).filter(ArrivalConfirmation.id == row.id).delete(synchronize_session=False)
            db.commit()

            if item is not None and item.vehicle_id == arrival.vehicle_id:
                old_date = item.scheduled_date
                restored_date = _date_before_move(store, item_id, source.id, arrival.vehicle_id, source.scheduled_date)
                item.vehicle_id = source.id
                item.scheduled_date = restored_date
                item.updated_by = store.acting_user
                db.commit()
                record_history(
                    db,
                    store.project_id,
                    item_id,
                    HistoryChangeType.VEHICLE_CHANGED,
                    store.acting_user,
                    vehicle_id=source.id,
                    old_vehicle_id=arrival.vehicle_id,
                    old_vehicle_code=target_code,
                    new_vehicle_id=source.id,
                    new_vehicle_code=source.vehicle_code,
                    old_date=old_date,
                    new_date=restored_date,
                    old_status=ConfirmationStatus.ADDED.value,
                    reason="Reassignment undone",
                )
            logger.info("Undid reassignment of item %s back to %s", item_id, source.vehicle_code)
            result = {"item_id": item_id, "restored_vehicle_id": source.id, "item_removed": False}
        else:
            db.query(ArrivalPhoto).filter(ArrivalPhoto.item_id == item_id).update(
                {"item_id": None}, synchronize_session=False
            )
            db.query(UnassignedArrival).filter(UnassignedArrival.item_id == item_id).update(
                {"item_id": None}, synchronize_session=False
            )
            db.query(ArrivalConfirmation).filter(ArrivalConfirmation.item_id == item_id).delete(
                synchronize_session=False
            )
            db.query(DeliveryItem).filter(DeliveryItem.id == item_id).delete(synchronize_session=False)
            db.commit()
            record_history(
                db,
                store.project_id,
                item_id,
                HistoryChangeType.REMOVED,
                store.acting_user,
                vehicle_id=target_vehicle.id if target_vehicle else None,
                old_vehicle_id=target_vehicle.id if target_vehicle else None,
                old_vehicle_code=target_code,
                old_status=ConfirmationStatus.ADDED.value,
                reason="Model addition undone",
            )
            logger.info("Removed model-added item %s from arrival %s", item_id, arrival_id)
            result = {"item_id": item_id, "restored_vehicle_id": None, "item_removed": True}

    if source_id is None or arrival_id in store.active_coloring:
        _paint(store, guid, "neutral")
    return result


def removed_items_for_vehicle(store: ArrivalStore, vehicle_id: UUID) -> List[Dict[str, Any]]:
    """Items scheduled for the vehicle that are now ledgered on another arrival."""
    store.require_vehicle(vehicle_id)
    entries = [e for e in store.ledger.added_entries() if e.source_vehicle_id == vehicle_id]
    items = store.get_items(e.item_id for e in entries)

    results = []
    for entry in entries:
        arrival = store.get_arrival(entry.arrived_vehicle_id)
        receiving = store.get_vehicle(arrival.vehicle_id) if arrival else None
        item = items.get(entry.item_id)
        results.append({
            "confirmation_id": entry.confirmation_id,
            "item_id": entry.item_id,
            "assembly_mark": item.assembly_mark if item else None,
            "guid": item.guid if item else None,
            "arrived_vehicle_id": entry.arrived_vehicle_id,
            "arrival_date": arrival.arrival_date if arrival else None,
            "receiving_vehicle_id": receiving.id if receiving else None,
            "receiving_vehicle_code": receiving.vehicle_code if receiving else None,
        })
    results.sort(key=lambda r: (r["arrival_date"] is None, r["arrival_date"], r["assembly_mark"] or ""))
    return results


def split_model_selection(store: ArrivalStore, guids: Sequence[str]) -> Tuple[List[DeliveryItem], List[str]]:
    """Split picked GUIDs into known project items and objects not in the schedule."""
    unique = list(dict.fromkeys(g for g in guids if g))
    known = store.items_by_guid(unique)
    return [known[g] for g in unique if g in known], [g for g in unique if g not in known]


def _picked_details(store: ArrivalStore, pick: Dict[str, Any]) -> Dict[str, Any]:
    """Fill in what a pick lacks from the viewer's object properties."""
    details = {key: pick.get(key) for key in ("assembly_mark", "product_name", "weight")}
    if details["assembly_mark"]:
        return details
    runtime_id = pick.get("object_runtime_id")
    if store.viewer is not None and pick.get("model_id") and runtime_id is not None:
        try:
            records = store.viewer.get_object_properties(pick["model_id"], [runtime_id]) or []
        except Exception as e:
            logger.warning("Viewer properties failed for %s: %s", pick.get("guid"), e)
            records = []
        found = object_details(records[0] if records else None, runtime_id)
        for key, value in found.items():
            if details[key] is None:
                details[key] = value
    elif runtime_id is not None:
        details["assembly_mark"] = f"Object_{runtime_id}"
    return details


def apply_model_selection(store: ArrivalStore, arrival_id: UUID, picks: Sequence[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Put objects picked in the model on the arrival.

    Picks whose GUID is a scheduled item are reassigned from their vehicle;
    the rest are added as new items. A pick that cannot be applied is
    reported under `skipped` and does not stop the others.
    """
    arrival = store.require_arrival(arrival_id, writable=True)
    by_guid: Dict[str, Dict[str, Any]] = {}
    for pick in picks:
        if pick.get("guid"):
            by_guid.setdefault(pick["guid"], pick)
    known, unknown = split_model_selection(store, list(by_guid))

    result: Dict[str, Any] = {"reassigned": [], "added": [], "skipped": []}
    for item in known:
        if item.vehicle_id == arrival.vehicle_id:
            result["skipped"].append({"guid": item.guid, "reason": "already_on_arrival"})
            continue
        if item.vehicle_id is None:
            result["skipped"].append({"guid": item.guid, "reason": "no_vehicle"})
            continue
        try:
            reassign(store, arrival.id, item.id)
        except (InvalidReassignmentError, ValueError) as e:
            result["skipped"].append({"guid": item.guid, "reason": str(e)})
            continue
        result["reassigned"].append(item.id)

    for guid in unknown:
        pick = by_guid[guid]
        details = _picked_details(store, pick)
        try:
            entry = add_from_model(
                store,
                arrival.id,
                guid,
                assembly_mark=details["assembly_mark"],
                product_name=details["product_name"],
                model_id=pick.get("model_id"),
                object_runtime_id=pick.get("object_runtime_id"),
                weight=details["weight"],
            )
        except (InvalidReassignmentError, ValueError) as e:
            result["skipped"].append({"guid": guid, "reason": str(e)})
            continue
        if entry is not None:
            result["added"].append(entry.item_id)

    logger.info(
        "Model selection on arrival %s: %d reassigned, %d added, %d skipped",
        arrival.id,
        len(result["reassigned"]),
        len(result["added"]),
        len(result["skipped"]),
    )
    return result
