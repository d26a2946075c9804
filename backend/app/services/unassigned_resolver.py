"""
Unassigned arrivals - items found on site that nobody tied to a delivery.

A report can be filed with whatever the crew knows (GUID, assembly mark,
location). Resolving it confirms the matched item on its vehicle's arrival.
"""
from typing import List, Optional
from uuid import UUID
import logging

from app.models import ConfirmationStatus, DeliveryItem, UnassignedArrival
from app.services.arrival_store import ArrivalStore
from app.services.errors import NotFoundError
from app.services.reconciliation import create_arrival, write_status

logger = logging.getLogger(__name__)


def found_on_site_note(location: Optional[str], notes: Optional[str]) -> str:
    return f"Found on site: {location or ''}. {notes or ''}".strip()


def match_item(store: ArrivalStore, guid: Optional[str], assembly_mark: Optional[str]) -> Optional[DeliveryItem]:
    """Match by GUID first, then by assembly mark when exactly one item carries it."""
    if guid:
        item = store.items_by_guid([guid]).get(guid)
        if item is not None:
            return item
    if assembly_mark:
        candidates = (
            store.db.query(DeliveryItem)
            .filter(DeliveryItem.project_id == store.project_id, DeliveryItem.assembly_mark == assembly_mark)
            .limit(2)
            .all()
        )
        if len(candidates) == 1:
            return candidates[0]
    return None


def report_unassigned(
    store: ArrivalStore,
    guid: Optional[str] = None,
    assembly_mark: Optional[str] = None,
    location: Optional[str] = None,
    notes: Optional[str] = None,
    item_id: Optional[UUID] = None,
) -> UnassignedArrival:
    if item_id is not None:
        item = store.require_item(item_id)
    else:
        item = match_item(store, guid, assembly_mark)

    report = UnassignedArrival(
        project_id=store.project_id,
        item_id=item.id if item else None,
        guid=guid or (item.guid if item else None),
        assembly_mark=assembly_mark or (item.assembly_mark if item else None),
        location=location,
        notes=notes,
        reported_by=store.acting_user,
    )
    store.db.add(report)
    store.db.commit()
    store.db.refresh(report)
    logger.info("Unassigned arrival reported: %s (matched=%s)", report.assembly_mark or report.guid, bool(item))
    return report


def list_unassigned(store: ArrivalStore, include_resolved: bool = False) -> List[UnassignedArrival]:
    query = store.db.query(UnassignedArrival).filter(UnassignedArrival.project_id == store.project_id)
    if not include_resolved:
        query = query.filter(UnassignedArrival.is_resolved.is_(False))
    return query.order_by(UnassignedArrival.reported_at.desc()).all()


def resolve_unassigned(store: ArrivalStore, report_id: UUID, item_id: Optional[UUID] = None) -> UnassignedArrival:
    """
    Confirm the reported item on its vehicle's arrival and close the report.

    Without a matched item on a vehicle the report stays open and unlinked.
    """
    with store.mutation():
        db = store.db
        report = (
            db.query(UnassignedArrival)
            .filter(UnassignedArrival.project_id == store.project_id, UnassignedArrival.id == report_id)
            .first()
        )
        if not report:
            raise NotFoundError(f"Unassigned report {report_id} not found")
        if report.is_resolved:
            return report

        if item_id is not None:
            item = store.require_item(item_id)
        elif report.item_id is not None:
            item = store.get_item(report.item_id)
        else:
            item = match_item(store, report.guid, report.assembly_mark)

        if item is None or item.vehicle_id is None:
            logger.info("Unassigned report %s has no item on a vehicle yet, left open", report.id)
            return report

        arrival = store.open_arrival_for_vehicle(item.vehicle_id, item.scheduled_date)
        if arrival is None:
            vehicle = store.require_vehicle(item.vehicle_id)
            # A vehicle whose arrivals are all completed gets an empty follow-up arrival
            first_arrival = store.arrival_for_vehicle(vehicle.id) is None
            arrival = create_arrival(store, vehicle, item.scheduled_date, seed_items=first_arrival)
            store.reload()
        arrival = store.require_arrival(arrival.id, writable=True)

        if store.ledger.status(arrival.id, item.id) != ConfirmationStatus.ADDED:
            write_status(
                store,
                arrival.id,
                item.id,
                ConfirmationStatus.CONFIRMED,
                found_on_site_note(report.location, report.notes),
            )

        report.item_id = item.id
        report.arrived_vehicle_id = arrival.id
        report.is_resolved = True
        report.resolved_at = store.now()
        report.resolved_by = store.acting_user
        db.commit()
        db.refresh(report)
        logger.info("Unassigned report %s resolved onto arrival %s", report.id, arrival.id)
        return report
