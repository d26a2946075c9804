import pytest

from app.models import ConfirmationStatus, VehicleStatus
from app.services.errors import NotFoundError
from app.services.reconciliation import complete_arrival, set_item_status, start_arrival
from app.services.unassigned_resolver import (
    found_on_site_note,
    list_unassigned,
    match_item,
    report_unassigned,
    resolve_unassigned,
)


def test_report_matches_by_guid(schedule, make_store):
    store = make_store("foreman")

    report = report_unassigned(store, guid="g-201", location="Zone B")

    assert report.item_id == schedule.items["b1"].id
    assert report.assembly_mark == "W-201"
    assert report.reported_by == "foreman"
    assert report.is_resolved is False


def test_match_by_mark_needs_a_unique_mark(schedule, make_store):
    store = make_store()

    assert match_item(store, None, "W-202").id == schedule.items["b2"].id
    assert match_item(store, None, "W-101") is None
    assert match_item(store, "g-unknown", None) is None


def test_resolve_confirms_item_on_its_vehicle_arrival(schedule, make_store):
    store = make_store()
    report = report_unassigned(store, guid="g-201", location="Zone B", notes="Behind the crane")

    resolved = resolve_unassigned(store, report.id)

    assert resolved.is_resolved is True
    arrival = store.arrival_for_vehicle(schedule.v2.id)
    assert resolved.arrived_vehicle_id == arrival.id
    entry = store.ledger.get(arrival.id, schedule.items["b1"].id)
    assert entry.status == ConfirmationStatus.CONFIRMED
    assert entry.note == "Found on site: Zone B. Behind the crane"
    assert store.ledger.status(arrival.id, schedule.items["b2"].id) == ConfirmationStatus.PENDING


def test_resolve_without_match_stays_open(schedule, make_store):
    store = make_store()
    report = report_unassigned(store, assembly_mark="Z-999", location="Gate")

    result = resolve_unassigned(store, report.id)

    assert result.is_resolved is False
    assert result.item_id is None
    assert result.arrived_vehicle_id is None
    assert [r.id for r in list_unassigned(store)] == [report.id]


def test_resolve_with_explicit_item(schedule, make_store):
    store = make_store()
    report = report_unassigned(store, assembly_mark="W-101")
    assert report.item_id is None

    resolved = resolve_unassigned(store, report.id, item_id=schedule.items["a3"].id)

    assert resolved.item_id == schedule.items["a3"].id
    assert list_unassigned(store) == []
    assert [r.id for r in list_unassigned(store, include_resolved=True)] == [report.id]


def test_resolve_is_idempotent(schedule, make_store):
    store = make_store()
    report = report_unassigned(store, guid="g-101")
    first = resolve_unassigned(store, report.id)

    second = resolve_unassigned(store, report.id)

    assert second.resolved_at == first.resolved_at
    assert len(store.ledger.entries_for_arrival(first.arrived_vehicle_id)) == 3


def test_resolve_after_arrival_completed_opens_follow_up_arrival(schedule, make_store):
    store = make_store()
    first = start_arrival(store, schedule.v1.id)
    set_item_status(store, first.id, schedule.items["a2"].id, "missing")
    complete_arrival(store, first.id)
    report = report_unassigned(store, guid="g-102", location="Yard 3")

    resolved = resolve_unassigned(store, report.id)

    assert resolved.is_resolved is True
    assert resolved.arrived_vehicle_id != first.id
    entries = store.ledger.entries_for_arrival(resolved.arrived_vehicle_id)
    assert [(e.item_id, e.status) for e in entries] == [(schedule.items["a2"].id, ConfirmationStatus.CONFIRMED)]
    assert entries[0].note == "Found on site: Yard 3."
    assert store.ledger.status(first.id, schedule.items["a2"].id) == ConfirmationStatus.MISSING
    assert store.require_vehicle(schedule.v1.id).status == VehicleStatus.COMPLETED


def test_resolve_reuses_open_follow_up_arrival(schedule, make_store):
    store = make_store()
    first = start_arrival(store, schedule.v1.id)
    complete_arrival(store, first.id)
    one = resolve_unassigned(store, report_unassigned(store, guid="g-102").id)

    two = resolve_unassigned(store, report_unassigned(store, guid="g-101b").id)

    assert two.arrived_vehicle_id == one.arrived_vehicle_id
    assert len(store.ledger.entries_for_arrival(one.arrived_vehicle_id)) == 2


def test_resolve_unknown_report(schedule, make_store):
    import uuid

    with pytest.raises(NotFoundError):
        resolve_unassigned(make_store(), uuid.uuid4())


def test_found_on_site_note_without_notes():
    assert found_on_site_note("Zone A", None) == "Found on site: Zone A."
