import logging
import uuid
from datetime import datetime, timedelta
from types import SimpleNamespace

from app.models import ArrivalConfirmation, ConfirmationStatus
from app.services.reconciliation import start_arrival
from app.services.status_ledger import build_ledger, load_ledger


def _row(arrival_id, item_id, status="pending", minutes=0, **extra):
    values = dict(
        id=uuid.uuid4(),
        arrived_vehicle_id=arrival_id,
        item_id=item_id,
        status=status,
        notes=None,
        confirmed_at=datetime(2026, 10, 20, 8, 0) + timedelta(minutes=minutes),
        confirmed_by="crew",
        source_vehicle_id=None,
        source_vehicle_code=None,
    )
    values.update(extra)
    return SimpleNamespace(**values)


def _photo(arrival_id, item_id=None, name="p.jpg"):
    return SimpleNamespace(
        id=uuid.uuid4(),
        arrived_vehicle_id=arrival_id,
        item_id=item_id,
        file_name=name,
        file_url=f"/photos/{name}",
        uploaded_at=datetime(2026, 10, 20, 9, 0),
    )


def test_absent_pair_reads_as_pending():
    ledger = build_ledger([])
    arrival_id, item_id = uuid.uuid4(), uuid.uuid4()

    assert ledger.status(arrival_id, item_id) == ConfirmationStatus.PENDING
    assert ledger.has_entry(arrival_id, item_id) is False
    assert ledger.note(arrival_id, item_id) is None
    assert ledger.photo_count(arrival_id, item_id) == 0


def test_entries_and_notes_are_indexed_by_pair():
    arrival_id = uuid.uuid4()
    item_a, item_b = uuid.uuid4(), uuid.uuid4()
    ledger = build_ledger([
        _row(arrival_id, item_a, "confirmed", notes="ok"),
        _row(arrival_id, item_b, "missing", minutes=1),
    ])

    assert ledger.status(arrival_id, item_a) == ConfirmationStatus.CONFIRMED
    assert ledger.note(arrival_id, item_a) == "ok"
    assert ledger.status(arrival_id, item_b) == ConfirmationStatus.MISSING
    assert [e.item_id for e in ledger.entries_for_arrival(arrival_id)] == [item_a, item_b]

    entry = ledger.get(arrival_id, item_a)
    assert ledger.entry_by_id(entry.confirmation_id) is entry


def test_duplicate_pairs_keep_oldest_row(caplog):
    arrival_id, item_id = uuid.uuid4(), uuid.uuid4()
    oldest = _row(arrival_id, item_id, "confirmed")
    newer = _row(arrival_id, item_id, "missing", minutes=5)
    caplog.set_level(logging.WARNING)

    ledger = build_ledger([oldest, newer])

    assert len(ledger.entries) == 1
    assert ledger.get(arrival_id, item_id).confirmation_id == oldest.id
    assert any("duplicate" in rec.message for rec in caplog.records)


def test_photos_grouped_per_item_and_arrival():
    arrival_id, item_id = uuid.uuid4(), uuid.uuid4()
    ledger = build_ledger(
        [_row(arrival_id, item_id)],
        [_photo(arrival_id, item_id, "a.jpg"), _photo(arrival_id, item_id, "b.jpg"), _photo(arrival_id, None, "truck.jpg")],
    )

    assert ledger.photo_count(arrival_id, item_id) == 2
    assert [p.file_name for p in ledger.photos(arrival_id, item_id)] == ["a.jpg", "b.jpg"]
    assert len(ledger.arrival_photos[arrival_id]) == 3


def test_status_counts_include_unledgered_items_as_pending():
    arrival_id = uuid.uuid4()
    confirmed, added, unledgered = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
    ledger = build_ledger([
        _row(arrival_id, confirmed, "confirmed"),
        _row(arrival_id, added, "added", source_vehicle_id=uuid.uuid4(), source_vehicle_code="OPO2"),
    ])

    counts = ledger.status_counts(arrival_id, [confirmed, added, unledgered])
    assert counts == {"pending": 1, "confirmed": 1, "missing": 0, "added": 1}
    assert ledger.status_counts(arrival_id)["pending"] == 0


def test_model_discovered_flag_depends_on_source():
    arrival_id = uuid.uuid4()
    from_model, from_vehicle = uuid.uuid4(), uuid.uuid4()
    ledger = build_ledger([
        _row(arrival_id, from_model, "added"),
        _row(arrival_id, from_vehicle, "added", source_vehicle_id=uuid.uuid4(), source_vehicle_code="OPO2"),
    ])

    assert ledger.get(arrival_id, from_model).is_model_discovered is True
    assert ledger.get(arrival_id, from_vehicle).is_model_discovered is False
    assert len(ledger.added_entries()) == 2


def test_load_ledger_is_scoped_to_project(db, schedule, make_store):
    store = make_store()
    arrival = start_arrival(store, schedule.v1.id)
    db.add(ArrivalConfirmation(
        project_id="other-project",
        arrived_vehicle_id=arrival.id,
        item_id=schedule.items["b1"].id,
        status="confirmed",
    ))
    db.commit()

    ledger = load_ledger(db, "proj-test")
    assert len(ledger.entries_for_arrival(arrival.id)) == 3
    assert not ledger.has_entry(arrival.id, schedule.items["b1"].id)
