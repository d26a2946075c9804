from openpyxl import load_workbook

from app.db.database import settings
from app.services.arrival_photos import add_photo
from app.services.excel_export import generate_arrival_report
from app.services.reassignment import reassign
from app.services.reconciliation import set_item_status, start_arrival


def test_arrival_report_sheets(schedule, make_store, tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "report_dir", str(tmp_path / "reports"))
    store = make_store()
    arrival = start_arrival(store, schedule.v1.id)
    set_item_status(store, arrival.id, schedule.items["a2"].id, "missing", "Left at plant")
    add_photo(store, arrival.id, "overview.jpg", b"x")

    path = generate_arrival_report(store, arrival.id)

    workbook = load_workbook(path)
    assert workbook.sheetnames == ["Summary", "Items", "Photos"]
    summary = {row[0]: row[1] for row in workbook["Summary"].iter_rows(min_row=2, values_only=True)}
    assert summary["Vehicle"] == "OPO1"
    assert summary["Missing Items"] == 1
    notes = [row[5] for row in workbook["Items"].iter_rows(min_row=2, values_only=True)]
    assert "Left at plant" in notes


def test_source_vehicle_report_lists_removed_items(schedule, make_store, tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "report_dir", str(tmp_path / "reports"))
    store = make_store()
    v1_arrival = start_arrival(store, schedule.v1.id)
    reassign(store, v1_arrival.id, schedule.items["b1"].id)
    v2_arrival = start_arrival(store, schedule.v2.id)

    workbook = load_workbook(generate_arrival_report(store, v2_arrival.id))

    assert "Removed Items" in workbook.sheetnames
    rows = list(workbook["Removed Items"].iter_rows(min_row=2, values_only=True))
    assert rows == [("W-201", "OPO1", "2026-10-20")]
