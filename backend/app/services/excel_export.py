"""
Excel export service.
"""
import pandas as pd
from uuid import UUID
from pathlib import Path
from app.db.database import settings
from app.services.arrival_store import ArrivalStore
from app.services.derived_views import arrival_detail
from app.services.reassignment import removed_items_for_vehicle


def generate_arrival_report(store: ArrivalStore, arrival_id: UUID) -> str:
    """
    Generate Excel report for one arrival with sheets:
    - Summary
    - Items
    - Removed Items (scheduled here, delivered with another vehicle)
    - Photos
    """
    detail = arrival_detail(store, arrival_id)
    arrival = detail["arrival"]
    counts = detail["counts"]
    resources = arrival.unload_resources or {}

    report_dir = Path(settings.report_dir)
    report_dir.mkdir(parents=True, exist_ok=True)
    file_path = report_dir / f"arrival_report_{arrival_id}.xlsx"

    with pd.ExcelWriter(file_path, engine='openpyxl') as writer:
        # Summary sheet
        summary_data = {
            "Field": [
                "Vehicle",
                "Arrival Date",
                "Arrival Time",
                "Unloading",
                "Location",
                "Registration",
                "Trailer",
                "Resources",
                "Confirmed",
                "Confirmed By",
                "Pending",
                "Confirmed Items",
                "Missing Items",
                "Added Items",
            ],
            "Value": [
                detail["vehicle_code"],
                arrival.arrival_date.isoformat() if arrival.arrival_date else "",
                arrival.arrival_time or "",
                f"{arrival.unload_start_time or ''} - {arrival.unload_end_time or ''}".strip(" -"),
                arrival.unload_location or "",
                arrival.reg_number or "",
                arrival.trailer_number or "",
                ", ".join(f"{name}: {count}" for name, count in resources.items() if count),
                "Yes" if arrival.is_confirmed else "No",
                arrival.confirmed_by or "",
                counts.get("pending", 0),
                counts.get("confirmed", 0),
                counts.get("missing", 0),
                counts.get("added", 0),
            ]
        }
        pd.DataFrame(summary_data).to_excel(writer, sheet_name="Summary", index=False)

        # Items sheet
        item_data = []
        for row in detail["items"]:
            item_data.append({
                "Assembly Mark": row["label"],
                "Product": row["product_name"] or "",
                "Weight": row["weight"],
                "Status": row["status"].value,
                "From Vehicle": row["source_vehicle_code"] or "",
                "Note": row["note"] or "",
                "Photos": row["photo_count"],
                "GUID": row["guid"] or "",
            })
        pd.DataFrame(
            item_data,
            columns=["Assembly Mark", "Product", "Weight", "Status", "From Vehicle", "Note", "Photos", "GUID"],
        ).to_excel(writer, sheet_name="Items", index=False)

        # Removed items sheet
        removed = removed_items_for_vehicle(store, arrival.vehicle_id)
        if removed:
            pd.DataFrame([
                {
                    "Assembly Mark": r["assembly_mark"] or "",
                    "Delivered With": r["receiving_vehicle_code"] or "",
                    "Arrival Date": r["arrival_date"].isoformat() if r["arrival_date"] else "",
                }
                for r in removed
            ]).to_excel(writer, sheet_name="Removed Items", index=False)

        # Photos sheet
        photos = store.ledger.arrival_photos.get(arrival.id, [])
        if photos:
            pd.DataFrame([
                {
                    "File": p.file_name,
                    "URL": p.file_url,
                    "Uploaded": p.uploaded_at.isoformat() if p.uploaded_at else "",
                }
                for p in photos
            ]).to_excel(writer, sheet_name="Photos", index=False)

    return str(file_path)
