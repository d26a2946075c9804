"""
Delivery schedule import - reads a schedule spreadsheet into factories,
vehicles and items.
"""
import pandas as pd
import re
import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from app.models import DeliveryFactory, DeliveryItem, DeliveryVehicle

logger = logging.getLogger(__name__)


# Known column name patterns for mapping (case-insensitive matching)
COLUMN_PATTERNS = {
    "vehicle_code": [
        "vehicle", "vehicle_code", "vehicle code", "truck", "veok", "veoki kood", "load",
    ],
    "factory": [
        "factory", "factory_name", "plant", "tehas", "supplier",
    ],
    "scheduled_date": [
        "date", "scheduled_date", "delivery date", "delivery_date", "kuupäev", "kuupaev",
    ],
    "assembly_mark": [
        "assembly_mark", "assembly mark", "mark", "cast_unit_mark", "mark no", "detail",
    ],
    "guid": [
        "guid", "ifc_guid", "guid_ifc", "object guid",
    ],
    "product_name": [
        "product", "product_name", "name", "profile", "description",
    ],
    "weight": [
        "weight", "wgt", "mass", "kaal", "weight_kg",
    ],
    "model_id": [
        "model", "model_id", "model id",
    ],
}


def infer_file_type(filename: str) -> str:
    """Infer file type from extension."""
    ext = Path(filename).suffix.lower()
    if ext == ".xlsx" or ext == ".xls":
        return "xlsx"
    elif ext == ".csv":
        return "csv"
    else:
        return ext.lstrip(".")


def read_file(file_path: str, file_type: str) -> pd.DataFrame:
    """Read file into pandas DataFrame."""
    if file_type == "xlsx":
        # Read all non-empty sheets and combine
        excel_file = pd.ExcelFile(file_path)
        dataframes = []
        for sheet_name in excel_file.sheet_names:
            df = pd.read_excel(file_path, sheet_name=sheet_name)
            if not df.empty:
                dataframes.append(df)
        if dataframes:
            return pd.concat(dataframes, ignore_index=True)
        raise ValueError("No data found in Excel file")
    elif file_type == "csv":
        for encoding in ["utf-8", "latin-1", "cp1252"]:
            try:
                return pd.read_csv(file_path, encoding=encoding)
            except UnicodeDecodeError:
                continue
        raise ValueError("Could not decode CSV file")
    else:
        raise ValueError(f"Unsupported file type: {file_type}")


def infer_column_mapping(df: pd.DataFrame) -> Dict[str, str]:
    """
    Infer column mappings from DataFrame column names.
    Returns dict mapping source_column -> target_field.
    """
    mappings: Dict[str, str] = {}
    df_columns = [str(col).lower().strip() for col in df.columns]

    for target_field, patterns in COLUMN_PATTERNS.items():
        best_match = None
        best_score = 0.0

        for col_idx, col_name in enumerate(df_columns):
            original_col = df.columns[col_idx]
            if original_col in mappings:
                continue

            for pattern in patterns:
                if pattern == col_name:
                    score = 1.0
                elif pattern in col_name:
                    score = 0.5
                else:
                    continue
                if score > best_score:
                    best_score = score
                    best_match = original_col

        if best_match is not None:
            mappings[best_match] = target_field

    return mappings


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except TypeError:
        pass
    s = str(value).strip()
    return s if s else None


def _date(value: Any) -> Optional[date]:
    if _text(value) is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    parsed = pd.to_datetime(str(value), dayfirst=True, errors="coerce")
    return None if pd.isna(parsed) else parsed.date()


def _decimal(value: Any) -> Optional[Decimal]:
    text = _text(value)
    if text is None:
        return None
    try:
        return Decimal(text.replace(",", "."))
    except InvalidOperation:
        return None


def normalize_row(row: pd.Series, mappings: Dict[str, str]) -> Dict[str, Any]:
    """Normalize a single schedule row to item fields."""
    values = {target: row[source] for source, target in mappings.items() if source in row.index}
    return {
        "vehicle_code": _text(values.get("vehicle_code")),
        "factory": _text(values.get("factory")),
        "scheduled_date": _date(values.get("scheduled_date")),
        "assembly_mark": _text(values.get("assembly_mark")),
        "guid": _text(values.get("guid")),
        "product_name": _text(values.get("product_name")),
        "weight": _decimal(values.get("weight")),
        "model_id": _text(values.get("model_id")),
    }


def _factory_code(name: str) -> str:
    letters = re.sub(r"[^A-Za-z0-9]", "", name).upper()
    return letters[:3] or "FAC"


def _vehicle_number(code: str) -> Optional[int]:
    match = re.search(r"(\d+)$", code)
    return int(match.group(1)) if match else None


def import_schedule(db: Session, project_id: str, file_path: str, acting_user: str = "import") -> Dict[str, int]:
    """
    Import a schedule file. Rows without an assembly mark or vehicle code are
    skipped; GUIDs already in the project are not imported twice.
    """
    df = read_file(file_path, infer_file_type(file_path))
    mappings = infer_column_mapping(df)
    missing = {"vehicle_code", "assembly_mark"} - set(mappings.values())
    if missing:
        raise ValueError(f"Schedule is missing required columns: {', '.join(sorted(missing))}")
    logger.info("Importing %d schedule rows from %s with mapping %s", len(df), file_path, mappings)

    factories = {
        f.factory_name: f
        for f in db.query(DeliveryFactory).filter(DeliveryFactory.project_id == project_id).all()
    }
    vehicles = {
        v.vehicle_code: v
        for v in db.query(DeliveryVehicle).filter(DeliveryVehicle.project_id == project_id).all()
    }
    known_guids = {
        row.guid
        for row in db.query(DeliveryItem.guid).filter(
            DeliveryItem.project_id == project_id, DeliveryItem.guid.isnot(None)
        )
    }

    counts = {"factories": 0, "vehicles": 0, "items": 0, "skipped": 0, "duplicates": 0}
    for index, (_, raw) in enumerate(df.iterrows()):
        row = normalize_row(raw, mappings)
        if not row["vehicle_code"] or not row["assembly_mark"]:
            counts["skipped"] += 1
            continue
        if row["guid"] and row["guid"] in known_guids:
            counts["duplicates"] += 1
            continue

        factory = None
        if row["factory"]:
            factory = factories.get(row["factory"])
            if factory is None:
                factory = DeliveryFactory(
                    project_id=project_id,
                    factory_name=row["factory"],
                    factory_code=_factory_code(row["factory"]),
                    sort_order=len(factories),
                    created_by=acting_user,
                )
                db.add(factory)
                db.flush()
                factories[row["factory"]] = factory
                counts["factories"] += 1

        vehicle = vehicles.get(row["vehicle_code"])
        if vehicle is None:
            vehicle = DeliveryVehicle(
                project_id=project_id,
                factory_id=factory.id if factory else None,
                vehicle_code=row["vehicle_code"],
                vehicle_number=_vehicle_number(row["vehicle_code"]),
                scheduled_date=row["scheduled_date"],
                sort_order=len(vehicles),
                created_by=acting_user,
            )
            db.add(vehicle)
            db.flush()
            vehicles[row["vehicle_code"]] = vehicle
            counts["vehicles"] += 1

        db.add(DeliveryItem(
            project_id=project_id,
            vehicle_id=vehicle.id,
            model_id=row["model_id"],
            guid=row["guid"],
            assembly_mark=row["assembly_mark"],
            product_name=row["product_name"],
            weight=row["weight"],
            scheduled_date=row["scheduled_date"] or vehicle.scheduled_date,
            sort_order=index,
            created_by=acting_user,
        ))
        if row["guid"]:
            known_guids.add(row["guid"])
        counts["items"] += 1

    db.commit()
    logger.info("Schedule import finished: %s", counts)
    return counts
