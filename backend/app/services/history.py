"""
Delivery history (audit log) writer.

History is append-only and best effort: callers commit their own change
first, so a failed history insert never undoes the change it describes.
"""
from datetime import date
from typing import Optional
from uuid import UUID
import logging

from sqlalchemy.orm import Session

from app.models import DeliveryHistory, HistoryChangeType

logger = logging.getLogger(__name__)


def record_history(
    db: Session,
    project_id: str,
    item_id: Optional[UUID],
    change_type: HistoryChangeType,
    changed_by: str,
    *,
    vehicle_id: Optional[UUID] = None,
    old_status: Optional[str] = None,
    new_status: Optional[str] = None,
    old_vehicle_id: Optional[UUID] = None,
    old_vehicle_code: Optional[str] = None,
    new_vehicle_id: Optional[UUID] = None,
    new_vehicle_code: Optional[str] = None,
    old_date: Optional[date] = None,
    new_date: Optional[date] = None,
    reason: Optional[str] = None,
) -> bool:
    """Append one history row. Returns False (and logs) instead of raising."""
    try:
        db.add(DeliveryHistory(
            project_id=project_id,
            item_id=item_id,
            vehicle_id=vehicle_id,
            change_type=change_type.value,
            old_status=old_status,
            new_status=new_status,
            old_vehicle_id=old_vehicle_id,
            old_vehicle_code=old_vehicle_code,
            new_vehicle_id=new_vehicle_id,
            new_vehicle_code=new_vehicle_code,
            old_date=old_date,
            new_date=new_date,
            change_reason=reason,
            changed_by=changed_by,
        ))
        db.commit()
        return True
    except Exception as e:
        db.rollback()
        logger.warning(
            "History write failed for item %s (%s): %s",
            item_id,
            change_type.value,
            e,
        )
        return False
