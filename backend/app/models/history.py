"""
Delivery history model - append-only audit log of item changes.
"""
from sqlalchemy import Column, String, DateTime, Date, Uuid, Enum as SQLEnum
import uuid
from datetime import datetime
import enum
from app.db.database import Base


class HistoryChangeType(str, enum.Enum):
    CREATED = "created"
    DATE_CHANGED = "date_changed"
    VEHICLE_CHANGED = "vehicle_changed"
    STATUS_CHANGED = "status_changed"
    REMOVED = "removed"


class DeliveryHistory(Base):
    __tablename__ = "delivery_history"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    project_id = Column(String, nullable=False, index=True)
    # No FK: history outlives items removed by an undo
    item_id = Column(Uuid, nullable=True, index=True)
    vehicle_id = Column(Uuid, nullable=True)
    change_type = Column(
        SQLEnum(
            HistoryChangeType,
            native_enum=False,
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
            validate_strings=True,
        ),
        nullable=False,
    )

    old_date = Column(Date, nullable=True)
    old_vehicle_id = Column(Uuid, nullable=True)
    old_vehicle_code = Column(String, nullable=True)
    old_status = Column(String, nullable=True)

    new_date = Column(Date, nullable=True)
    new_vehicle_id = Column(Uuid, nullable=True)
    new_vehicle_code = Column(String, nullable=True)
    new_status = Column(String, nullable=True)

    change_reason = Column(String, nullable=True)
    changed_by = Column(String, nullable=True)
    changed_at = Column(DateTime, default=datetime.utcnow)
