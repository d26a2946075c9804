"""
Arrival confirmation model - the ledger entry per (arrival, item).
"""
from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint, Uuid, Enum as SQLEnum
import uuid
from datetime import datetime
import enum
from app.db.database import Base


class ConfirmationStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    MISSING = "missing"
    ADDED = "added"


class ArrivalConfirmation(Base):
    __tablename__ = "arrival_confirmations"
    __table_args__ = (
        UniqueConstraint("arrived_vehicle_id", "item_id", name="uq_arrival_confirmations_arrival_item"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    project_id = Column(String, nullable=False, index=True)
    arrived_vehicle_id = Column(Uuid, ForeignKey("arrived_vehicles.id", ondelete="CASCADE"), nullable=False, index=True)
    item_id = Column(Uuid, ForeignKey("delivery_items.id", ondelete="CASCADE"), nullable=False, index=True)

    status = Column(
        SQLEnum(
            ConfirmationStatus,
            native_enum=False,
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
            validate_strings=True,
        ),
        nullable=False,
        default=ConfirmationStatus.PENDING.value,
    )
    # Provenance, only set when status = added.
    # NULL source on an added row means the item was picked from the model.
    source_vehicle_id = Column(Uuid, nullable=True)
    source_vehicle_code = Column(String, nullable=True)

    notes = Column(String, nullable=True)
    confirmed_at = Column(DateTime, default=datetime.utcnow)
    confirmed_by = Column(String, nullable=True)
