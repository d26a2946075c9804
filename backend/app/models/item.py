"""
Delivery item model - one cargo piece tied to a model object.
"""
from sqlalchemy import Column, String, DateTime, Date, Integer, Numeric, ForeignKey, Uuid, Enum as SQLEnum
from sqlalchemy.orm import relationship
import uuid
from datetime import datetime
import enum
from app.db.database import Base


class ItemStatus(str, enum.Enum):
    PLANNED = "planned"
    LOADED = "loaded"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class DeliveryItem(Base):
    __tablename__ = "delivery_items"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    project_id = Column(String, nullable=False, index=True)
    # Current vehicle pointer: where the item is believed to be now,
    # not necessarily where it was originally scheduled.
    vehicle_id = Column(Uuid, ForeignKey("delivery_vehicles.id"), nullable=True, index=True)

    # Model identifiers
    model_id = Column(String, nullable=True)
    guid = Column(String, nullable=True, index=True)
    object_runtime_id = Column(Integer, nullable=True)

    assembly_mark = Column(String, nullable=False)
    product_name = Column(String, nullable=True)
    weight = Column(Numeric(10, 2), nullable=True)

    scheduled_date = Column(Date, nullable=True)
    sort_order = Column(Integer, default=0)
    status = Column(
        SQLEnum(
            ItemStatus,
            native_enum=False,
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
            validate_strings=True,
        ),
        default=ItemStatus.PLANNED.value,
    )
    notes = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    created_by = Column(String, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    updated_by = Column(String, nullable=True)

    # Relationships
    vehicle = relationship("DeliveryVehicle")
