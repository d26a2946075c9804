"""
Delivery vehicle model - one line of the delivery schedule.
"""
from sqlalchemy import Column, String, DateTime, Date, Boolean, Integer, Numeric, ForeignKey, Uuid, Enum as SQLEnum
from sqlalchemy.orm import relationship
import uuid
from datetime import datetime
import enum
from app.db.database import Base


class VehicleStatus(str, enum.Enum):
    PLANNED = "planned"
    LOADING = "loading"
    TRANSIT = "transit"
    ARRIVED = "arrived"
    UNLOADING = "unloading"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class DeliveryVehicle(Base):
    __tablename__ = "delivery_vehicles"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    project_id = Column(String, nullable=False, index=True)
    factory_id = Column(Uuid, ForeignKey("delivery_factories.id"), nullable=True)
    vehicle_number = Column(Integer, nullable=True)
    vehicle_code = Column(String, nullable=False)  # e.g., "OPO1"
    scheduled_date = Column(Date, nullable=True)  # None = not yet scheduled
    total_weight = Column(Numeric(12, 2), nullable=True)
    status = Column(
        SQLEnum(
            VehicleStatus,
            native_enum=False,
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
            validate_strings=True,
        ),
        default=VehicleStatus.PLANNED.value,
    )
    is_unplanned = Column(Boolean, default=False)
    sort_order = Column(Integer, default=0)
    notes = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    created_by = Column(String, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    updated_by = Column(String, nullable=True)

    # Relationships
    factory = relationship("DeliveryFactory", back_populates="vehicles")
