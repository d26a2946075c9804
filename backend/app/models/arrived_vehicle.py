"""
Arrived vehicle model - one physical arrival event of a scheduled vehicle.
"""
from sqlalchemy import Column, String, DateTime, Date, Boolean, ForeignKey, JSON, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
import uuid
from datetime import datetime
from app.db.database import Base


class ArrivedVehicle(Base):
    __tablename__ = "arrived_vehicles"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    project_id = Column(String, nullable=False, index=True)
    vehicle_id = Column(Uuid, ForeignKey("delivery_vehicles.id", ondelete="CASCADE"), nullable=False, index=True)

    arrival_date = Column(Date, nullable=False, index=True)
    arrival_time = Column(String, nullable=True)  # HH:MM
    unload_start_time = Column(String, nullable=True)  # HH:MM
    unload_end_time = Column(String, nullable=True)  # HH:MM
    unload_resources = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=True)  # UnloadResources shape
    unload_location = Column(String, nullable=True)
    reg_number = Column(String, nullable=True)
    trailer_number = Column(String, nullable=True)
    notes = Column(String, nullable=True)

    # Terminal flag, the arrival is read-only once set
    is_confirmed = Column(Boolean, default=False, nullable=False)
    confirmed_at = Column(DateTime, nullable=True)
    confirmed_by = Column(String, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    created_by = Column(String, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    updated_by = Column(String, nullable=True)

    # Relationships
    vehicle = relationship("DeliveryVehicle")
