"""
Unassigned arrival model - a part found on site without a vehicle link.
"""
from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey, Uuid
import uuid
from datetime import datetime
from app.db.database import Base


class UnassignedArrival(Base):
    __tablename__ = "unassigned_arrivals"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    project_id = Column(String, nullable=False, index=True)
    item_id = Column(Uuid, ForeignKey("delivery_items.id", ondelete="SET NULL"), nullable=True)
    guid = Column(String, nullable=True)
    assembly_mark = Column(String, nullable=True)
    location = Column(String, nullable=True)
    notes = Column(String, nullable=True)

    reported_at = Column(DateTime, default=datetime.utcnow)
    reported_by = Column(String, nullable=True)

    is_resolved = Column(Boolean, default=False, nullable=False)
    resolved_at = Column(DateTime, nullable=True)
    resolved_by = Column(String, nullable=True)
    arrived_vehicle_id = Column(Uuid, ForeignKey("arrived_vehicles.id", ondelete="SET NULL"), nullable=True)
