"""
Delivery factory model.
"""
from sqlalchemy import Column, String, DateTime, Boolean, Integer, Uuid
from sqlalchemy.orm import relationship
import uuid
from datetime import datetime
from app.db.database import Base


class DeliveryFactory(Base):
    __tablename__ = "delivery_factories"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    project_id = Column(String, nullable=False, index=True)
    factory_name = Column(String, nullable=False)
    factory_code = Column(String, nullable=False)  # e.g., "OPO", used as vehicle code prefix
    vehicle_separator = Column(String, nullable=False, default="")  # "." | "," | "|" | ""
    is_active = Column(Boolean, default=True)
    sort_order = Column(Integer, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
    created_by = Column(String, nullable=True)

    # Relationships
    vehicles = relationship("DeliveryVehicle", back_populates="factory")
