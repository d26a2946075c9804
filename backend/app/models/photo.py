"""
Arrival photo model.
"""
from sqlalchemy import Column, String, DateTime, Integer, ForeignKey, Uuid
import uuid
from datetime import datetime
from app.db.database import Base


class ArrivalPhoto(Base):
    __tablename__ = "arrival_photos"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    project_id = Column(String, nullable=False, index=True)
    arrived_vehicle_id = Column(Uuid, ForeignKey("arrived_vehicles.id", ondelete="CASCADE"), nullable=False, index=True)
    item_id = Column(Uuid, ForeignKey("delivery_items.id", ondelete="SET NULL"), nullable=True, index=True)
    confirmation_id = Column(Uuid, ForeignKey("arrival_confirmations.id", ondelete="SET NULL"), nullable=True)

    file_name = Column(String, nullable=False)
    storage_path = Column(String, nullable=False)  # Key inside the photo bucket
    file_url = Column(String, nullable=False)
    file_size = Column(Integer, nullable=True)
    mime_type = Column(String, nullable=True)
    description = Column(String, nullable=True)

    uploaded_at = Column(DateTime, default=datetime.utcnow)
    uploaded_by = Column(String, nullable=True)
