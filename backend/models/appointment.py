"""Appointment model definitions."""

from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String
from backend.database import Base


class Appointment(Base):
    """Represents a booked appointment between a seller and a buyer."""
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True)
    seller_email = Column(String, index=True, nullable=False)
    buyer_email = Column(String, index=True, nullable=False)
    slot_start = Column(String, nullable=False)
    slot_end = Column(String, nullable=False)
    event_id_seller = Column(String)
    created_at = Column(DateTime, default=datetime.utcnow)
