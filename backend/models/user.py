"""User model definitions."""

from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String
from backend.database import Base

SELLER_ROLE = "Seller"
BUYER_ROLE = "Buyer"
ROLES = (SELLER_ROLE, BUYER_ROLE)


class User(Base):
    """Represents an application user."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String)
    role = Column(String)  # Seller/Buyer, unset until setup
    refresh_token = Column(String)  # encrypted by the token vault
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
