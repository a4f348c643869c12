# backend/core/restaurant_models.py

from sqlalchemy import Column, Integer, String, Boolean
from sqlalchemy.orm import relationship
from core.database import Base
from core.mixins import TimestampMixin


class Restaurant(Base, TimestampMixin):
    """Restaurant owning menu items, orders and POS integrations"""
    __tablename__ = "restaurants"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    menu_items = relationship("MenuItem", back_populates="restaurant")
    pos_integrations = relationship("POSIntegration", back_populates="restaurant")

    def __repr__(self):
        return f"<Restaurant(id={self.id}, name='{self.name}')>"
