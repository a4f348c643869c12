# backend/core/menu_models.py

from sqlalchemy import (Column, Integer, String, ForeignKey, Numeric, Text,
                        Boolean, UniqueConstraint)
from sqlalchemy.orm import relationship
from core.database import Base
from core.mixins import TimestampMixin


class MenuItem(Base, TimestampMixin):
    """Individual menu items, optionally linked to a POS catalog entry"""
    __tablename__ = "menu_items"

    id = Column(Integer, primary_key=True, index=True)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id"), nullable=False, index=True)
    name = Column(String(200), nullable=False, index=True)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)

    # Identifier of this item in the restaurant's POS catalog
    pos_item_id = Column(String(100), nullable=True, index=True)

    # Stock
    stock_quantity = Column(Integer, nullable=True)
    is_available = Column(Boolean, nullable=False, default=True)

    restaurant = relationship("Restaurant", back_populates="menu_items")

    __table_args__ = (
        UniqueConstraint("restaurant_id", "pos_item_id", name="uq_menu_item_pos_item"),
    )

    def __repr__(self):
        return f"<MenuItem(id={self.id}, name='{self.name}', price={self.price})>"
