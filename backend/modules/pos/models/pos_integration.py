from sqlalchemy import (Column, Integer, String, DateTime, Boolean, ForeignKey,
                        JSON, UniqueConstraint)
from sqlalchemy.orm import relationship
from core.database import Base
from core.mixins import TimestampMixin


class POSIntegration(Base, TimestampMixin):
    __tablename__ = "pos_integrations"

    id = Column(Integer, primary_key=True, index=True)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id"),
                           nullable=False, index=True)
    pos_type = Column(String, nullable=False, index=True)
    # api_url, access_token / api_key, location_id, currency
    configuration = Column(JSON, nullable=False, default=dict)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    last_sync_at = Column(DateTime, nullable=True)

    restaurant = relationship("Restaurant", back_populates="pos_integrations")
    sync_logs = relationship("POSSyncLog", back_populates="integration")

    __table_args__ = (
        UniqueConstraint("restaurant_id", "pos_type", name="uq_pos_integration_restaurant_type"),
    )

    def __repr__(self):
        return f"<POSIntegration(id={self.id}, restaurant_id={self.restaurant_id}, pos_type='{self.pos_type}')>"
