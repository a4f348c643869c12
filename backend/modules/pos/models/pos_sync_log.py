from datetime import datetime
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, JSON
from sqlalchemy.orm import relationship
from core.database import Base


class POSSyncLog(Base):
    """Append-only record of every sync operation"""
    __tablename__ = "pos_sync_logs"

    id = Column(Integer, primary_key=True, index=True)
    integration_id = Column(
        Integer, ForeignKey("pos_integrations.id"), nullable=True, index=True
    )
    restaurant_id = Column(Integer, nullable=True, index=True)
    pos_type = Column(String, nullable=False, index=True)
    sync_type = Column(String, nullable=False, index=True)
    status = Column(String, nullable=False, index=True)
    details = Column(JSON, nullable=True)
    synced_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    integration = relationship("POSIntegration", back_populates="sync_logs")
