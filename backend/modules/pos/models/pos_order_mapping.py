from sqlalchemy import Column, Integer, String, ForeignKey, UniqueConstraint
from core.database import Base
from core.mixins import TimestampMixin
from ..enums.pos_enums import MappingSyncStatus


class POSOrderMapping(Base, TimestampMixin):
    """Correlates a platform order with the order created for it in a POS"""
    __tablename__ = "pos_order_mappings"

    id = Column(Integer, primary_key=True, index=True)
    foodhub_order_id = Column(Integer, ForeignKey("orders.id"),
                              nullable=False, index=True)
    pos_order_id = Column(String, nullable=True, index=True)
    pos_type = Column(String, nullable=False, index=True)
    sync_status = Column(String, nullable=False,
                         default=MappingSyncStatus.PENDING.value)

    __table_args__ = (
        UniqueConstraint("foodhub_order_id", "pos_type", name="uq_pos_order_mapping_order_type"),
    )

    def __repr__(self):
        return (f"<POSOrderMapping(foodhub_order_id={self.foodhub_order_id}, "
                f"pos_order_id='{self.pos_order_id}', pos_type='{self.pos_type}')>")
