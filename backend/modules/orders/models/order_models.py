from sqlalchemy import (Column, Integer, String, ForeignKey, DateTime,
                        Numeric, Text)
from sqlalchemy.orm import relationship
from core.database import Base
from core.mixins import TimestampMixin
from ..enums.order_enums import OrderStatus, OrderPaymentStatus


class Order(Base, TimestampMixin):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id"),
                           nullable=False, index=True)
    status = Column(String, nullable=False, index=True,
                    default=OrderStatus.PENDING.value)
    payment_status = Column(String, nullable=False,
                            default=OrderPaymentStatus.UNPAID.value)

    customer_name = Column(String(200), nullable=True)
    customer_phone = Column(String(50), nullable=True)
    customer_email = Column(String(200), nullable=True)
    customer_id = Column(Integer, nullable=True, index=True)

    total_amount = Column(Numeric(10, 2), nullable=False, default=0)
    notes = Column(Text, nullable=True)

    confirmed_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    cancellation_reason = Column(String, nullable=True)
    refund_amount = Column(Numeric(10, 2), nullable=True)
    refunded_at = Column(DateTime, nullable=True)

    order_items = relationship("OrderItem", back_populates="order",
                               order_by="OrderItem.id")
    restaurant = relationship("Restaurant")

    def __repr__(self):
        return f"<Order(id={self.id}, status='{self.status}')>"


class OrderItem(Base, TimestampMixin):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    menu_item_id = Column(Integer, ForeignKey("menu_items.id"), nullable=True)
    name = Column(String(200), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    price = Column(Numeric(10, 2), nullable=False)
    notes = Column(Text, nullable=True)

    order = relationship("Order", back_populates="order_items")
    menu_item = relationship("MenuItem")
