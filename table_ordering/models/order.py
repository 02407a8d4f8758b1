from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from table_ordering.core.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    order_number = Column(String(40), unique=True, index=True, nullable=False)

    table_id = Column(Integer, ForeignKey("tables.id"), nullable=True, index=True)
    customer_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    # pending / preparing / ready / served / cancelled
    status = Column(String(20), default="pending", nullable=False, index=True)
    total_cents = Column(Integer, default=0, nullable=False)
    notes = Column(Text, nullable=True)
    estimated_time = Column(Integer, nullable=True)  # minutos

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    table = relationship("Table", back_populates="orders")
    customer = relationship("User", back_populates="orders")
    order_items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )
