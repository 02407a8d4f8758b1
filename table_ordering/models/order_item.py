from sqlalchemy import Column, ForeignKey, Integer, Text
from sqlalchemy.orm import relationship

from table_ordering.core.database import Base


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), index=True, nullable=False)
    menu_item_id = Column(Integer, ForeignKey("menu_items.id"), nullable=True)

    quantity = Column(Integer, nullable=False, default=1)
    # snapshot do preço no momento do pedido
    unit_price_cents = Column(Integer, nullable=False, default=0)
    subtotal_cents = Column(Integer, nullable=False, default=0)
    special_instructions = Column(Text, nullable=True)

    order = relationship("Order", back_populates="order_items")
    menu_item = relationship("MenuItem")
