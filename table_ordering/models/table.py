from sqlalchemy import Boolean, Column, DateTime, Index, Integer, Text, func
from sqlalchemy.orm import relationship

from table_ordering.core.database import Base


class Table(Base):
    __tablename__ = "tables"
    __table_args__ = (Index("ix_tables_number_active", "number", "is_active"),)

    id = Column(Integer, primary_key=True)
    number = Column(Integer, nullable=False, index=True)
    qr_code = Column(Text, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    orders = relationship("Order", back_populates="table")
