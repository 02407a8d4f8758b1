from sqlalchemy import Boolean, Column, Integer, String
from sqlalchemy.orm import relationship

from table_ordering.core.database import Base


class MenuCategory(Base):
    __tablename__ = "menu_categories"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    display_order = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    menu_items = relationship("MenuItem", back_populates="category")
