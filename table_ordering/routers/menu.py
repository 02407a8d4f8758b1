from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session, joinedload

from table_ordering.core.database import get_db
from table_ordering.models.menu_category import MenuCategory
from table_ordering.models.menu_item import MenuItem
from table_ordering.services.serializers import category_to_dict, menu_item_to_dict

router = APIRouter(prefix="/api", tags=["menu"])


@router.get("/menu")
def list_menu(db: Session = Depends(get_db)):
    items = (
        db.query(MenuItem)
        .options(joinedload(MenuItem.category))
        .filter(MenuItem.is_active.is_(True), MenuItem.is_available.is_(True))
        .order_by(MenuItem.category_id.asc(), MenuItem.name.asc(), MenuItem.id.asc())
        .all()
    )
    return [menu_item_to_dict(item, include_category=True) for item in items]


@router.get("/categories")
def list_categories(db: Session = Depends(get_db)):
    categories = (
        db.query(MenuCategory)
        .filter(MenuCategory.is_active.is_(True))
        .order_by(MenuCategory.display_order.asc(), MenuCategory.id.asc())
        .all()
    )
    return [category_to_dict(category) for category in categories]
