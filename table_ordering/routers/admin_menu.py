from __future__ import annotations

import logging
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from table_ordering.core.database import get_db
from table_ordering.core.money import to_cents
from table_ordering.deps import require_admin_user
from table_ordering.models.menu_category import MenuCategory
from table_ordering.models.menu_item import MenuItem
from table_ordering.models.user import User
from table_ordering.services.serializers import category_to_dict, menu_item_to_dict

router = APIRouter(prefix="/api/admin", tags=["admin-menu"])
logger = logging.getLogger(__name__)


class MenuCategoryCreate(BaseModel):
    name: str = Field(..., min_length=1)
    display_order: int = 0
    is_active: bool = True


class MenuCategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    display_order: Optional[int] = None
    is_active: Optional[bool] = None


class MenuItemCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    price: Decimal
    category_id: Optional[int] = None
    image_url: Optional[str] = None
    is_available: bool = True
    preparation_time: Optional[int] = Field(None, ge=0)


class MenuItemUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    price: Optional[Decimal] = None
    category_id: Optional[int] = None
    image_url: Optional[str] = None
    is_available: Optional[bool] = None
    is_active: Optional[bool] = None
    preparation_time: Optional[int] = Field(None, ge=0)


def _price_cents_or_400(value: Decimal) -> int:
    try:
        cents = to_cents(value)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if cents < 0:
        raise HTTPException(status_code=400, detail="Price must not be negative")
    return cents


def _get_category_or_404(db: Session, category_id: int) -> MenuCategory:
    category = db.query(MenuCategory).filter(MenuCategory.id == category_id).first()
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    return category


def _get_item_or_404(db: Session, item_id: int) -> MenuItem:
    item = db.query(MenuItem).filter(MenuItem.id == item_id).first()
    if not item:
        raise HTTPException(status_code=404, detail="Menu item not found")
    return item


@router.get("/categories")
def admin_list_categories(db: Session = Depends(get_db), _user: User = Depends(require_admin_user)):
    categories = db.query(MenuCategory).order_by(MenuCategory.display_order.asc(), MenuCategory.id.asc()).all()
    return [category_to_dict(category) for category in categories]


@router.post("/categories", status_code=201)
def admin_create_category(
    payload: MenuCategoryCreate,
    db: Session = Depends(get_db),
    _user: User = Depends(require_admin_user),
):
    category = MenuCategory(
        name=payload.name.strip(),
        display_order=payload.display_order,
        is_active=payload.is_active,
    )
    db.add(category)
    db.commit()
    db.refresh(category)
    logger.info("category created id=%s name=%s", category.id, category.name)
    return category_to_dict(category)


@router.patch("/categories/{category_id}")
def admin_update_category(
    category_id: int,
    payload: MenuCategoryUpdate,
    db: Session = Depends(get_db),
    _user: User = Depends(require_admin_user),
):
    category = _get_category_or_404(db, category_id)
    data = payload.model_dump(exclude_unset=True)
    if "name" in data and data["name"] is not None:
        category.name = data["name"].strip()
    if data.get("display_order") is not None:
        category.display_order = data["display_order"]
    if data.get("is_active") is not None:
        category.is_active = data["is_active"]
    db.commit()
    db.refresh(category)
    return category_to_dict(category)


@router.delete("/categories/{category_id}", status_code=204)
def admin_delete_category(
    category_id: int,
    db: Session = Depends(get_db),
    _user: User = Depends(require_admin_user),
):
    category = _get_category_or_404(db, category_id)
    category.is_active = False
    db.commit()
    logger.info("category deactivated id=%s", category_id)
    return Response(status_code=204)


@router.get("/menu-items")
def admin_list_menu_items(db: Session = Depends(get_db), _user: User = Depends(require_admin_user)):
    items = db.query(MenuItem).order_by(MenuItem.id.asc()).all()
    return [menu_item_to_dict(item, include_category=True) for item in items]


@router.post("/menu-items", status_code=201)
def admin_create_menu_item(
    payload: MenuItemCreate,
    db: Session = Depends(get_db),
    _user: User = Depends(require_admin_user),
):
    if payload.category_id is not None:
        _get_category_or_404(db, payload.category_id)

    item = MenuItem(
        name=payload.name.strip(),
        description=payload.description,
        price_cents=_price_cents_or_400(payload.price),
        category_id=payload.category_id,
        image_url=payload.image_url,
        is_available=payload.is_available,
        is_active=True,
        preparation_time=payload.preparation_time,
    )
    db.add(item)
    db.commit()
    db.refresh(item)
    logger.info("menu item created id=%s name=%s", item.id, item.name)
    return menu_item_to_dict(item, include_category=True)


@router.patch("/menu-items/{item_id}")
def admin_update_menu_item(
    item_id: int,
    payload: MenuItemUpdate,
    db: Session = Depends(get_db),
    _user: User = Depends(require_admin_user),
):
    item = _get_item_or_404(db, item_id)
    data = payload.model_dump(exclude_unset=True)

    if "category_id" in data:
        if data["category_id"] is not None:
            _get_category_or_404(db, data["category_id"])
        item.category_id = data["category_id"]
    if data.get("name") is not None:
        item.name = data["name"].strip()
    if "description" in data:
        item.description = data["description"]
    if data.get("price") is not None:
        # pedidos já feitos guardam o preço unitário; só o cardápio muda
        item.price_cents = _price_cents_or_400(data["price"])
    if "image_url" in data:
        item.image_url = data["image_url"]
    if data.get("is_available") is not None:
        item.is_available = data["is_available"]
    if data.get("is_active") is not None:
        item.is_active = data["is_active"]
    if "preparation_time" in data:
        item.preparation_time = data["preparation_time"]

    db.commit()
    db.refresh(item)
    return menu_item_to_dict(item, include_category=True)


@router.delete("/menu-items/{item_id}", status_code=204)
def admin_delete_menu_item(
    item_id: int,
    db: Session = Depends(get_db),
    _user: User = Depends(require_admin_user),
):
    item = _get_item_or_404(db, item_id)
    item.is_active = False
    db.commit()
    logger.info("menu item deactivated id=%s", item_id)
    return Response(status_code=204)
