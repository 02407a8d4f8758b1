from __future__ import annotations

from typing import Any, Dict

from table_ordering.core.money import format_cents
from table_ordering.models.menu_category import MenuCategory
from table_ordering.models.menu_item import MenuItem
from table_ordering.models.order import Order
from table_ordering.models.order_item import OrderItem
from table_ordering.models.table import Table
from table_ordering.models.user import User


def _iso(value) -> str | None:
    return value.isoformat() if value else None


def category_to_dict(category: MenuCategory) -> Dict[str, Any]:
    return {
        "id": category.id,
        "name": category.name,
        "display_order": category.display_order,
        "is_active": category.is_active,
    }


def menu_item_to_dict(item: MenuItem, *, include_category: bool = False) -> Dict[str, Any]:
    data = {
        "id": item.id,
        "name": item.name,
        "description": item.description,
        "price": format_cents(item.price_cents),
        "category_id": item.category_id,
        "image_url": item.image_url,
        "is_available": item.is_available,
        "is_active": item.is_active,
        "preparation_time": item.preparation_time,
        "created_at": _iso(item.created_at),
        "updated_at": _iso(item.updated_at),
    }
    if include_category:
        data["category"] = category_to_dict(item.category) if item.category else None
    return data


def table_to_dict(table: Table) -> Dict[str, Any]:
    return {
        "id": table.id,
        "number": table.number,
        "qr_code": table.qr_code,
        "is_active": table.is_active,
        "created_at": _iso(table.created_at),
    }


def user_to_dict(user: User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "role": user.role,
    }


def order_item_to_dict(item: OrderItem) -> Dict[str, Any]:
    menu_item = item.menu_item
    return {
        "id": item.id,
        "order_id": item.order_id,
        "menu_item_id": item.menu_item_id,
        "quantity": item.quantity,
        "unit_price": format_cents(item.unit_price_cents),
        "subtotal": format_cents(item.subtotal_cents),
        "special_instructions": item.special_instructions,
        "menu_item": {
            "id": menu_item.id,
            "name": menu_item.name,
            "image_url": menu_item.image_url,
            "price": format_cents(menu_item.price_cents),
        }
        if menu_item is not None
        else None,
    }


def order_to_dict(order: Order) -> Dict[str, Any]:
    return {
        "id": order.id,
        "order_number": order.order_number,
        "table_id": order.table_id,
        "table_number": order.table.number if order.table is not None else None,
        "customer_id": order.customer_id,
        "status": order.status,
        "total_amount": format_cents(order.total_cents),
        "notes": order.notes,
        "estimated_time": order.estimated_time,
        "created_at": _iso(order.created_at),
        "updated_at": _iso(order.updated_at),
        "order_items": [order_item_to_dict(item) for item in order.order_items],
        "table": table_to_dict(order.table) if order.table is not None else None,
        "customer": user_to_dict(order.customer) if order.customer is not None else None,
    }
