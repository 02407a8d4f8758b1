from table_ordering.models.table import Table
from table_ordering.models.menu_category import MenuCategory
from table_ordering.models.menu_item import MenuItem
from table_ordering.models.user import User
from table_ordering.models.order import Order
from table_ordering.models.order_item import OrderItem
