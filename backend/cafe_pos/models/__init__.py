from .auth import User, SessionToken, USER_ROLES
from .catalog import Category, Product, DiningTable
from .inventory import InventoryItem, RecipeLink, DeductionLogEntry
from .orders import Order, OrderLine, PAYMENT_METHODS
from .reports import DailyAggregate, DailyClosure

__all__ = [
    'User', 'SessionToken', 'USER_ROLES',
    'Category', 'Product', 'DiningTable',
    'InventoryItem', 'RecipeLink', 'DeductionLogEntry',
    'Order', 'OrderLine', 'PAYMENT_METHODS',
    'DailyAggregate', 'DailyClosure',
]
