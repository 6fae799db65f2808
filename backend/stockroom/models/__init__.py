from .auth import User, SessionToken, ROLES
from .catalog import Category, Warehouse, Product
from .stock import StockEntry
from .sales import SalesTransaction, TRANSACTION_TYPES

__all__ = [
    'User', 'SessionToken', 'ROLES',
    'Category', 'Warehouse', 'Product',
    'StockEntry',
    'SalesTransaction', 'TRANSACTION_TYPES',
]
