from .auth import User, SessionToken
from .inventory import Product, StockMovement
from .customers import Customer, CreditPayment
from .sales import Sale, SaleItem
from .activity import ActivityLog

__all__ = [
    'User', 'SessionToken',
    'Product', 'StockMovement',
    'Customer', 'CreditPayment',
    'Sale', 'SaleItem',
    'ActivityLog',
]
