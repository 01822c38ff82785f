from .tenancy import Organization
from .auth import User, SessionToken
from .customers import Client, Vendor
from .inventory import Basket, InventoryItem
from .sales import Sale, SaleItem, Payment
from .finance import FinancialMovement

__all__ = [
    'Organization',
    'User', 'SessionToken',
    'Client', 'Vendor',
    'InventoryItem', 'Basket',
    'Sale', 'SaleItem', 'Payment',
    'FinancialMovement',
]
