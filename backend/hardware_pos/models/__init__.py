from .catalog import Supplier, Product, Customer, CUSTOMER_TYPES
from .inventory import Inventory, StockMovement, MOVEMENT_TYPES, ADJUSTMENT_REASONS
from .sales import Sale, SaleItem, CustomerPayment, PAYMENT_METHODS, PAYMENT_STATUSES
from .purchases import Purchase, PurchaseItem
from .expenses import Expense

__all__ = [
    'Supplier', 'Product', 'Customer',
    'Inventory', 'StockMovement',
    'Sale', 'SaleItem', 'CustomerPayment',
    'Purchase', 'PurchaseItem',
    'Expense',
    'CUSTOMER_TYPES', 'MOVEMENT_TYPES', 'ADJUSTMENT_REASONS',
    'PAYMENT_METHODS', 'PAYMENT_STATUSES',
]
