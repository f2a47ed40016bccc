# Overview: Blueprint registry for the REST API.

from .customers import customers_bp
from .expenses import expenses_bp
from .inventory import inventory_bp
from .payments import payments_bp
from .products import products_bp
from .purchases import purchases_bp
from .reports import reports_bp
from .sales import sales_bp
from .stock_movements import stock_movements_bp
from .suppliers import suppliers_bp
from .system import system_bp

ALL_BLUEPRINTS = (
    system_bp,
    products_bp,
    suppliers_bp,
    customers_bp,
    inventory_bp,
    stock_movements_bp,
    sales_bp,
    payments_bp,
    purchases_bp,
    expenses_bp,
    reports_bp,
)
