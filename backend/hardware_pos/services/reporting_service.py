# Overview: Read-only report aggregations for the dashboard and back office.

# backend/hardware_pos/services/reporting_service.py
"""
Reporting Service

All functions here only read. Date ranges are inclusive and optional; a
missing bound leaves that side open.
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import func

from ..extensions import db
from ..amounts import ZERO, to_money, to_quantity, money_str, quantity_str
from ..models import Customer, Expense, Product, Purchase, Sale, SaleItem
from ..time_utils import day_bounds, to_utc_z, utcnow
from . import inventory_service


def _sales_in_range(start: datetime | None, end: datetime | None):
    query = db.session.query(Sale)
    if start is not None:
        query = query.filter(Sale.sale_date >= start)
    if end is not None:
        query = query.filter(Sale.sale_date <= end)
    return query


def _sale_items_in_range(start: datetime | None, end: datetime | None):
    query = db.session.query(SaleItem, Product).join(Sale, Sale.id == SaleItem.sale_id).join(
        Product, Product.id == SaleItem.product_id
    )
    if start is not None:
        query = query.filter(Sale.sale_date >= start)
    if end is not None:
        query = query.filter(Sale.sale_date <= end)
    return query


def _product_stats(start: datetime | None, end: datetime | None) -> list[dict]:
    stats: dict[int, dict] = {}
    for item, product in _sale_items_in_range(start, end).all():
        entry = stats.setdefault(product.id, {
            "product": {"id": product.id, "sku": product.sku, "name": product.name, "category": product.category},
            "quantity_sold": ZERO,
            "revenue": ZERO,
            "cost": ZERO,
        })
        quantity = to_quantity(item.quantity)
        entry["quantity_sold"] += quantity
        entry["revenue"] += to_money(item.line_total)
        entry["cost"] += quantity * to_money(product.purchase_price)
    return list(stats.values())


def _render_stat(entry: dict) -> dict:
    revenue = entry["revenue"]
    profit = revenue - entry["cost"]
    margin = (profit / revenue * 100) if revenue > 0 else ZERO
    return {
        "product": entry["product"],
        "quantity_sold": quantity_str(entry["quantity_sold"]),
        "revenue": money_str(revenue),
        "cost": money_str(entry["cost"]),
        "profit": money_str(profit),
        "profit_margin": money_str(margin),
    }


def dashboard(today: date | None = None) -> dict:
    day_start, day_end = day_bounds(today or utcnow().date())
    sales_today = _sales_in_range(day_start, day_end).with_entities(
        func.count(Sale.id), func.coalesce(func.sum(Sale.total_amount), 0)
    ).one()

    low_stock = inventory_service.get_low_stock()

    recent_sales = (
        db.session.query(Sale).order_by(Sale.sale_date.desc(), Sale.id.desc()).limit(5).all()
    )
    recent_purchases = (
        db.session.query(Purchase).order_by(Purchase.purchase_date.desc(), Purchase.id.desc()).limit(5).all()
    )
    outstanding = db.session.query(func.coalesce(func.sum(Customer.current_balance), 0)).scalar()

    return {
        "sales_today": {"count": sales_today[0], "total": money_str(sales_today[1])},
        "low_stock": {"count": len(low_stock), "products": low_stock},
        "recent_sales": [
            {
                "id": s.id,
                "sale_number": s.sale_number,
                "total_amount": money_str(s.total_amount),
                "sale_date": to_utc_z(s.sale_date),
                "customer": s.customer.name if s.customer else None,
            }
            for s in recent_sales
        ],
        "recent_purchases": [
            {
                "id": p.id,
                "purchase_number": p.purchase_number,
                "total_amount": money_str(p.total_amount),
                "purchase_date": to_utc_z(p.purchase_date),
                "supplier": p.supplier.name,
            }
            for p in recent_purchases
        ],
        "totals": {
            "products": db.session.query(Product).filter(Product.is_active.is_(True)).count(),
            "customers": db.session.query(Customer).filter(Customer.is_active.is_(True)).count(),
            "outstanding_balance": money_str(outstanding),
        },
    }


def sales_report(start: datetime | None = None, end: datetime | None = None) -> dict:
    sales = _sales_in_range(start, end).order_by(Sale.sale_date.asc(), Sale.id.asc()).all()

    total_revenue = sum((to_money(s.total_amount) for s in sales), ZERO)
    total_discount = sum((to_money(s.discount_amount) for s in sales), ZERO)
    by_method: dict[str, object] = {}
    by_status: dict[str, int] = {}
    for sale in sales:
        by_method[sale.payment_method] = by_method.get(sale.payment_method, ZERO) + to_money(sale.total_amount)
        by_status[sale.payment_status] = by_status.get(sale.payment_status, 0) + 1

    top = sorted(_product_stats(start, end), key=lambda e: e["revenue"], reverse=True)[:10]

    return {
        "summary": {
            "total_sales": len(sales),
            "total_revenue": money_str(total_revenue),
            "total_discount": money_str(total_discount),
            "average_sale": money_str(total_revenue / len(sales) if sales else ZERO),
        },
        "payment_methods": {method: money_str(amount) for method, amount in sorted(by_method.items())},
        "payment_statuses": dict(sorted(by_status.items())),
        "top_products": [_render_stat(entry) for entry in top],
        "sales": [s.to_dict() for s in sales],
    }


def inventory_report() -> dict:
    rows, total = inventory_service.list_inventory(limit=None)
    low = [r for r in rows if r["is_low_stock"]]
    out = [r for r in rows if r["is_out_of_stock"]]
    value = inventory_service.get_inventory_value()
    return {
        "summary": {
            "total_products": total,
            "low_stock_count": len(low),
            "out_of_stock_count": len(out),
            "total_stock_value": value["total_retail_value"],
        },
        "low_stock": low,
        "out_of_stock": out,
        "by_category": value["by_category"],
    }


def financial_report(start: datetime | None = None, end: datetime | None = None) -> dict:
    revenue_row = _sales_in_range(start, end).with_entities(
        func.coalesce(func.sum(Sale.total_amount), 0),
        func.coalesce(func.sum(Sale.discount_amount), 0),
    ).one()
    revenue = to_money(revenue_row[0])
    discounts = to_money(revenue_row[1])

    purchases = db.session.query(func.coalesce(func.sum(Purchase.total_amount), 0))
    if start is not None:
        purchases = purchases.filter(Purchase.purchase_date >= start)
    if end is not None:
        purchases = purchases.filter(Purchase.purchase_date <= end)
    purchase_cost = to_money(purchases.scalar())

    expenses = db.session.query(Expense.category, func.sum(Expense.amount))
    if start is not None:
        expenses = expenses.filter(Expense.expense_date >= start.date())
    if end is not None:
        expenses = expenses.filter(Expense.expense_date <= end.date())
    by_category = {category: to_money(amount) for category, amount in expenses.group_by(Expense.category).all()}
    total_expenses = sum(by_category.values(), ZERO)

    gross_profit = revenue - purchase_cost
    net_profit = gross_profit - total_expenses
    margin = (net_profit / revenue * 100) if revenue > 0 else ZERO

    return {
        "revenue": {
            "total": money_str(revenue),
            "discounts": money_str(discounts),
            "net_revenue": money_str(revenue - discounts),
        },
        "costs": {
            "purchases": money_str(purchase_cost),
            "expenses": money_str(total_expenses),
            "total_costs": money_str(purchase_cost + total_expenses),
        },
        "profit": {
            "gross_profit": money_str(gross_profit),
            "net_profit": money_str(net_profit),
            "profit_margin": money_str(margin),
        },
        "expenses_by_category": {k: money_str(v) for k, v in sorted(by_category.items())},
    }


def product_performance(start: datetime | None = None, end: datetime | None = None, limit: int = 20) -> dict:
    stats = _product_stats(start, end)
    return {
        "best_sellers_by_revenue": [
            _render_stat(e) for e in sorted(stats, key=lambda e: e["revenue"], reverse=True)[:limit]
        ],
        "best_sellers_by_quantity": [
            _render_stat(e) for e in sorted(stats, key=lambda e: e["quantity_sold"], reverse=True)[:limit]
        ],
        "most_profitable": [
            _render_stat(e) for e in sorted(stats, key=lambda e: e["revenue"] - e["cost"], reverse=True)[:limit]
        ],
    }
