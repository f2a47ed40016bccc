"""
Catalog master data tests: products, customers, suppliers and expenses.
"""

import warnings
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.exc import SAWarning

from hardware_pos.errors import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from hardware_pos.extensions import db
from hardware_pos.models import Inventory
from hardware_pos.services import (
    customer_service,
    expense_service,
    products_service,
    sales_service,
    supplier_service,
)

from conftest import make_product


class TestProducts:

    def test_create_normalizes_prices(self, db_session, owner):
        product = make_product(owner, wholesale_price="120", reorder_quantity="12")
        assert product.retail_price == Decimal("150.00")
        assert product.wholesale_price == Decimal("120.00")
        assert product.reorder_quantity == Decimal("12.000")
        assert product.to_dict(include_stock=True)["current_stock"] == "0.000"

    @pytest.mark.parametrize("field", ["quantity", "current_stock"])
    def test_stock_cannot_be_set(self, db_session, owner, field):
        with pytest.raises(ValidationError) as exc:
            make_product(owner, **{field: "5"})
        assert "stock movement" in exc.value.message

    def test_missing_required_fields(self, db_session, owner):
        with pytest.raises(ValidationError) as exc:
            products_service.create_product(owner, {"name": "Pliers"})
        assert "purchase_price" in exc.value.message
        assert "sku" in exc.value.message

    def test_unknown_field(self, db_session, owner):
        with pytest.raises(ValidationError):
            make_product(owner, colour="red")

    def test_retail_below_purchase(self, db_session, owner):
        with pytest.raises(ValidationError):
            make_product(owner, purchase_price="200", retail_price="150")

    def test_wholesale_above_retail(self, db_session, owner):
        with pytest.raises(ValidationError):
            make_product(owner, wholesale_price="151")

    def test_update_checks_merged_prices(self, db_session, owner):
        product = make_product(owner)
        with pytest.raises(ValidationError):
            products_service.update_product(owner, product.id, {"retail_price": "79.99"})

        updated = products_service.update_product(owner, product.id, {"retail_price": "175", "category": "Tools"})
        assert updated.retail_price == Decimal("175.00")
        assert updated.category == "Tools"

    def test_duplicate_sku_and_barcode(self, db_session, owner):
        make_product(owner, barcode="6001234567890")
        with pytest.raises(ConflictError):
            make_product(owner, name="Another hammer")
        with pytest.raises(ConflictError):
            make_product(owner, sku="HAM-002", barcode="6001234567890")

    def test_delete_unused_product_removes_inventory_row(self, db_session, owner):
        product = make_product(owner, sku="TMP-1")
        product_id = product.id
        products_service.delete_product(owner, product_id)
        with pytest.raises(NotFoundError):
            products_service.get_product(product_id)
        assert db.session.get(Inventory, product_id) is None

    def test_delete_product_with_history_is_refused(self, db_session, owner, cashier, product):
        sales_service.create_sale(
            cashier, items=[{"product_id": product.id, "quantity": 1, "unit_price": "150"}],
        )
        with pytest.raises(ConflictError) as exc:
            products_service.delete_product(owner, product.id)
        assert exc.value.details["references"]["sale_items"] == 1

    def test_search_and_categories(self, db_session, owner):
        make_product(owner)
        make_product(owner, sku="PVC-1/2", name="PVC Pipe 1/2in", category="Plumbing")
        products, total = products_service.list_products(search="pvc")
        assert total == 1
        assert products[0].sku == "PVC-1/2"
        assert products_service.list_categories() == ["Hand Tools", "Plumbing"]

    def test_cashier_cannot_create(self, db_session, cashier):
        with pytest.raises(PermissionDeniedError):
            make_product(cashier)


class TestCustomers:

    def test_balance_cannot_be_written(self, db_session, owner, customer):
        with pytest.raises(ValidationError):
            customer_service.update_customer(owner, customer.id, {"current_balance": "0"})
        with pytest.raises(ValidationError):
            customer_service.create_customer(owner, {"name": "X", "current_balance": "10"})

    def test_customer_type_and_credit_limit(self, db_session, owner):
        with pytest.raises(ValidationError):
            customer_service.create_customer(owner, {"name": "X", "customer_type": "vip"})
        with pytest.raises(ValidationError):
            customer_service.create_customer(owner, {"name": "X", "credit_limit": "-1"})

    def test_defaults(self, db_session, owner):
        walk_up = customer_service.create_customer(owner, {"name": "Wanjiru"})
        assert walk_up.customer_type == "retail"
        assert walk_up.current_balance == Decimal("0.00")
        assert walk_up.credit_limit == Decimal("0.00")

    def test_delete_with_sales_is_refused(self, db_session, owner, cashier, product, customer):
        sales_service.create_sale(
            cashier,
            items=[{"product_id": product.id, "quantity": 1, "unit_price": "150"}],
            customer_id=customer.id,
            payment_method="mpesa",
        )
        with pytest.raises(ConflictError):
            customer_service.delete_customer(owner, customer.id)

    def test_inactive_customer_cannot_buy(self, db_session, owner, cashier, product, customer):
        customer_service.update_customer(owner, customer.id, {"is_active": False})
        with pytest.raises(ConflictError):
            sales_service.create_sale(
                cashier,
                items=[{"product_id": product.id, "quantity": 1, "unit_price": "150"}],
                customer_id=customer.id,
                payment_method="mpesa",
            )

    def test_list_filters(self, db_session, owner, customer):
        customer_service.create_customer(owner, {"name": "Otieno Retail"})
        contractors, total = customer_service.list_customers(customer_type="contractor")
        assert total == 1
        assert contractors[0].id == customer.id
        _, found = customer_service.list_customers(search="0712")
        assert found == 1


class TestSuppliers:

    def test_delete_with_products_is_refused(self, db_session, owner, supplier):
        make_product(owner, supplier_id=supplier.id)
        with pytest.raises(ConflictError):
            supplier_service.delete_supplier(owner, supplier.id)
        assert [p.sku for p in supplier_service.list_supplier_products(supplier.id)] == ["HAM-001"]

    def test_product_with_unknown_supplier(self, db_session, owner):
        with pytest.raises(NotFoundError):
            make_product(owner, supplier_id=4040)

    def test_delete_unused(self, db_session, owner, supplier):
        supplier_service.delete_supplier(owner, supplier.id)
        _, total = supplier_service.list_suppliers()
        assert total == 0


class TestExpenses:

    def test_create_and_filter(self, db_session, manager):
        expense_service.create_expense(manager, {
            "category": "Rent", "amount": "25000", "expense_date": "2026-03-01", "payment_method": "bank_transfer",
        })
        expense_service.create_expense(manager, {
            "category": "Transport", "amount": "1200.50", "expense_date": "2026-03-15",
        })

        rent, total = expense_service.list_expenses(category="Rent")
        assert total == 1
        assert rent[0].recorded_by == manager.actor_id
        assert rent[0].expense_date == date(2026, 3, 1)

        _, in_range = expense_service.list_expenses(start=date(2026, 3, 10), end=date(2026, 3, 31))
        assert in_range == 1
        assert expense_service.list_categories() == ["Rent", "Transport"]

    def test_amount_must_be_positive(self, db_session, owner):
        with pytest.raises(ValidationError):
            expense_service.create_expense(owner, {"category": "Rent", "amount": "0", "expense_date": "2026-03-01"})

    def test_cashier_cannot_record(self, db_session, cashier):
        with pytest.raises(PermissionDeniedError):
            expense_service.create_expense(cashier, {
                "category": "Rent", "amount": "1", "expense_date": "2026-03-01",
            })


def test_category_listings_are_distinct_without_warnings(db_session, owner, manager):
    make_product(owner)
    make_product(owner, sku="SAW-1", name="Hand Saw")
    make_product(owner, sku="TAPE-1", name="Tape Measure", category=None)
    for day in ("2026-03-01", "2026-04-01"):
        expense_service.create_expense(manager, {"category": "Rent", "amount": "100", "expense_date": day})

    with warnings.catch_warnings():
        warnings.simplefilter("error", SAWarning)
        assert products_service.list_categories() == ["Hand Tools"]
        assert expense_service.list_categories() == ["Rent"]
