"""
Supplier purchase tests.

Verifies:
- Receiving goods adds stock through purchase movements
- Deleting a purchase removes its stock, unless that stock was already sold
- Payment status is set explicitly
"""

from decimal import Decimal

import pytest

from hardware_pos.errors import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from hardware_pos.extensions import db
from hardware_pos.models import Purchase, PurchaseItem, StockMovement
from hardware_pos.services import inventory_service, purchase_service, sales_service, supplier_service

from conftest import make_product


@pytest.fixture
def cement(db_session, owner):
    return make_product(owner, sku="CEM-50", name="Cement 50kg", category="Building",
                        unit="bag", purchase_price="720", retail_price="850")


def receive(actor, supplier, product, quantity, unit_cost="720.00", **kwargs):
    return purchase_service.create_purchase(
        actor,
        supplier_id=supplier.id,
        items=[{"product_id": product.id, "quantity": quantity, "unit_cost": unit_cost}],
        **kwargs,
    )


class TestCreatePurchase:

    def test_adds_stock_and_totals(self, db_session, manager, supplier, cement):
        purchase = receive(manager, supplier, cement, 20, discount_amount="400", payment_method="bank_transfer")

        assert purchase.purchase_number == f"PUR-{purchase.id:06d}"
        assert purchase.subtotal == Decimal("14400.00")
        assert purchase.total_amount == Decimal("14000.00")
        assert purchase.payment_status == "pending"
        assert purchase.created_by == manager.actor_id
        assert inventory_service.get_quantity(cement.id) == Decimal("20.000")

        movement = db.session.query(StockMovement).filter_by(movement_type="purchase").one()
        assert movement.quantity_change == Decimal("20.000")
        assert movement.purchase_item_id == purchase.items[0].id

    def test_unit_price_is_accepted_for_unit_cost(self, db_session, owner, supplier, cement):
        purchase = purchase_service.create_purchase(
            owner,
            supplier_id=supplier.id,
            items=[{"product_id": cement.id, "quantity": "2", "unit_price": "700"}],
        )
        assert purchase.items[0].unit_cost == Decimal("700.00")

    def test_inactive_supplier(self, db_session, owner, supplier, cement):
        supplier_service.update_supplier(owner, supplier.id, {"is_active": False})
        with pytest.raises(ConflictError):
            receive(owner, supplier, cement, 1)
        assert inventory_service.get_quantity(cement.id) == Decimal("0.000")

    def test_unknown_supplier(self, db_session, owner, cement):
        with pytest.raises(NotFoundError):
            purchase_service.create_purchase(
                owner, supplier_id=9999, items=[{"product_id": cement.id, "quantity": 1, "unit_cost": "1"}],
            )

    def test_invalid_lines(self, db_session, owner, supplier, cement):
        with pytest.raises(ValidationError):
            receive(owner, supplier, cement, 0)
        with pytest.raises(ValidationError):
            receive(owner, supplier, cement, 1, unit_cost="-1")
        with pytest.raises(ValidationError):
            purchase_service.create_purchase(owner, supplier_id=supplier.id, items=[])

    def test_cashier_cannot_purchase(self, db_session, cashier, supplier, cement):
        with pytest.raises(PermissionDeniedError):
            receive(cashier, supplier, cement, 1)


class TestDeletePurchase:

    def test_removes_stock(self, db_session, owner, supplier, cement):
        purchase = receive(owner, supplier, cement, 10)
        purchase_id = purchase.id

        result = purchase_service.delete_purchase(owner, purchase_id)

        assert result["removed"] == [{"product_id": cement.id, "quantity": "-10.000"}]
        assert inventory_service.get_quantity(cement.id) == Decimal("0.000")
        assert db.session.get(Purchase, purchase_id) is None
        assert db.session.query(PurchaseItem).count() == 0
        assert inventory_service.find_drift() == []

    def test_refused_when_stock_was_sold(self, db_session, owner, cashier, supplier, cement):
        purchase = receive(owner, supplier, cement, 10)
        sales_service.create_sale(
            cashier, items=[{"product_id": cement.id, "quantity": 4, "unit_price": "850"}],
        )

        with pytest.raises(ConflictError):
            purchase_service.delete_purchase(owner, purchase.id)

        assert db.session.get(Purchase, purchase.id) is not None
        assert inventory_service.get_quantity(cement.id) == Decimal("6.000")
        assert inventory_service.find_drift() == []


class TestPaymentStatus:

    def test_update(self, db_session, owner, supplier, cement):
        purchase = receive(owner, supplier, cement, 1)
        updated = purchase_service.update_purchase_payment_status(owner, purchase.id, "paid")
        assert updated.payment_status == "paid"

    def test_rejects_unknown_status(self, db_session, owner, supplier, cement):
        purchase = receive(owner, supplier, cement, 1)
        with pytest.raises(ValidationError):
            purchase_service.update_purchase_payment_status(owner, purchase.id, "settled")

    def test_list_by_status(self, db_session, owner, supplier, cement):
        receive(owner, supplier, cement, 1, payment_status="paid")
        receive(owner, supplier, cement, 1)
        purchases, total = purchase_service.list_purchases(payment_status="paid")
        assert total == 1
        assert purchases[0].payment_status == "paid"

    def test_detail(self, db_session, owner, supplier, cement):
        purchase = receive(owner, supplier, cement, 3)
        detail = purchase_service.purchase_detail(purchase_service.get_purchase(purchase.id))
        assert detail["supplier"]["name"] == "Mombasa Hardware Wholesale"
        assert detail["items"][0]["product"]["sku"] == "CEM-50"
        assert detail["items"][0]["line_total"] == "2160.00"

    def test_update_takes_the_write_lock(self, db_session, owner, supplier, cement, monkeypatch):
        purchase = receive(owner, supplier, cement, 1)
        calls = []
        original = purchase_service.acquire_write_lock

        def counting_lock():
            calls.append("locked")
            return original()

        monkeypatch.setattr(purchase_service, "acquire_write_lock", counting_lock)

        purchase_service.update_purchase_payment_status(owner, purchase.id, "partial")

        assert len(calls) == 1
        assert purchase_service.get_purchase(purchase.id).payment_status == "partial"
