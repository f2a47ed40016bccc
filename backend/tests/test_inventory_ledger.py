"""
Inventory ledger tests.

Verifies:
- Stored stock equals the sum of stock movements after every operation
- Adjustment policy (no negative stock unless the reason is a correction)
- Movement shape rules
- Drift detection and rebuild
"""

from decimal import Decimal

import pytest

from hardware_pos.errors import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from hardware_pos.extensions import db
from hardware_pos.models import Inventory, StockMovement
from hardware_pos.services import inventory_service, sales_service, stock_movement_service

from conftest import add_stock, make_product


def assert_ledger_consistent(product_id):
    assert inventory_service.get_quantity(product_id) == inventory_service.get_movement_total(product_id)


class TestInventoryInvariant:

    def test_new_product_has_zero_stock_row(self, db_session, owner):
        product = make_product(owner, sku="NEW-1")
        row = db.session.get(Inventory, product.id)
        assert row is not None
        assert row.quantity == Decimal("0.000")
        assert db.session.query(StockMovement).filter_by(product_id=product.id).count() == 0

    def test_quantity_tracks_movements_through_mixed_operations(self, db_session, owner, cashier, product):
        sale = sales_service.create_sale(
            cashier, items=[{"product_id": product.id, "quantity": "3", "unit_price": "150.00"}],
        )
        stock_movement_service.create_adjustment(
            owner, product_id=product.id, quantity_change="-1", reason="damaged",
        )
        add_stock(owner, product, "2.5")

        assert inventory_service.get_quantity(product.id) == Decimal("8.500")
        assert_ledger_consistent(product.id)

        sales_service.delete_sale(owner, sale.id)
        assert inventory_service.get_quantity(product.id) == Decimal("11.500")
        assert_ledger_consistent(product.id)

    def test_product_inventory_view_reports_movement_total(self, db_session, product):
        view = inventory_service.get_product_inventory(product.id)
        assert view["quantity"] == "10.000"
        assert view["movement_total"] == "10.000"


class TestAdjustments:

    def test_negative_adjustment_within_stock(self, db_session, manager, product):
        movement = stock_movement_service.create_adjustment(
            manager, product_id=product.id, quantity_change=-4, reason="theft", notes="Shelf count",
        )
        assert movement.movement_type == "adjustment"
        assert movement.adjustment_reason == "theft"
        assert movement.created_by == manager.actor_id
        assert inventory_service.get_quantity(product.id) == Decimal("6.000")

    def test_negative_adjustment_below_zero_is_rejected(self, db_session, owner, product):
        with pytest.raises(ConflictError) as exc:
            stock_movement_service.create_adjustment(
                owner, product_id=product.id, quantity_change=-11, reason="damaged",
            )
        assert "negative stock" in exc.value.message
        assert inventory_service.get_quantity(product.id) == Decimal("10.000")
        assert_ledger_consistent(product.id)

    def test_adjustment_to_exactly_zero_is_allowed(self, db_session, owner, product):
        stock_movement_service.create_adjustment(
            owner, product_id=product.id, quantity_change=-10, reason="expired",
        )
        assert inventory_service.get_quantity(product.id) == Decimal("0.000")

    def test_correction_may_take_stock_negative(self, db_session, owner, product):
        stock_movement_service.create_adjustment(
            owner, product_id=product.id, quantity_change=-12, reason="correction",
        )
        assert inventory_service.get_quantity(product.id) == Decimal("-2.000")
        assert_ledger_consistent(product.id)

    def test_adjustment_requires_known_reason(self, db_session, owner, product):
        with pytest.raises(ValidationError):
            stock_movement_service.create_adjustment(
                owner, product_id=product.id, quantity_change=1, reason=None,
            )
        with pytest.raises(ValidationError):
            stock_movement_service.create_adjustment(
                owner, product_id=product.id, quantity_change=1, reason="gift",
            )

    def test_zero_adjustment_is_rejected(self, db_session, owner, product):
        with pytest.raises(ValidationError):
            stock_movement_service.create_adjustment(
                owner, product_id=product.id, quantity_change=0, reason="correction",
            )

    def test_unknown_product(self, db_session, owner):
        with pytest.raises(NotFoundError):
            stock_movement_service.create_adjustment(
                owner, product_id=999999, quantity_change=1, reason="correction",
            )

    def test_inactive_product(self, db_session, owner):
        product = make_product(owner, sku="OLD-1", is_active=False)
        with pytest.raises(ConflictError):
            add_stock(owner, product, 1)

    def test_cashier_cannot_adjust(self, db_session, cashier, product):
        with pytest.raises(PermissionDeniedError):
            stock_movement_service.create_adjustment(
                cashier, product_id=product.id, quantity_change=1, reason="correction",
            )


class TestMovementShape:

    def test_sale_movement_requires_sale_item(self, db_session, owner, product):
        with pytest.raises(ValidationError):
            stock_movement_service.record_movement(
                product_id=product.id, movement_type="sale", quantity_change=-1, actor=owner,
            )

    def test_purchase_movement_must_increase_stock(self, db_session, owner, product):
        with pytest.raises(ValidationError):
            stock_movement_service.record_movement(
                product_id=product.id,
                movement_type="purchase",
                quantity_change=-1,
                actor=owner,
                purchase_item_id=1,
            )

    def test_unknown_movement_type(self, db_session, owner, product):
        with pytest.raises(ValidationError):
            stock_movement_service.record_movement(
                product_id=product.id, movement_type="transfer", quantity_change=1, actor=owner,
            )

    def test_list_movements_filters_by_type(self, db_session, owner, cashier, product):
        sales_service.create_sale(
            cashier, items=[{"product_id": product.id, "quantity": 1, "unit_price": "150"}],
        )
        movements, total = stock_movement_service.list_movements(product_id=product.id, movement_type="sale")
        assert total == 1
        assert movements[0].quantity_change == Decimal("-1.000")
        assert movements[0].sale_item_id is not None

        _, total_all = stock_movement_service.list_movements(product_id=product.id)
        assert total_all == 2


class TestDriftRepair:

    def test_find_drift_and_rebuild(self, db_session, owner, product):
        row = db.session.get(Inventory, product.id)
        row.quantity = Decimal("3")
        db.session.commit()

        drift = inventory_service.find_drift()
        assert drift == [{"product_id": product.id, "stored": "3.000", "movements": "10.000"}]

        fixed = inventory_service.rebuild_from_movements(actor_id=owner.actor_id)
        db.session.commit()
        assert fixed == 1
        assert inventory_service.find_drift() == []
        assert inventory_service.get_quantity(product.id) == Decimal("10.000")


class TestInventoryQueries:

    def test_low_and_out_of_stock(self, db_session, owner, product):
        empty = make_product(owner, sku="NAIL-2IN", name="Wire Nails 2in", unit="kg", min_stock_level="5")
        low = make_product(owner, sku="SCR-8", name="Wood Screws No.8", min_stock_level="5")
        add_stock(owner, low, 3)

        low_rows = inventory_service.get_low_stock()
        assert [r["sku"] for r in low_rows] == ["NAIL-2IN", "SCR-8"]

        rows, total = inventory_service.list_inventory(out_of_stock=True)
        assert total == 1
        assert rows[0]["product_id"] == empty.id
        assert rows[0]["is_out_of_stock"] is True

    def test_inventory_value(self, db_session, owner, product):
        value = inventory_service.get_inventory_value()
        assert value["total_retail_value"] == "1500.00"
        assert value["total_cost_value"] == "800.00"
        assert value["by_category"][0]["category"] == "Hand Tools"
        assert value["by_category"][0]["total_quantity"] == "10.000"
