"""
Credit settlement tests.

Verifies:
- Payments move a credit sale from pending to partial to paid
- Overpayment, cash sales and walk-in sales are rejected
- Deleting a payment re-derives the sale and the customer balance
- Balance recalculation repairs drift
"""

from decimal import Decimal

import pytest

from hardware_pos.errors import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from hardware_pos.extensions import db
from hardware_pos.models import Customer, CustomerPayment, Sale
from hardware_pos.services import payment_service, sales_service


@pytest.fixture
def credit_sale(db_session, cashier, product, customer):
    """Credit sale of 1000.00 (4 x 250.00) on M-Pesa."""
    return sales_service.create_sale(
        cashier,
        items=[{"product_id": product.id, "quantity": 4, "unit_price": "250.00"}],
        customer_id=customer.id,
        payment_method="mpesa",
    )


def balance_of(customer):
    return db.session.get(Customer, customer.id).current_balance


class TestRecordPayment:

    def test_partial_then_paid(self, db_session, cashier, credit_sale, customer):
        assert balance_of(customer) == Decimal("1000.00")

        first = payment_service.record_payment(
            cashier, sale_id=credit_sale.id, amount="400", payment_method="mpesa", reference_number="QWE123",
        )
        sale = db.session.get(Sale, credit_sale.id)
        assert first.customer_id == customer.id
        assert first.recorded_by == cashier.actor_id
        assert sale.amount_paid == Decimal("400.00")
        assert sale.payment_status == "partial"
        assert balance_of(customer) == Decimal("600.00")

        payment_service.record_payment(cashier, sale_id=credit_sale.id, amount="600.00")
        sale = db.session.get(Sale, credit_sale.id)
        assert sale.amount_paid == Decimal("1000.00")
        assert sale.payment_status == "paid"
        assert balance_of(customer) == Decimal("0.00")

    def test_overpayment_is_rejected(self, db_session, cashier, credit_sale, customer):
        payment_service.record_payment(cashier, sale_id=credit_sale.id, amount="900")

        with pytest.raises(ConflictError) as exc:
            payment_service.record_payment(cashier, sale_id=credit_sale.id, amount="100.01")

        assert exc.value.message == "Payment amount (100.01) exceeds remaining balance (100.00)"
        assert db.session.query(CustomerPayment).count() == 1
        assert balance_of(customer) == Decimal("100.00")

    def test_payment_on_paid_sale_is_rejected(self, db_session, cashier, credit_sale):
        payment_service.record_payment(cashier, sale_id=credit_sale.id, amount="1000")
        with pytest.raises(ConflictError):
            payment_service.record_payment(cashier, sale_id=credit_sale.id, amount="0.01")

    @pytest.mark.parametrize("amount", ["0", "-5", "abc"])
    def test_invalid_amount(self, db_session, cashier, credit_sale, amount):
        with pytest.raises(ValidationError):
            payment_service.record_payment(cashier, sale_id=credit_sale.id, amount=amount)

    def test_walk_in_sale_is_rejected(self, db_session, cashier, product):
        sale = sales_service.create_sale(
            cashier, items=[{"product_id": product.id, "quantity": 1, "unit_price": "150"}],
        )
        with pytest.raises(ConflictError) as exc:
            payment_service.record_payment(cashier, sale_id=sale.id, amount="10")
        assert "without a customer" in exc.value.message

    def test_customer_cash_sale_is_rejected(self, db_session, cashier, product, customer):
        sale = sales_service.create_sale(
            cashier,
            items=[{"product_id": product.id, "quantity": 1, "unit_price": "150"}],
            customer_id=customer.id,
            payment_method="cash",
        )
        with pytest.raises(ConflictError):
            payment_service.record_payment(cashier, sale_id=sale.id, amount="10")

    def test_missing_sale(self, db_session, cashier):
        with pytest.raises(NotFoundError):
            payment_service.record_payment(cashier, sale_id=555555, amount="10")

    def test_staff_cannot_record(self, db_session, staff, credit_sale):
        with pytest.raises(PermissionDeniedError):
            payment_service.record_payment(staff, sale_id=credit_sale.id, amount="10")


class TestDeletePayment:

    def test_reverts_status_and_balance(self, db_session, owner, cashier, credit_sale, customer):
        payment = payment_service.record_payment(cashier, sale_id=credit_sale.id, amount="1000")
        assert db.session.get(Sale, credit_sale.id).payment_status == "paid"

        result = payment_service.delete_payment(owner, payment.id)

        assert result == {"payment_id": payment.id, "sale_id": credit_sale.id}
        sale = db.session.get(Sale, credit_sale.id)
        assert sale.payment_status == "pending"
        assert sale.amount_paid == Decimal("0.00")
        assert balance_of(customer) == Decimal("1000.00")

    def test_cashier_cannot_delete(self, db_session, cashier, credit_sale):
        payment = payment_service.record_payment(cashier, sale_id=credit_sale.id, amount="10")
        with pytest.raises(PermissionDeniedError):
            payment_service.delete_payment(cashier, payment.id)


class TestBalances:

    def test_balance_sums_open_sales(self, db_session, cashier, product, customer, credit_sale):
        second = sales_service.create_sale(
            cashier,
            items=[{"product_id": product.id, "quantity": 2, "unit_price": "150"}],
            customer_id=customer.id,
            payment_method="bank_transfer",
        )
        payment_service.record_payment(cashier, sale_id=second.id, amount="100")

        assert payment_service.compute_customer_balance(customer.id) == Decimal("1200.00")
        assert balance_of(customer) == Decimal("1200.00")

        outstanding = payment_service.get_customer_outstanding(customer.id)
        assert outstanding["total_outstanding"] == "1200.00"
        assert outstanding["customer"]["available_credit"] == "3800.00"
        assert [s["remaining_balance"] for s in outstanding["unpaid_sales"]] == ["1000.00", "200.00"]

    def test_recalculate_repairs_drift(self, db_session, cashier, credit_sale, customer):
        payment_service.record_payment(cashier, sale_id=credit_sale.id, amount="250")

        db.session.get(Customer, customer.id).current_balance = Decimal("1.00")
        db.session.get(Sale, credit_sale.id).amount_paid = Decimal("0.00")
        db.session.commit()

        drift = payment_service.find_balance_drift()
        assert {entry["kind"] for entry in drift} == {"sale", "customer"}

        result = payment_service.recalculate_all_balances()

        assert result == {"sales_fixed": 1, "customers_fixed": 1}
        assert payment_service.find_balance_drift() == []
        assert balance_of(customer) == Decimal("750.00")
        assert db.session.get(Sale, credit_sale.id).payment_status == "partial"

    def test_summary(self, db_session, cashier, credit_sale):
        payment_service.record_payment(cashier, sale_id=credit_sale.id, amount="250")
        summary = payment_service.get_sale_payment_summary(credit_sale.id)
        assert summary["amount_paid"] == "250.00"
        assert summary["remaining_balance"] == "750.00"
        assert summary["payment_status"] == "partial"
        assert len(summary["payments"]) == 1

    def test_list_payments_by_customer(self, db_session, cashier, credit_sale, customer):
        payment_service.record_payment(cashier, sale_id=credit_sale.id, amount="10")
        payment_service.record_payment(cashier, sale_id=credit_sale.id, amount="20")
        payments, total = payment_service.list_payments(customer_id=customer.id)
        assert total == 2
        assert {p.amount for p in payments} == {Decimal("10.00"), Decimal("20.00")}
