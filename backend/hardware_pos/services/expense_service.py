from __future__ import annotations

from datetime import date

from ..extensions import db
from ..errors import NotFoundError
from ..models import Expense
from ..permissions import Actor, Capability
from ..validation import ModelValidationPolicy, enforce_rules_expense, validate_payload
from .concurrency import run_with_retry

EXPENSE_POLICY = ModelValidationPolicy(
    writable_fields={"category", "description", "amount", "expense_date", "payment_method", "reference_number"},
    required_on_create={"category", "amount", "expense_date"},
)


def _require_expense(expense_id: int) -> Expense:
    expense = db.session.get(Expense, expense_id)
    if expense is None:
        raise NotFoundError("Expense not found", details={"expense_id": expense_id})
    return expense


def create_expense(actor: Actor, payload: dict) -> Expense:
    actor.require(Capability.MANAGE_EXPENSES)
    patch = validate_payload(model=Expense, payload=payload, policy=EXPENSE_POLICY, partial=False)
    enforce_rules_expense(patch)

    def _op():
        expense = Expense(recorded_by=actor.actor_id, **patch)
        db.session.add(expense)
        db.session.commit()
        return expense

    return run_with_retry(_op)


def update_expense(actor: Actor, expense_id: int, payload: dict) -> Expense:
    actor.require(Capability.MANAGE_EXPENSES)
    patch = validate_payload(model=Expense, payload=payload, policy=EXPENSE_POLICY, partial=True)
    enforce_rules_expense(patch)

    def _op():
        expense = _require_expense(expense_id)
        for key, value in patch.items():
            setattr(expense, key, value)
        db.session.commit()
        return expense

    return run_with_retry(_op)


def delete_expense(actor: Actor, expense_id: int) -> None:
    actor.require(Capability.MANAGE_EXPENSES)

    def _op():
        db.session.delete(_require_expense(expense_id))
        db.session.commit()

    run_with_retry(_op)


def get_expense(expense_id: int) -> Expense:
    return _require_expense(expense_id)


def list_expenses(
    *,
    category: str | None = None,
    start: date | None = None,
    end: date | None = None,
    page: int = 1,
    limit: int = 50,
) -> tuple[list[Expense], int]:
    query = db.session.query(Expense)
    if category:
        query = query.filter(Expense.category == category)
    if start is not None:
        query = query.filter(Expense.expense_date >= start)
    if end is not None:
        query = query.filter(Expense.expense_date <= end)

    total = query.count()
    expenses = (
        query.order_by(Expense.expense_date.desc(), Expense.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return expenses, total


def list_categories() -> list[str]:
    rows = db.session.query(Expense.category).distinct().order_by(Expense.category.asc()).all()
    return [row[0] for row in rows]
