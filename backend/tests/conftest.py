"""
Pytest fixtures for hardware_pos backend tests.

Provides test database setup, one actor per role, gateway headers and small
factories for catalog rows and stock.
"""

import pytest

from hardware_pos import create_app
from hardware_pos.extensions import db
from hardware_pos.permissions import Actor, Role
from hardware_pos.services import (
    customer_service,
    products_service,
    stock_movement_service,
    supplier_service,
)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'DB_RETRY_BACKOFF': 0,
        'LOG_LEVEL': 'WARNING',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture
def owner():
    return Actor(actor_id="owner-1", role=Role.OWNER)


@pytest.fixture
def manager():
    return Actor(actor_id="manager-1", role=Role.MANAGER)


@pytest.fixture
def cashier():
    return Actor(actor_id="cashier-1", role=Role.CASHIER)


@pytest.fixture
def staff():
    return Actor(actor_id="staff-1", role=Role.STAFF)


def actor_headers(actor: Actor) -> dict:
    """Headers the identity gateway forwards for an authenticated user."""
    return {'X-Actor-Id': actor.actor_id, 'X-Actor-Role': actor.role.value}


@pytest.fixture
def owner_headers(owner):
    return actor_headers(owner)


@pytest.fixture
def cashier_headers(cashier):
    return actor_headers(cashier)


@pytest.fixture
def staff_headers(staff):
    return actor_headers(staff)


def make_product(actor, **overrides):
    payload = {
        'sku': 'HAM-001',
        'name': 'Claw Hammer 16oz',
        'category': 'Hand Tools',
        'unit': 'piece',
        'purchase_price': '80.00',
        'retail_price': '150.00',
        'min_stock_level': '2',
    }
    payload.update(overrides)
    return products_service.create_product(actor, payload)


def add_stock(actor, product, quantity, reason='correction'):
    """Positive adjustment; a test shortcut for receiving goods."""
    return stock_movement_service.create_adjustment(
        actor,
        product_id=product.id,
        quantity_change=quantity,
        reason=reason,
    )


@pytest.fixture
def product(db_session, owner):
    """Product with 10 units on hand."""
    product = make_product(owner)
    add_stock(owner, product, 10)
    return product


@pytest.fixture
def customer(db_session, owner):
    return customer_service.create_customer(owner, {
        'name': 'Kamau Builders',
        'customer_type': 'contractor',
        'phone': '0712000000',
        'credit_limit': '5000.00',
    })


@pytest.fixture
def supplier(db_session, owner):
    return supplier_service.create_supplier(owner, {
        'name': 'Mombasa Hardware Wholesale',
        'contact_person': 'Achieng',
        'phone': '0722000000',
    })
