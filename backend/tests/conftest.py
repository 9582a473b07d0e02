"""
Pytest fixtures for liveseller backend tests.

Provides the app on an in-memory database, a per-test clean session,
a test client and small factories for catalog/session/claim rows.
"""

import pytest
from liveseller import create_app
from liveseller.extensions import db
from liveseller.models import Claim, Customer, InventoryItem, InventoryVariant, LiveSession


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
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


@pytest.fixture(scope='function')
def make_item(db_session):
    """Factory: inventory item with current/reserved stock set directly."""
    def _make(
        item_code="ITEM-1",
        *,
        name=None,
        cost=100,
        price=500,
        current=10,
        reserved=0,
        threshold=0,
        variants=None,
    ):
        item = InventoryItem(
            item_code=item_code,
            name=name or f"Item {item_code}",
            status="ACTIVE",
            cost_price_cents=cost,
            selling_price_cents=price,
            initial_stock=current,
            current_stock=current,
            reserved_stock=reserved,
            low_stock_threshold=threshold,
        )
        for fields in variants or []:
            item.variants.append(InventoryVariant(**fields))
        db_session.add(item)
        db_session.commit()
        return item

    return _make


@pytest.fixture(scope='function')
def live_session(db_session):
    session = LiveSession(title="Friday Live", platform="FACEBOOK", status="ENDED")
    db_session.add(session)
    db_session.commit()
    return session


@pytest.fixture(scope='function')
def make_claim(db_session):
    """Factory: claim row as written by the intake workflow."""
    def _make(session, item, *, name="Ana", qty=1, status="ACCEPTED", variant_id=None,
              customer_id=None, joy_reserve=False):
        claim = Claim(
            live_session_id=session.id,
            inventory_item_id=item.id if hasattr(item, "id") else item,
            variant_id=variant_id,
            customer_id=customer_id,
            temporary_name=name,
            quantity=qty,
            status=status,
            joy_reserve=joy_reserve,
        )
        db_session.add(claim)
        db_session.commit()
        return claim

    return _make


@pytest.fixture(scope='function')
def make_customer(db_session):
    def _make(display_name="Ana", **fields):
        customer = Customer(display_name=display_name, **fields)
        db_session.add(customer)
        db_session.commit()
        return customer

    return _make
