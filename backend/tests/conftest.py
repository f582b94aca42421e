"""
Pytest fixtures for billbook backend tests.

Provides an in-memory database, a clean slate per test, and a test client.
"""

from datetime import date, datetime

import pytest
from billbook import create_app
from billbook.extensions import db
from billbook.models import Stock


# Fixed reference instant for status-sensitive tests
NOW = datetime(2024, 6, 15, 12, 0, 0)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'INVOICE_NUMBER_PREFIX': 'AB',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


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
def client(app, db_session):
    """Create test client on a clean database."""
    return app.test_client()


@pytest.fixture(scope='function')
def make_stock(db_session):
    """Factory for stock rows."""
    def _make(name: str, quantity: int) -> Stock:
        stock = Stock(name=name, quantity=quantity)
        db_session.add(stock)
        db_session.commit()
        return stock
    return _make


def invoice_header(**overrides) -> dict:
    """Valid invoice header fields (service-level, already typed)."""
    header = {
        "invoice_date": date(2024, 6, 1),
        "due_date": date(2024, 6, 30),
        "customer_name": "Asha Traders",
        "customer_address": "12 MG Road, Pune",
        "customer_phone": "9876543210",
    }
    header.update(overrides)
    return header


def invoice_payload(**overrides) -> dict:
    """Valid JSON body for POST /api/invoices."""
    payload = {
        "invoice_date": "2024-06-01",
        "due_date": "2099-06-30",
        "customer_name": "Asha Traders",
        "customer_address": "12 MG Road, Pune",
        "customer_phone": "9876543210",
        "items": [
            {"name": "Steel rod", "quantity": 2, "rate_cents": 50000},
            {"name": "Cement bag", "quantity": 3, "rate_cents": 35000},
        ],
    }
    payload.update(overrides)
    return payload
