"""
Pytest fixtures for stockroom backend tests.

Provides the in-memory application, a per-test table wipe, a test client,
admin/staff operators with bearer headers, and a small seeded catalog.
"""

import pytest

from stockroom import create_app
from stockroom.extensions import db
from stockroom.models import Category, Product, User, Warehouse
from stockroom.services import session_service, stock_ledger_service
from stockroom.services.auth_service import hash_password

TEST_PASSWORD = "Password123"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'LOG_LEVEL': 'DEBUG',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='session')
def password_hash():
    """bcrypt is deliberately slow; hash the shared test password once."""
    return hash_password(TEST_PASSWORD)


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
        db.session.expunge_all()

        yield db.session

        # Cleanup after test
        db.session.rollback()


def _make_user(db_session, password_hash, username: str, role: str) -> User:
    user = User(
        username=username,
        email=f"{username}@stockroom.test",
        password_hash=password_hash,
        role=role,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin_user(db_session, password_hash):
    return _make_user(db_session, password_hash, "admin", "admin")


@pytest.fixture(scope='function')
def staff_user(db_session, password_hash):
    return _make_user(db_session, password_hash, "clerk", "staff")


@pytest.fixture(scope='function')
def admin_headers(admin_user):
    _, token = session_service.create_session(admin_user.id)
    return auth_headers(token)


@pytest.fixture(scope='function')
def staff_headers(staff_user):
    _, token = session_service.create_session(staff_user.id)
    return auth_headers(token)


@pytest.fixture(scope='function')
def category(db_session):
    cat = Category(name="Chargers", description="Wall and car chargers")
    db_session.add(cat)
    db_session.commit()
    return cat


@pytest.fixture(scope='function')
def warehouse(db_session):
    wh = Warehouse(name="Main", location="Dock 1")
    db_session.add(wh)
    db_session.commit()
    return wh


@pytest.fixture(scope='function')
def second_warehouse(db_session):
    wh = Warehouse(name="Overflow", location="Dock 2")
    db_session.add(wh)
    db_session.commit()
    return wh


@pytest.fixture(scope='function')
def product(db_session, category):
    """Purchase $6.00, wholesale $8.00, retail $10.00."""
    p = Product(
        name="USB-C Cable",
        purchase_price_cents=600,
        wholesale_price_cents=800,
        retail_price_cents=1000,
        unit=1,
        category_id=category.id,
    )
    db_session.add(p)
    db_session.commit()
    return p


@pytest.fixture(scope='function')
def stocked(db_session, product, warehouse):
    """product assigned to warehouse with 100 on hand, 0 reserved."""
    stock_ledger_service.create_entry(product.id, warehouse.id, 100)
    return product.id, warehouse.id


def get_auth_token(client, username: str, password: str) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
