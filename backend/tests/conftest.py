"""
Pytest fixtures for warehouse backend tests.

Provides test database setup, a logged-in user, and sample zone/product data.
"""

import pytest
from warehouse import create_app
from warehouse.extensions import db
from warehouse.models import Zone
from warehouse.services.auth_service import create_user
from warehouse.services.products_service import create_product_with_initial_stock

TEST_PASSWORD = "Password123"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
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
def user(db_session):
    return create_user(
        email="alice@example.com",
        password=TEST_PASSWORD,
        first_name="Alice",
        last_name="Stock",
    )


@pytest.fixture(scope='function')
def headers(client, user):
    """Authorization headers for the default test user."""
    token = get_auth_token(client, user.email, TEST_PASSWORD)
    assert token, "login failed in fixture"
    return auth_headers(token)


@pytest.fixture(scope='function')
def zone(db_session):
    zone = Zone(name="Zone A", description="Near dispatch", capacity=10)
    db_session.add(zone)
    db_session.commit()
    return zone


@pytest.fixture(scope='function')
def product(db_session, zone, user):
    """Product with 20 units on hand and a reorder point of 5."""
    return create_product_with_initial_stock(
        patch={
            "product_code": "BOLT-M8",
            "name": "M8 Hex Bolt",
            "category": "Hardware",
            "zone_id": zone.id,
            "current_stock": 20,
            "min_stock": 5,
            "unit_price_cents": 1250,
        },
        acting_user_id=user.id,
    )


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory creating products through the service layer."""
    def _make(code: str, *, stock: int = 0, min_stock: int = 0, price_cents=None,
              category: str = "General", zone_id=None, name=None, user_id=None):
        return create_product_with_initial_stock(
            patch={
                "product_code": code,
                "name": name or f"Product {code}",
                "category": category,
                "zone_id": zone_id,
                "current_stock": stock,
                "min_stock": min_stock,
                "unit_price_cents": price_cents,
            },
            acting_user_id=user_id,
        )

    return _make


def get_auth_token(client, email: str, password: str) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
