"""
Pytest fixtures for POS backend tests.

Provides test database setup, seeded roles/users/products, and an
authenticated test client.
"""

import pytest

from pos_app import create_app
from pos_app.extensions import db
from pos_app.models import Customer, Product, Return, ReturnLine
from pos_app.services import permission_service
from pos_app.services.auth_service import create_user
from pos_app.services.events import catalog_changed
from pos_app.services.products_service import create_product

TEST_PASSWORD = "Password123"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'POS_CAS_ATTEMPTS': 3,
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
        for listener in catalog_changed.receivers:
            catalog_changed.disconnect(listener)


@pytest.fixture(scope='function')
def setup_roles(db_session):
    """Setup default roles and permissions."""
    permission_service.create_default_roles()
    permission_service.initialize_permissions()
    permission_service.assign_default_role_permissions()
    db_session.commit()


@pytest.fixture(scope='function')
def users(db_session, setup_roles):
    """One user per built-in role; username == role name."""
    created = {}
    for role in ("admin", "manager", "cashier"):
        created[role] = create_user(
            username=role,
            password=TEST_PASSWORD,
            name=role.capitalize(),
            role_name=role,
            rounds=4,
        )
    return created


@pytest.fixture(scope='function')
def seed(users):
    """Roles, permissions and users in place."""
    return users


@pytest.fixture(scope='function')
def products(db_session):
    """Two products: Espresso (250c, stock 5) and Croissant (180c, stock 10)."""
    espresso = create_product(patch={"name": "Espresso", "price_cents": 250, "category": "Drinks", "stock": 5})
    croissant = create_product(patch={"name": "Croissant", "price_cents": 180, "category": "Bakery", "stock": 10})
    return {"espresso": espresso, "croissant": croissant}


@pytest.fixture(scope='function')
def returns_history(db_session, products):
    """A customer with one return, plus a return with no customer."""
    customer = Customer(name="Maria Lopez", email="maria@example.com")
    db_session.add(customer)
    db_session.flush()

    with_customer = Return(customer_id=customer.id, total_refund_cents=250,
                           reason="Cold coffee", processed_by="Manager")
    anonymous = Return(total_refund_cents=180, reason="Stale", processed_by="Cashier")
    db_session.add_all([with_customer, anonymous])
    db_session.flush()

    db_session.add(ReturnLine(return_id=with_customer.id, product_id=products["espresso"].id,
                              product_name="Espresso", quantity=1, refund_cents=250))
    db_session.commit()
    return {"customer": customer, "with_customer": with_customer, "anonymous": anonymous}


def get_auth_token(client, username: str, password: str = TEST_PASSWORD) -> str:
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


@pytest.fixture(scope='function')
def login(client):
    """Log in through the API; returns Authorization headers, or None on failure."""
    def _login(username: str, password: str = TEST_PASSWORD):
        token = get_auth_token(client, username, password)
        return auth_headers(token) if token else None
    return _login


@pytest.fixture(scope='function')
def admin_headers(client, users):
    return auth_headers(get_auth_token(client, "admin"))


@pytest.fixture(scope='function')
def manager_headers(client, users):
    return auth_headers(get_auth_token(client, "manager"))


@pytest.fixture(scope='function')
def cashier_headers(client, users):
    return auth_headers(get_auth_token(client, "cashier"))


@pytest.fixture(scope='function')
def stock_of(db_session):
    """Authoritative stock straight from the table."""
    def _stock_of(product_id: int) -> int:
        db_session.expire_all()
        return db_session.get(Product, product_id).stock
    return _stock_of
