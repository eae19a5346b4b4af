"""
Pytest fixtures for cafe POS backend tests.

Provides an in-memory application, a per-test table wipe, staff accounts,
a small menu with recipes, and helpers for authenticated requests.
"""

from decimal import Decimal

import pytest
from sqlalchemy import select

from cafe_pos import create_app
from cafe_pos.extensions import db
from cafe_pos.models import Category, DiningTable, InventoryItem, Product, RecipeLink, User
from cafe_pos.money import to_minor_units
from cafe_pos.services.auth_service import hash_password
from cafe_pos.services.order_service import OrderCoordinator

TEST_PASSWORD = "Password123"

TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    'BCRYPT_ROUNDS': 4,
    'TAX_RATE_PERCENT': 5,
    'ORDER_NUMBER_PREFIX': 'ORD',
    'BUSINESS_TIMEZONE': 'UTC',
}


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TEST_CONFIG)

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        db.session.rollback()
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def client(app, db_session):
    """Create test client."""
    return app.test_client()


def make_user(db_session, name: str, email: str, role: str) -> User:
    user = User(name=name, email=email, password_hash=hash_password(TEST_PASSWORD), role=role)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin_user(db_session):
    return make_user(db_session, "Admin", "admin@cafe.test", "admin")


@pytest.fixture(scope='function')
def cashier_user(db_session):
    return make_user(db_session, "Sara", "sara@cafe.test", "cashier")


def get_auth_token(client, email: str, password: str = TEST_PASSWORD) -> str:
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


@pytest.fixture(scope='function')
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, admin_user.email))


@pytest.fixture(scope='function')
def cashier_headers(client, cashier_user):
    return auth_headers(get_auth_token(client, cashier_user.email))


def make_item(db_session, name: str, quantity, min_quantity=0) -> InventoryItem:
    item = InventoryItem(name=name, quantity=Decimal(str(quantity)), min_quantity=Decimal(str(min_quantity)))
    db_session.add(item)
    db_session.commit()
    return item


def make_product(db_session, category: Category, name: str, price, recipe: dict | None = None) -> Product:
    """recipe maps InventoryItem -> quantity per order."""
    product = Product(category_id=category.id, name=name, price_minor=to_minor_units(price))
    db_session.add(product)
    db_session.flush()
    for item, per_order in (recipe or {}).items():
        db_session.add(RecipeLink(
            product_id=product.id,
            inventory_item_id=item.id,
            quantity_per_order=Decimal(str(per_order)),
        ))
    db_session.commit()
    return product


def stock_of(item_id: int) -> Decimal:
    """Committed-or-pending stock straight from the database, bypassing the identity map."""
    return db.session.execute(
        select(InventoryItem.quantity).where(InventoryItem.id == item_id)
    ).scalar_one()


@pytest.fixture(scope='function')
def drinks(db_session):
    category = Category(name="Drinks")
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture(scope='function')
def cup(db_session):
    return make_item(db_session, "Cup", 10, min_quantity=2)


@pytest.fixture(scope='function')
def milk(db_session):
    return make_item(db_session, "Milk", 1000, min_quantity=100)


@pytest.fixture(scope='function')
def latte(db_session, drinks, cup, milk):
    """1.500 each; uses one cup and 200 milk."""
    return make_product(db_session, drinks, "Latte", "1.500", {cup: 1, milk: 200})


@pytest.fixture(scope='function')
def cookie(db_session, drinks):
    """0.750 each; no recipe, so never constrained by stock."""
    return make_product(db_session, drinks, "Cookie", "0.750")


@pytest.fixture(scope='function')
def table_one(db_session):
    table = DiningTable(name="Table 1", sort_order=1)
    db_session.add(table)
    db_session.commit()
    return table


@pytest.fixture(scope='function')
def coordinator(app, db_session):
    return OrderCoordinator(
        db_session,
        tax_rate_percent=5,
        order_number_prefix="ORD",
        timezone_name="UTC",
    )
