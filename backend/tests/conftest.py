"""
Pytest fixtures for PharmaPOS backend tests.

Provides an in-memory database, seeded users/warehouses/products and
authenticated request headers.
"""

from decimal import Decimal

import pytest
from pharmapos import create_app
from pharmapos.extensions import db
from pharmapos.models import Client, Product, User, Warehouse
from pharmapos.models.auth import ROLE_ADMIN, ROLE_USER
from pharmapos.services import inventory_service, session_service
from pharmapos.services.auth_service import hash_password


PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'TRANSACTION_RETRY_BACKOFF': 0,
        'DEFAULT_WAREHOUSE_ID': None,
        'TAX_RATE': '0.16',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='session')
def password_hash(app):
    """bcrypt is slow on purpose; hash the shared test password once."""
    return hash_password(PASSWORD)


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


def _make_user(db_session, password_hash, username, role):
    user = User(
        username=username,
        email=f"{username}@pharmapos.test",
        password_hash=password_hash,
        role=role,
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin_user(db_session, password_hash):
    return _make_user(db_session, password_hash, "admin", ROLE_ADMIN)


@pytest.fixture(scope='function')
def cashier(db_session, password_hash):
    return _make_user(db_session, password_hash, "cajero", ROLE_USER)


@pytest.fixture(scope='function')
def warehouse(db_session):
    """Primary warehouse; sales default to it."""
    wh = Warehouse(name="Almacen Central", location="Centro", is_primary=True)
    db_session.add(wh)
    db_session.commit()
    return wh


@pytest.fixture(scope='function')
def branch_warehouse(db_session):
    wh = Warehouse(name="Sucursal Norte", location="Norte", is_primary=False)
    db_session.add(wh)
    db_session.commit()
    return wh


@pytest.fixture(scope='function')
def make_product(db_session):
    def _make(name, price, is_active=True):
        product = Product(name=name, price=Decimal(price), is_active=is_active)
        db_session.add(product)
        db_session.commit()
        return product
    return _make


@pytest.fixture(scope='function')
def paracetamol(make_product):
    return make_product("Paracetamol 500mg", "12.50")


@pytest.fixture(scope='function')
def ibuprofen(make_product):
    return make_product("Ibuprofeno 400mg", "25.99")


@pytest.fixture(scope='function')
def walk_in_client(db_session):
    c = Client(first_name="Ana", last_name="Lopez", email="ana@example.com")
    db_session.add(c)
    db_session.commit()
    return c


@pytest.fixture(scope='function')
def stock(admin_user):
    """Receive stock through the ledger so movements replay to the stored quantity."""
    def _stock(product, warehouse, quantity):
        return inventory_service.apply_adjustment(
            product_id=product.id,
            warehouse_id=warehouse.id,
            delta=quantity,
            actor_user_id=admin_user.id,
            reason="Seed inventory",
        )
    return _stock


@pytest.fixture(scope='function')
def stocked(paracetamol, ibuprofen, warehouse, stock):
    """Paracetamol x10 and ibuprofen x5 in the primary warehouse."""
    stock(paracetamol, warehouse, 10)
    stock(ibuprofen, warehouse, 5)
    return {"paracetamol": paracetamol, "ibuprofen": ibuprofen, "warehouse": warehouse}


def _headers_for(user):
    _, token = session_service.create_session(user.id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope='function')
def admin_headers(admin_user):
    return _headers_for(admin_user)


@pytest.fixture(scope='function')
def cashier_headers(cashier):
    return _headers_for(cashier)
