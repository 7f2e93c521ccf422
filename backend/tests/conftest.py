"""
Pytest fixtures for inventory backend tests.

Provides an in-memory database, a temporary upload folder, users with
session tokens, and a product factory.
"""

import os
import shutil

import pytest
from sqlalchemy import select

from inventory_api import create_app
from inventory_api.extensions import db
from inventory_api.models import Product, User
from inventory_api.services import session_service
from inventory_api.services.auth_service import hash_password


TEST_PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def upload_root(tmp_path_factory):
    return str(tmp_path_factory.mktemp("uploads"))


@pytest.fixture(scope='session')
def app(upload_root):
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'UPLOAD_FOLDER': upload_root,
        'PUBLIC_BASE_URL': 'http://testserver',
        'PO_SITE_TYPE': 'S',
        'BUSINESS_TIMEZONE': 'UTC',
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
def db_session(app, upload_root):
    """Fresh tables and an empty upload folder for each test."""
    with app.app_context():
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        for entry in os.listdir(upload_root):
            shutil.rmtree(os.path.join(upload_root, entry), ignore_errors=True)

        yield db.session

        db.session.rollback()


@pytest.fixture(scope='session')
def password_hash():
    # bcrypt at cost 12 is slow; hash once per run
    return hash_password(TEST_PASSWORD)


def _make_user(username: str, role: str, password_hash: str) -> User:
    user = User(
        username=username,
        email=f"{username}@example.com",
        name=username.title(),
        role=role,
        password_hash=password_hash,
    )
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture(scope='function')
def admin_user(db_session, password_hash):
    return _make_user("admin", "admin", password_hash)


@pytest.fixture(scope='function')
def manager_user(db_session, password_hash):
    return _make_user("manager", "manager", password_hash)


@pytest.fixture(scope='function')
def staff_user(db_session, password_hash):
    return _make_user("clerk", "staff", password_hash)


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def token_for(user: User) -> str:
    _, token = session_service.create_session(user)
    return token


@pytest.fixture(scope='function')
def admin_headers(admin_user):
    return auth_headers(token_for(admin_user))


@pytest.fixture(scope='function')
def manager_headers(manager_user):
    return auth_headers(token_for(manager_user))


@pytest.fixture(scope='function')
def staff_headers(staff_user):
    return auth_headers(token_for(staff_user))


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: make_product("SKU-1", stock=50) -> Product."""
    counter = {"n": 0}

    def _make(sku: str | None = None, *, name: str | None = None, stock: int = 0, min_stock: int = 0) -> Product:
        counter["n"] += 1
        product = Product(
            sku=sku or f"SKU-{counter['n']:03d}",
            name=name or f"Product {counter['n']}",
            unit_type="pcs",
            current_stock=stock,
            min_stock_level=min_stock,
            purchase_rate_cents=100,
            sales_rate_cents=150,
        )
        db.session.add(product)
        db.session.commit()
        return product

    return _make


def stock_of(product_id: int) -> int:
    """Current stock straight from the database (bypasses the identity map)."""
    return db.session.execute(
        select(Product.current_stock).where(Product.id == product_id)
    ).scalar_one()
