import os

# keep the app's own engine off the filesystem during tests
os.environ.setdefault("DATABASE_URL", "sqlite://")

from decimal import Decimal
from typing import Generator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from marketplace import config, crud, schemas
from marketplace.db import Base, enable_sqlite_foreign_keys, init_db
from marketplace.main import app, get_db

PASSWORD = "secret123"


@pytest.fixture(scope="function")
def db_session() -> Generator:
    # Use in-memory SQLite with a single connection
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    enable_sqlite_foreign_keys(engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
    init_db(engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db_session):
    # Override dependency to use the same session
    def override_get_db():
        try:
            yield db_session
        finally:
            pass
    app.dependency_overrides[get_db] = override_get_db
    from fastapi.testclient import TestClient
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def strict_stock():
    config.set_strict_stock(True)
    yield
    config.set_strict_stock(True)


@pytest.fixture
def make_user(db_session):
    def _make(username: str, is_admin: bool = False):
        return crud.create_user(
            db_session,
            schemas.UserCreate(
                username=username,
                email=f"{username}@example.com",
                password=PASSWORD,
                full_name=username.title(),
            ),
            is_admin=is_admin,
        )
    return _make


@pytest.fixture
def categories(db_session):
    return [
        crud.create_category(db_session, schemas.CategoryCreate(name="Electronics", slug="electronics")),
        crud.create_category(db_session, schemas.CategoryCreate(name="Home", slug="home")),
    ]


@pytest.fixture
def vendor(db_session, make_user):
    owner = make_user("seller")
    v = crud.create_vendor(
        db_session,
        owner.id,
        schemas.VendorCreate(store_name="TechGadgets", description="Gadgets", contact_email="shop@example.com"),
    )
    return crud.update_vendor_application_status(db_session, v.id, "approved")


@pytest.fixture
def make_product(db_session, vendor, categories):
    def _make(price="10.00", inventory=None, category=None, name="Widget"):
        return crud.create_product(
            db_session,
            vendor.id,
            schemas.ProductCreate(
                category_id=(category or categories[0]).id,
                name=name,
                price=Decimal(price),
                inventory=inventory,
            ),
        )
    return _make


@pytest.fixture
def login(client):
    def _login(username: str, password: str = PASSWORD) -> dict:
        r = client.post("/auth/login", json={"username": username, "password": password})
        assert r.status_code == 200, r.text
        return {"Authorization": f"Bearer {r.json()['access_token']}"}
    return _login


@pytest.fixture
def shipping():
    return schemas.ShippingAddress(
        full_name="Alice Buyer",
        address_line1="12 Market Street",
        city="Nairobi",
        state="Nairobi",
        postal_code="00100",
        country="Kenya",
        phone="+254700000000",
    )


@pytest.fixture
def file_shop(tmp_path):
    """Independent sessions on one file-backed database holding a buyer and one product.

    Yields (open_session, buyer_id, product_id); the product has 5 in stock.
    """
    engine = create_engine(f"sqlite:///{tmp_path / 'shop.db'}", future=True)
    enable_sqlite_foreign_keys(engine)
    init_db(engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
    sessions = []

    def open_session():
        s = factory()
        sessions.append(s)
        return s

    db = open_session()
    buyer = crud.create_user(
        db, schemas.UserCreate(username="alice", email="alice@example.com", password=PASSWORD, full_name="Alice")
    )
    owner = crud.create_user(
        db, schemas.UserCreate(username="seller", email="seller@example.com", password=PASSWORD, full_name="Seller")
    )
    shop = crud.create_vendor(
        db, owner.id, schemas.VendorCreate(store_name="TechGadgets", description="Gadgets", contact_email="shop@example.com")
    )
    category = crud.create_category(db, schemas.CategoryCreate(name="Electronics", slug="electronics"))
    product = crud.create_product(
        db, shop.id, schemas.ProductCreate(category_id=category.id, name="Widget", price=Decimal("10.00"), inventory=5)
    )
    ids = (buyer.id, product.id)
    db.close()

    yield (open_session,) + ids
    for s in sessions:
        s.close()
    engine.dispose()
