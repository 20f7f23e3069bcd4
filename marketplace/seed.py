"""
Seed the default category taxonomy and, optionally, a demo storefront.

Usage:
  python -m marketplace.seed [--db sqlite:///./marketplace.db] [--demo] [--admin USERNAME EMAIL PASSWORD]
"""
import argparse
import logging
from decimal import Decimal

from sqlalchemy.orm import Session, sessionmaker

from . import crud, models, schemas
from .config import setup_logging
from .db import SessionLocal, init_db, make_engine

log = logging.getLogger(__name__)

DEFAULT_CATEGORIES = [
    ("Fashion", "fashion", "Clothes, shoes, and accessories", "shirt", "#4F46E5"),
    ("Electronics", "electronics", "Gadgets, computers, and accessories", "computer", "#2563EB"),
    ("Home", "home", "Furniture, decor, and kitchen items", "home", "#059669"),
    ("Books", "books", "Fiction, non-fiction, and educational", "book-open", "#7C3AED"),
    ("Health", "health", "Wellness, beauty, and personal care", "heart-pulse", "#DC2626"),
    ("Toys", "toys", "Games, toys, and entertainment", "gamepad-2", "#F59E0B"),
]

DEMO_PRODUCTS = [
    ("electronics", "Wireless Bluetooth Headphones", "129.99", "159.99", 25, True, True),
    ("electronics", "Smart Watch Series 5", "249.99", "299.99", 12, True, False),
    ("fashion", "Premium Leather Jacket", "199.99", "249.99", 15, False, True),
    ("home", "Modern Coffee Table", "149.99", "199.99", 7, False, False),
]


def seed_categories(db: Session) -> int:
    if db.query(models.Category).count():
        return 0
    for name, slug, description, icon, color in DEFAULT_CATEGORIES:
        crud.create_category(
            db,
            schemas.CategoryCreate(name=name, slug=slug, description=description, icon_name=icon, icon_color=color),
        )
    log.info("created %d categories", len(DEFAULT_CATEGORIES))
    return len(DEFAULT_CATEGORIES)


def seed_demo(db: Session) -> models.Vendor:
    """Create an approved demo vendor with a few products; idempotent."""
    seed_categories(db)
    user = crud.get_user_by_username(db, "demo_vendor")
    if user is None:
        user = crud.create_user(
            db,
            schemas.UserCreate(
                username="demo_vendor", email="vendor@example.com", password="password", full_name="Demo Vendor"
            ),
        )
    vendor = crud.get_vendor_by_user(db, user.id)
    if vendor is not None:
        return vendor
    vendor = crud.create_vendor(
        db,
        user.id,
        schemas.VendorCreate(
            store_name="TechGadgets",
            description="The latest electronics and gadgets at affordable prices",
            contact_email="contact@techgadgets.com",
            banner_color="from-blue-600 to-blue-400",
        ),
    )
    vendor = crud.update_vendor_application_status(db, vendor.id, "approved", "demo data")
    for slug, name, price, compare, inventory, is_new, trending in DEMO_PRODUCTS:
        category = crud.get_category_by_slug(db, slug)
        crud.create_product(
            db,
            vendor.id,
            schemas.ProductCreate(
                category_id=category.id,
                name=name,
                price=Decimal(price),
                compare_price=Decimal(compare),
                inventory=inventory,
                is_new=is_new,
                is_trending=trending,
            ),
        )
    log.info("demo vendor %s seeded with %d products", vendor.id, len(DEMO_PRODUCTS))
    return vendor


def create_admin(db: Session, username: str, email: str, password: str) -> models.User:
    user = crud.get_user_by_username(db, username)
    if user is None:
        return crud.create_user(
            db,
            schemas.UserCreate(username=username, email=email, password=password, full_name=username),
            is_admin=True,
        )
    user.is_admin = True
    db.commit()
    return user


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--db", default=None, help="Database URL (defaults to DATABASE_URL)")
    parser.add_argument("--demo", action="store_true", help="Also create a demo vendor and products")
    parser.add_argument("--admin", nargs=3, metavar=("USERNAME", "EMAIL", "PASSWORD"), help="Create or promote an admin")
    args = parser.parse_args()
    setup_logging()

    if args.db:
        engine = make_engine(args.db)
        factory = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
        init_db(engine)
    else:
        factory = SessionLocal
        init_db()

    with factory() as db:
        seed_categories(db)
        if args.demo:
            seed_demo(db)
        if args.admin:
            create_admin(db, *args.admin)


if __name__ == "__main__":
    main()
