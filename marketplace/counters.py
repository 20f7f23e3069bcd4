"""Denormalized counters kept next to the entities they describe.

``product_count`` on vendors and categories, and ``rating``/``review_count``
on products and vendors, are never computed on read. Every writer calls into
this module inside its own transaction; nothing here commits.

Counters are best-effort: a vendor or category that has disappeared is
logged and skipped. The product and review rows stay the source of truth, and
``reconcile_product_counts``/``reconcile_ratings`` rebuild the counters from
them if they ever drift.
"""
import logging
import math

from sqlalchemy import func
from sqlalchemy.orm import Session

from . import models

log = logging.getLogger(__name__)

RATING_EPSILON = 1e-9


def _bump(db: Session, model, pk: int, delta: int) -> None:
    row = db.get(model, pk)
    if row is None:
        log.warning("%s %s missing; product_count not adjusted by %+d", model.__tablename__, pk, delta)
        return
    row.product_count = max(0, (row.product_count or 0) + delta)


def on_product_created(db: Session, vendor_id: int, category_id: int) -> None:
    _bump(db, models.Vendor, vendor_id, +1)
    _bump(db, models.Category, category_id, +1)


def on_product_deleted(db: Session, vendor_id: int, category_id: int) -> None:
    _bump(db, models.Vendor, vendor_id, -1)
    _bump(db, models.Category, category_id, -1)


def on_product_category_changed(db: Session, old_category_id: int, new_category_id: int) -> None:
    if old_category_id == new_category_id:
        return
    _bump(db, models.Category, old_category_id, -1)
    _bump(db, models.Category, new_category_id, +1)


def _published_stats(db: Session, column, value) -> tuple[float, int]:
    avg, count = (
        db.query(func.avg(models.Review.rating), func.count(models.Review.id))
        .filter(column == value, models.Review.status == "published")
        .one()
    )
    return (float(avg) if avg is not None else 0.0), int(count)


def recompute_product_rating(db: Session, product_id: int) -> None:
    product = db.get(models.Product, product_id)
    if product is None:
        log.warning("product %s missing; rating not recomputed", product_id)
        return
    product.rating, product.review_count = _published_stats(db, models.Review.product_id, product_id)


def recompute_vendor_rating(db: Session, vendor_id: int) -> None:
    vendor = db.get(models.Vendor, vendor_id)
    if vendor is None:
        log.warning("vendor %s missing; rating not recomputed", vendor_id)
        return
    vendor.rating, vendor.review_count = _published_stats(db, models.Review.vendor_id, vendor_id)


def _true_counts(db: Session, fk_column) -> dict[int, int]:
    rows = db.query(fk_column, func.count(models.Product.id)).group_by(fk_column).all()
    return {pk: count for pk, count in rows}


def reconcile_product_counts(db: Session) -> int:
    """Recount products per vendor and category; return how many rows changed."""
    db.flush()
    fixed = 0
    for model, fk in ((models.Vendor, models.Product.vendor_id), (models.Category, models.Product.category_id)):
        counts = _true_counts(db, fk)
        for row in db.query(model).all():
            expected = counts.get(row.id, 0)
            if row.product_count != expected:
                log.info("%s %s product_count %s -> %s", model.__tablename__, row.id, row.product_count, expected)
                row.product_count = expected
                fixed += 1
    return fixed


def reconcile_ratings(db: Session) -> int:
    """Recompute rating/review_count for every product and vendor."""
    db.flush()
    fixed = 0
    for model, column in ((models.Product, models.Review.product_id), (models.Vendor, models.Review.vendor_id)):
        for row in db.query(model).all():
            rating, count = _published_stats(db, column, row.id)
            if row.review_count != count or not math.isclose(row.rating or 0.0, rating, abs_tol=RATING_EPSILON):
                log.info("%s %s rating %s/%s -> %s/%s", model.__tablename__, row.id, row.rating, row.review_count, rating, count)
                row.rating, row.review_count = rating, count
                fixed += 1
    return fixed
