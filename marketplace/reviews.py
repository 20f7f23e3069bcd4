import logging
from typing import Optional

from sqlalchemy.orm import Session

from . import counters, models
from .errors import Forbidden, NotFound, ValidationError
from .utils import sanitize_text

log = logging.getLogger(__name__)


def submit_review(
    db: Session,
    user_id: int,
    product_id: int,
    vendor_id: int,
    rating,
    title: Optional[str] = None,
    comment: Optional[str] = None,
    order_id: Optional[int] = None,
) -> models.Review:
    """Publish a review and refresh the product's and vendor's averages.

    The averages are a full rescan of published reviews, done in the same
    transaction as the insert so concurrent writers cannot lose an update.
    """
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        raise ValidationError.for_field("rating", "rating must be an integer between 1 and 5")

    product = db.get(models.Product, product_id)
    if product is None:
        raise NotFound("product not found")
    if db.get(models.Vendor, vendor_id) is None:
        raise NotFound("vendor not found")
    if product.vendor_id != vendor_id:
        raise ValidationError.for_field("vendor_id", "product is not sold by this vendor")
    if order_id is not None:
        order = db.get(models.Order, order_id)
        if order is None:
            raise NotFound("order not found")
        if order.user_id != user_id:
            raise Forbidden("order belongs to another user")

    review = models.Review(
        user_id=user_id,
        product_id=product_id,
        vendor_id=vendor_id,
        order_id=order_id,
        rating=rating,
        title=sanitize_text(title),
        comment=sanitize_text(comment),
        status="published",
    )
    db.add(review)
    db.flush()
    counters.recompute_product_rating(db, product_id)
    counters.recompute_vendor_rating(db, vendor_id)
    db.commit()
    db.refresh(review)
    log.info("review %s (%s stars) on product %s", review.id, rating, product_id)
    return review


def _published(db: Session):
    return db.query(models.Review).filter(models.Review.status == "published")


def list_for_product(db: Session, product_id: int) -> list[models.Review]:
    if db.get(models.Product, product_id) is None:
        raise NotFound("product not found")
    return _published(db).filter(models.Review.product_id == product_id).order_by(models.Review.id.desc()).all()


def list_for_vendor(db: Session, vendor_id: int) -> list[models.Review]:
    if db.get(models.Vendor, vendor_id) is None:
        raise NotFound("vendor not found")
    return _published(db).filter(models.Review.vendor_id == vendor_id).order_by(models.Review.id.desc()).all()


def list_for_user(db: Session, user_id: int) -> list[models.Review]:
    return db.query(models.Review).filter(models.Review.user_id == user_id).order_by(models.Review.id.desc()).all()
