import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import auth, counters, models, schemas
from .errors import Conflict, Forbidden, NotFound, Unauthorized, ValidationError
from .utils import round_amount, sanitize_text, slugify

log = logging.getLogger(__name__)


def _commit_unique(db: Session, message: str) -> None:
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise Conflict(message) from e


# -------------------- Users --------------------

def create_user(db: Session, user: schemas.UserCreate, is_admin: bool = False) -> models.User:
    if get_user_by_username(db, user.username):
        raise Conflict("username already exists")
    if db.query(models.User).filter(models.User.email == user.email).first():
        raise Conflict("email already exists")
    db_user = models.User(
        username=user.username,
        email=user.email,
        password_hash=auth.hash_password(user.password),
        full_name=user.full_name,
        phone=user.phone,
        photo_url=user.photo_url,
        is_admin=is_admin,
    )
    db.add(db_user)
    _commit_unique(db, "username or email already exists")
    db.refresh(db_user)
    return db_user


def get_user(db: Session, user_id: int) -> models.User:
    user = db.get(models.User, user_id)
    if not user:
        raise NotFound("user not found")
    return user


def get_user_by_username(db: Session, username: str) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.username == username).first()


def update_user_profile(db: Session, user_id: int, data: schemas.UserUpdate) -> models.User:
    user = get_user(db, user_id)
    changes = data.model_dump(exclude_unset=True)
    # explicit null only clears the optional contact fields
    for field in ("full_name", "email"):
        if field in changes and changes[field] is None:
            del changes[field]
    for field, value in changes.items():
        setattr(user, field, value)
    _commit_unique(db, "email already exists")
    db.refresh(user)
    return user


def change_password(db: Session, identity: auth.Identity, data: schemas.PasswordChange) -> int:
    """Set a new password and revoke every other session of the user."""
    user = get_user(db, identity.user_id)
    if not auth.verify_password(data.current_password, user.password_hash):
        raise Unauthorized("current password is incorrect")
    user.password_hash = auth.hash_password(data.new_password)
    revoked = auth.revoke_other_sessions(db, user.id, identity.session_id)
    db.commit()
    return revoked


# -------------------- Vendors --------------------

def create_vendor(db: Session, user_id: int, data: schemas.VendorCreate) -> models.Vendor:
    user = get_user(db, user_id)
    if get_vendor_by_user(db, user_id) is not None:
        raise Conflict("user already has a vendor profile")
    if db.query(models.Vendor).filter(models.Vendor.store_name == data.store_name).first():
        raise Conflict("store name already taken")
    vendor = models.Vendor(
        user_id=user.id,
        store_name=data.store_name,
        description=sanitize_text(data.description) or "",
        contact_email=data.contact_email,
        contact_phone=data.contact_phone,
        logo_url=data.logo_url,
        banner_color=data.banner_color,
        application_status="pending",
        verified=False,
    )
    user.is_vendor = True
    db.add(vendor)
    _commit_unique(db, "vendor profile already exists")
    db.refresh(vendor)
    log.info("vendor application %s submitted by user %s", vendor.id, user_id)
    return vendor


def get_vendor(db: Session, vendor_id: int) -> models.Vendor:
    vendor = db.get(models.Vendor, vendor_id)
    if not vendor:
        raise NotFound("vendor not found")
    return vendor


def get_vendor_by_user(db: Session, user_id: int) -> Optional[models.Vendor]:
    return db.query(models.Vendor).filter(models.Vendor.user_id == user_id).first()


def list_vendors(db: Session) -> List[models.Vendor]:
    return db.query(models.Vendor).order_by(models.Vendor.id).all()


def list_featured_vendors(db: Session, limit: int = 6) -> List[models.Vendor]:
    return (
        db.query(models.Vendor)
        .filter(models.Vendor.product_count > 0, models.Vendor.verified.is_(True))
        .order_by(models.Vendor.rating.desc(), models.Vendor.id)
        .limit(limit)
        .all()
    )


def list_vendor_applications(db: Session, status: Optional[str] = None) -> List[models.Vendor]:
    q = db.query(models.Vendor)
    if status:
        q = q.filter(models.Vendor.application_status == status)
    return q.order_by(models.Vendor.id).all()


def update_vendor_application_status(db: Session, vendor_id: int, status: str, notes: Optional[str] = None) -> models.Vendor:
    if status not in models.APPLICATION_STATUSES:
        raise ValidationError.for_field("status", f"status must be one of {', '.join(models.APPLICATION_STATUSES)}")
    vendor = get_vendor(db, vendor_id)
    vendor.application_status = status
    vendor.verified = status == "approved"
    if notes is not None:
        vendor.application_notes = sanitize_text(notes)
    db.commit()
    db.refresh(vendor)
    log.info("vendor %s application marked %s", vendor_id, status)
    return vendor


# -------------------- Categories --------------------

def create_category(db: Session, data: schemas.CategoryCreate) -> models.Category:
    fields = data.model_dump()
    fields["slug"] = data.slug or slugify(data.name)
    if not fields["slug"]:
        raise ValidationError.for_field("slug", "slug cannot be derived from name")
    category = models.Category(**fields, product_count=0)
    db.add(category)
    _commit_unique(db, "category name or slug already exists")
    db.refresh(category)
    return category


def list_categories(db: Session) -> List[models.Category]:
    return db.query(models.Category).order_by(models.Category.id).all()


def get_category_by_slug(db: Session, slug: str) -> models.Category:
    category = db.query(models.Category).filter(models.Category.slug == slug).first()
    if not category:
        raise NotFound("category not found")
    return category


def _require_category(db: Session, category_id: int) -> models.Category:
    category = db.get(models.Category, category_id)
    if not category:
        raise NotFound("category not found")
    return category


# -------------------- Products --------------------

def get_product(db: Session, product_id: int) -> models.Product:
    product = db.get(models.Product, product_id)
    if not product:
        raise NotFound("product not found")
    return product


def _owned_product(db: Session, vendor_id: int, product_id: int) -> models.Product:
    product = get_product(db, product_id)
    if product.vendor_id != vendor_id:
        raise Forbidden("product belongs to another vendor")
    return product


def list_products(
    db: Session,
    category_slug: Optional[str] = None,
    vendor_id: Optional[int] = None,
    new: bool = False,
    trending: bool = False,
    limit: Optional[int] = None,
) -> List[models.Product]:
    q = db.query(models.Product)
    if category_slug:
        q = q.filter(models.Product.category_id == get_category_by_slug(db, category_slug).id)
    if vendor_id is not None:
        q = q.filter(models.Product.vendor_id == vendor_id)
    if new:
        q = q.filter(models.Product.is_new.is_(True))
    if trending:
        q = q.filter(models.Product.is_trending.is_(True))
    q = q.order_by(models.Product.id)
    if limit:
        q = q.limit(limit)
    return q.all()


def create_product(db: Session, vendor_id: int, data: schemas.ProductCreate) -> models.Product:
    get_vendor(db, vendor_id)
    _require_category(db, data.category_id)
    fields = data.model_dump()
    fields["price"] = round_amount(data.price)
    if data.compare_price is not None:
        fields["compare_price"] = round_amount(data.compare_price)
    fields["description"] = sanitize_text(data.description) or ""
    product = models.Product(vendor_id=vendor_id, **fields)
    db.add(product)
    counters.on_product_created(db, vendor_id, data.category_id)
    db.commit()
    db.refresh(product)
    return product


def update_product(db: Session, vendor_id: int, product_id: int, data: schemas.ProductUpdate) -> models.Product:
    product = _owned_product(db, vendor_id, product_id)
    changes = data.model_dump(exclude_unset=True)
    # explicit null is only meaningful for the nullable columns
    for field in ("category_id", "name", "description", "price", "image_url", "is_new", "is_trending"):
        if field in changes and changes[field] is None:
            del changes[field]

    old_category_id = product.category_id
    if "category_id" in changes:
        _require_category(db, changes["category_id"])
    for money in ("price", "compare_price"):
        if changes.get(money) is not None:
            changes[money] = round_amount(changes[money])
    if "description" in changes:
        changes["description"] = sanitize_text(changes["description"]) or ""

    for field, value in changes.items():
        setattr(product, field, value)
    counters.on_product_category_changed(db, old_category_id, product.category_id)
    db.commit()
    db.refresh(product)
    return product


def delete_product(db: Session, vendor_id: int, product_id: int) -> None:
    product = _owned_product(db, vendor_id, product_id)
    counters.on_product_deleted(db, product.vendor_id, product.category_id)
    db.delete(product)
    db.commit()
