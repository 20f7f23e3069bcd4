"""Cart engine: (product, quantity, snapshot price) lines per user.

A line's price is copied from the product when the line is first created and
is never refreshed from the live product afterwards; adding the same product
again only raises the quantity.
"""
import logging
from decimal import Decimal
from typing import NamedTuple, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import config, models
from .errors import Conflict, InsufficientStock, NotFound, ValidationError
from .utils import round_amount

log = logging.getLogger(__name__)


class CartView(NamedTuple):
    cart: Optional[models.Cart]
    items: list

    @property
    def subtotal(self) -> Decimal:
        return subtotal(self.items)

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)


def subtotal(items) -> Decimal:
    return round_amount(sum((Decimal(i.price) * i.quantity for i in items), Decimal("0")))


def check_stock(product: models.Product, quantity: int) -> None:
    if not config.is_strict_stock() or product.inventory is None:
        return
    if quantity > product.inventory:
        log.info("stock check failed for product %s: %s > %s", product.id, quantity, product.inventory)
        raise InsufficientStock(product.id, quantity, product.inventory)


def find_cart(db: Session, user_id: int) -> Optional[models.Cart]:
    return db.query(models.Cart).filter(models.Cart.user_id == user_id).first()


def get_or_create_cart(db: Session, user_id: int) -> models.Cart:
    cart = find_cart(db, user_id)
    if cart is None:
        cart = models.Cart(user_id=user_id)
        db.add(cart)
        db.flush()
    return cart


def get_cart(db: Session, user_id: int) -> CartView:
    cart = find_cart(db, user_id)
    if cart is None:
        return CartView(None, [])
    return CartView(cart, list(cart.items))


def add_item(db: Session, user_id: int, product_id: int, quantity: int = 1) -> models.CartItem:
    if quantity < 1:
        raise ValidationError.for_field("quantity", "quantity must be at least 1")
    product = db.get(models.Product, product_id)
    if product is None:
        raise NotFound("product not found")

    try:
        cart = get_or_create_cart(db, user_id)
        item = (
            db.query(models.CartItem)
            .filter(models.CartItem.cart_id == cart.id, models.CartItem.product_id == product_id)
            .first()
        )
        check_stock(product, quantity + (item.quantity if item is not None else 0))
        if item is not None:
            # merge keeps the first-seen snapshot price
            item.quantity = item.quantity + quantity
        else:
            item = models.CartItem(cart=cart, product=product, quantity=quantity, price=round_amount(product.price))
            db.add(item)
        db.commit()
    except InsufficientStock:
        # drop the lazily created cart along with the rejected line
        db.rollback()
        raise
    except IntegrityError as e:
        # another request created the same cart or line first
        db.rollback()
        log.warning("concurrent add of product %s for user %s", product_id, user_id)
        raise Conflict("cart changed concurrently; reload and retry") from e
    db.refresh(item)
    return item


def _owned_item(db: Session, user_id: int, item_id: int) -> models.CartItem:
    item = db.get(models.CartItem, item_id)
    # another user's line is reported as missing rather than forbidden
    if item is None or item.cart.user_id != user_id:
        raise NotFound("cart item not found")
    return item


def update_item_quantity(db: Session, user_id: int, item_id: int, quantity: int) -> Optional[models.CartItem]:
    """Set a line's quantity; zero or below removes the line and returns None."""
    item = _owned_item(db, user_id, item_id)
    if quantity <= 0:
        db.delete(item)
        db.commit()
        return None
    check_stock(item.product, quantity)
    item.quantity = quantity
    db.commit()
    db.refresh(item)
    return item


def remove_item(db: Session, user_id: int, item_id: int) -> None:
    item = _owned_item(db, user_id, item_id)
    db.delete(item)
    db.commit()


def clear(db: Session, cart_id: int) -> None:
    """Delete every line of a cart without committing."""
    cart = db.get(models.Cart, cart_id)
    if cart is None:
        raise NotFound("cart not found")
    cart.items.clear()


def clear_for_user(db: Session, user_id: int) -> CartView:
    cart = find_cart(db, user_id)
    if cart is not None:
        clear(db, cart.id)
        db.commit()
    return get_cart(db, user_id)
