"""Turn a user's cart into an order.

Order, order lines, stock decrements and emptying the cart are one
transaction: either all of it commits or the cart is left exactly as it was.
"""
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from . import cart as cart_engine
from . import config, models, schemas
from .errors import Conflict, EmptyCart, Forbidden, InsufficientStock, InternalError, MarketplaceError, NotFound

log = logging.getLogger(__name__)


def _take_stock(db: Session, product: models.Product, quantity: int) -> None:
    if not config.is_strict_stock() or product.inventory is None:
        return
    # decrement in the database so two checkouts of one product cannot both pass
    taken = (
        db.query(models.Product)
        .filter(models.Product.id == product.id, models.Product.inventory >= quantity)
        .update({models.Product.inventory: models.Product.inventory - quantity}, synchronize_session="fetch")
    )
    if not taken:
        db.refresh(product, attribute_names=["inventory"])
        raise InsufficientStock(product.id, quantity, product.inventory)


def _materialize_line(db: Session, order: models.Order, item: models.CartItem) -> models.OrderItem:
    product = item.product
    _take_stock(db, product, item.quantity)
    line = models.OrderItem(
        order=order,
        product_id=product.id,
        vendor_id=product.vendor_id,
        product_name=product.name,
        quantity=item.quantity,
        price=item.price,
    )
    db.add(line)
    return line


def create_order(db: Session, user_id: int, shipping_address: schemas.ShippingAddress, payment_method: str) -> models.Order:
    cart = cart_engine.find_cart(db, user_id)
    if cart is None or not cart.items:
        raise EmptyCart()

    items = list(cart.items)
    try:
        order = models.Order(
            user_id=user_id,
            total_amount=cart_engine.subtotal(items),
            status="pending",
            shipping_address=shipping_address.model_dump(),
            payment_method=payment_method,
        )
        db.add(order)
        for item in items:
            _materialize_line(db, order, item)
        cart_engine.clear(db, cart.id)
        # touching the cart row bumps its version; a concurrent checkout of
        # the same cart state fails its UPDATE with StaleDataError
        cart.checked_out_at = models.utcnow()
        db.commit()
    except MarketplaceError:
        db.rollback()
        raise
    except StaleDataError as e:
        db.rollback()
        raise Conflict("cart was checked out concurrently; reload and retry") from e
    except SQLAlchemyError as e:
        db.rollback()
        log.exception("order creation for user %s rolled back", user_id)
        raise InternalError("failed to create order") from e

    db.refresh(order)
    log.info("order %s created for user %s: %s lines, total %s", order.id, user_id, len(order.items), order.total_amount)
    return order


def list_orders_for_user(db: Session, user_id: int) -> list[models.Order]:
    return (
        db.query(models.Order)
        .filter(models.Order.user_id == user_id)
        .order_by(models.Order.created_at.desc(), models.Order.id.desc())
        .all()
    )


def get_order_for_user(db: Session, user_id: int, order_id: int) -> models.Order:
    order = db.get(models.Order, order_id)
    if not order:
        raise NotFound("order not found")
    if order.user_id != user_id:
        raise Forbidden("order belongs to another user")
    return order

