from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, Header, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from . import auth, config, counters, crud, models, orders, reviews, schemas
from . import cart as cart_engine
from .db import SessionLocal, init_db
from .errors import Forbidden, MarketplaceError, ValidationError

config.setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(title="Marketplace API", lifespan=lifespan)


@app.exception_handler(MarketplaceError)
async def marketplace_error_handler(request: Request, exc: MarketplaceError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(p) for p in e["loc"] if p != "body"), "message": e["msg"]}
        for e in exc.errors()
    ]
    err = ValidationError("invalid data", errors=errors)
    return JSONResponse(status_code=err.status_code, content=err.to_dict())


# Dependency to get DB session per request

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def current_identity(
    authorization: Optional[str] = Header(default=None), db: Session = Depends(get_db)
) -> auth.Identity:
    return auth.resolve_identity(db, authorization)


def require_admin(identity: auth.Identity = Depends(current_identity)) -> auth.Identity:
    if not identity.is_admin:
        raise Forbidden("admin required")
    return identity


def current_vendor(identity: auth.Identity = Depends(current_identity), db: Session = Depends(get_db)) -> models.Vendor:
    vendor = crud.get_vendor_by_user(db, identity.user_id)
    if not vendor:
        raise Forbidden("user is not a vendor")
    return vendor


def cart_response(view: cart_engine.CartView) -> schemas.CartRead:
    return schemas.CartRead(
        cart_id=view.cart.id if view.cart else None,
        items=[schemas.CartItemRead.model_validate(item) for item in view.items],
        item_count=view.item_count,
        subtotal=view.subtotal,
    )


@app.get("/health")
async def health():
    return {"status": "ok"}


# -------------------- Auth --------------------

@app.post("/auth/register", response_model=schemas.UserRead, status_code=201)
async def register(user: schemas.UserCreate, db: Session = Depends(get_db)):
    return crud.create_user(db, user)


@app.post("/auth/login", response_model=schemas.Token)
async def login(payload: schemas.LoginRequest, db: Session = Depends(get_db)):
    token = auth.login(db, payload.username, payload.password)
    return schemas.Token(access_token=token)


@app.post("/auth/logout")
async def logout(identity: auth.Identity = Depends(current_identity), db: Session = Depends(get_db)):
    auth.logout(db, identity)
    return {"logged_out": True}


@app.get("/auth/me", response_model=schemas.UserRead)
async def me(identity: auth.Identity = Depends(current_identity), db: Session = Depends(get_db)):
    return crud.get_user(db, identity.user_id)


@app.put("/auth/me", response_model=schemas.UserRead)
async def update_me(
    payload: schemas.UserUpdate,
    identity: auth.Identity = Depends(current_identity),
    db: Session = Depends(get_db),
):
    return crud.update_user_profile(db, identity.user_id, payload)


@app.put("/auth/me/password")
async def change_password(
    payload: schemas.PasswordChange,
    identity: auth.Identity = Depends(current_identity),
    db: Session = Depends(get_db),
):
    revoked = crud.change_password(db, identity, payload)
    return {"revoked_sessions": revoked}


# -------------------- Categories --------------------

@app.get("/categories", response_model=List[schemas.CategoryRead])
async def list_categories(db: Session = Depends(get_db)):
    return crud.list_categories(db)


@app.get("/categories/{slug}", response_model=schemas.CategoryRead)
async def get_category(slug: str, db: Session = Depends(get_db)):
    return crud.get_category_by_slug(db, slug)


@app.post("/categories", response_model=schemas.CategoryRead, status_code=201)
async def create_category(
    payload: schemas.CategoryCreate, _: auth.Identity = Depends(require_admin), db: Session = Depends(get_db)
):
    return crud.create_category(db, payload)


# -------------------- Vendors --------------------

@app.get("/vendors", response_model=List[schemas.VendorRead])
async def list_vendors(db: Session = Depends(get_db)):
    return crud.list_vendors(db)


@app.get("/vendors/featured", response_model=List[schemas.VendorRead])
async def featured_vendors(limit: int = Query(6, ge=1, le=50), db: Session = Depends(get_db)):
    return crud.list_featured_vendors(db, limit)


@app.get("/vendors/me", response_model=schemas.VendorRead)
async def my_vendor(vendor: models.Vendor = Depends(current_vendor)):
    return vendor


@app.post("/vendors", response_model=schemas.VendorRead, status_code=201)
async def register_vendor(
    payload: schemas.VendorCreate,
    identity: auth.Identity = Depends(current_identity),
    db: Session = Depends(get_db),
):
    return crud.create_vendor(db, identity.user_id, payload)


@app.get("/vendors/{vendor_id}", response_model=schemas.VendorRead)
async def get_vendor(vendor_id: int, db: Session = Depends(get_db)):
    return crud.get_vendor(db, vendor_id)


@app.get("/vendors/{vendor_id}/reviews", response_model=List[schemas.ReviewRead])
async def vendor_reviews(vendor_id: int, db: Session = Depends(get_db)):
    return reviews.list_for_vendor(db, vendor_id)


# -------------------- Products --------------------

@app.get("/products", response_model=List[schemas.ProductRead])
async def list_products(
    category: Optional[str] = None,
    vendor: Optional[int] = None,
    new: bool = False,
    trending: bool = False,
    limit: Optional[int] = Query(None, ge=1, le=200),
    db: Session = Depends(get_db),
):
    return crud.list_products(db, category_slug=category, vendor_id=vendor, new=new, trending=trending, limit=limit)


@app.get("/products/{product_id}", response_model=schemas.ProductDetail)
async def get_product(product_id: int, db: Session = Depends(get_db)):
    product = crud.get_product(db, product_id)
    return schemas.ProductDetail(
        product=schemas.ProductRead.model_validate(product),
        vendor=schemas.VendorRead.model_validate(product.vendor) if product.vendor else None,
    )


@app.post("/products", response_model=schemas.ProductRead, status_code=201)
async def create_product(
    payload: schemas.ProductCreate, vendor: models.Vendor = Depends(current_vendor), db: Session = Depends(get_db)
):
    return crud.create_product(db, vendor.id, payload)


@app.put("/products/{product_id}", response_model=schemas.ProductRead)
async def update_product(
    product_id: int,
    payload: schemas.ProductUpdate,
    vendor: models.Vendor = Depends(current_vendor),
    db: Session = Depends(get_db),
):
    return crud.update_product(db, vendor.id, product_id, payload)


@app.delete("/products/{product_id}")
async def delete_product(product_id: int, vendor: models.Vendor = Depends(current_vendor), db: Session = Depends(get_db)):
    crud.delete_product(db, vendor.id, product_id)
    return {"deleted": product_id}


@app.get("/products/{product_id}/reviews", response_model=List[schemas.ReviewRead])
async def product_reviews(product_id: int, db: Session = Depends(get_db)):
    return reviews.list_for_product(db, product_id)


# -------------------- Cart --------------------

@app.get("/cart", response_model=schemas.CartRead)
async def get_cart(identity: auth.Identity = Depends(current_identity), db: Session = Depends(get_db)):
    return cart_response(cart_engine.get_cart(db, identity.user_id))


@app.post("/cart/items", response_model=schemas.CartRead, status_code=201)
async def add_cart_item(
    payload: schemas.CartItemAdd, identity: auth.Identity = Depends(current_identity), db: Session = Depends(get_db)
):
    cart_engine.add_item(db, identity.user_id, payload.product_id, payload.quantity)
    return cart_response(cart_engine.get_cart(db, identity.user_id))


@app.put("/cart/items/{item_id}", response_model=schemas.CartRead)
async def update_cart_item(
    item_id: int,
    payload: schemas.CartItemUpdate,
    identity: auth.Identity = Depends(current_identity),
    db: Session = Depends(get_db),
):
    cart_engine.update_item_quantity(db, identity.user_id, item_id, payload.quantity)
    return cart_response(cart_engine.get_cart(db, identity.user_id))


@app.delete("/cart/items/{item_id}", response_model=schemas.CartRead)
async def remove_cart_item(item_id: int, identity: auth.Identity = Depends(current_identity), db: Session = Depends(get_db)):
    cart_engine.remove_item(db, identity.user_id, item_id)
    return cart_response(cart_engine.get_cart(db, identity.user_id))


@app.delete("/cart", response_model=schemas.CartRead)
async def clear_cart(identity: auth.Identity = Depends(current_identity), db: Session = Depends(get_db)):
    return cart_response(cart_engine.clear_for_user(db, identity.user_id))


# -------------------- Orders --------------------

@app.post("/orders", response_model=schemas.OrderRead, status_code=201)
async def create_order(
    payload: schemas.OrderCreate, identity: auth.Identity = Depends(current_identity), db: Session = Depends(get_db)
):
    return orders.create_order(db, identity.user_id, payload.shipping_address, payload.payment_method)


@app.get("/orders", response_model=List[schemas.OrderRead])
async def list_orders(identity: auth.Identity = Depends(current_identity), db: Session = Depends(get_db)):
    return orders.list_orders_for_user(db, identity.user_id)


@app.get("/orders/{order_id}", response_model=schemas.OrderRead)
async def get_order(order_id: int, identity: auth.Identity = Depends(current_identity), db: Session = Depends(get_db)):
    return orders.get_order_for_user(db, identity.user_id, order_id)


# -------------------- Reviews --------------------

@app.post("/reviews", response_model=schemas.ReviewRead, status_code=201)
async def submit_review(
    payload: schemas.ReviewCreate, identity: auth.Identity = Depends(current_identity), db: Session = Depends(get_db)
):
    return reviews.submit_review(
        db,
        identity.user_id,
        payload.product_id,
        payload.vendor_id,
        payload.rating,
        title=payload.title,
        comment=payload.comment,
        order_id=payload.order_id,
    )


@app.get("/reviews/me", response_model=List[schemas.ReviewRead])
async def my_reviews(identity: auth.Identity = Depends(current_identity), db: Session = Depends(get_db)):
    return reviews.list_for_user(db, identity.user_id)


# -------------------- Admin --------------------

@app.get("/admin/vendor-applications", response_model=List[schemas.VendorRead])
async def vendor_applications(
    status: Optional[schemas.ApplicationStatus] = None,
    _: auth.Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return crud.list_vendor_applications(db, status)


@app.patch("/admin/vendor-applications/{vendor_id}", response_model=schemas.VendorRead)
async def decide_vendor_application(
    vendor_id: int,
    payload: schemas.VendorApplicationDecision,
    _: auth.Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return crud.update_vendor_application_status(db, vendor_id, payload.status, payload.notes)


@app.post("/admin/reconcile", response_model=schemas.ReconcileResult)
async def reconcile(_: auth.Identity = Depends(require_admin), db: Session = Depends(get_db)):
    result = schemas.ReconcileResult(
        product_counts_fixed=counters.reconcile_product_counts(db),
        ratings_fixed=counters.reconcile_ratings(db),
    )
    db.commit()
    return result


@app.get("/admin/settings/strict-stock")
async def get_strict_stock(_: auth.Identity = Depends(require_admin)):
    return {"strict_stock": config.is_strict_stock()}


@app.post("/admin/settings/strict-stock")
async def set_strict_stock(request: Request, _: auth.Identity = Depends(require_admin)):
    """Toggle stock enforcement. Accepts the value via query param or JSON body."""
    value = request.query_params.get("value")
    if value is None:
        try:
            body = await request.json()
            if isinstance(body, dict):
                value = body.get("value")
        except ValueError:
            value = None

    if isinstance(value, str):
        val = value.lower() in ("1", "true", "yes", "on")
    elif isinstance(value, bool):
        val = value
    elif value is None:
        raise ValidationError.for_field("value", "value required")
    else:
        val = bool(value)

    config.set_strict_stock(val)
    return {"strict_stock": config.is_strict_stock()}
