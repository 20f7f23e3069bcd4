from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field, PositiveInt, field_validator, model_validator
from pydantic.config import ConfigDict

ApplicationStatus = Literal["pending", "approved", "rejected"]


# -------------------- Users / auth --------------------

class UserCreate(BaseModel):
    username: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    full_name: str = Field(..., min_length=1, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=30)
    photo_url: Optional[str] = None


class UserUpdate(BaseModel):
    full_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(default=None, max_length=30)
    photo_url: Optional[str] = None


class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=6, max_length=128)


class LoginRequest(BaseModel):
    username: str
    password: str


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserRead(BaseModel):
    id: int
    username: str
    email: str
    full_name: str
    is_vendor: bool = False
    is_admin: bool = False
    phone: Optional[str] = None
    photo_url: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


# -------------------- Vendors / categories --------------------

class VendorCreate(BaseModel):
    store_name: str = Field(..., min_length=2, max_length=100)
    description: str = Field(..., min_length=1)
    contact_email: EmailStr
    contact_phone: Optional[str] = None
    logo_url: Optional[str] = None
    banner_color: Optional[str] = None


class VendorRead(BaseModel):
    id: int
    user_id: int
    store_name: str
    description: str
    logo_url: Optional[str] = None
    banner_color: Optional[str] = None
    contact_email: str
    contact_phone: Optional[str] = None
    application_status: ApplicationStatus
    application_notes: Optional[str] = None
    verified: bool
    rating: float
    review_count: int
    product_count: int

    model_config = ConfigDict(from_attributes=True)


class VendorApplicationDecision(BaseModel):
    status: ApplicationStatus
    notes: Optional[str] = None


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=60)
    slug: Optional[str] = Field(default=None, min_length=1, max_length=60, pattern=r"^[a-z0-9-]+$")
    description: Optional[str] = None
    icon_name: str = "tag"
    icon_color: str = "#4F46E5"


class CategoryRead(BaseModel):
    id: int
    name: str
    slug: str
    description: Optional[str] = None
    icon_name: str
    icon_color: str
    product_count: int

    model_config = ConfigDict(from_attributes=True)


# -------------------- Products --------------------

class ProductCreate(BaseModel):
    category_id: PositiveInt
    name: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    price: Decimal = Field(..., ge=Decimal("0"))
    compare_price: Optional[Decimal] = Field(default=None, ge=Decimal("0"))
    image_url: str = ""
    inventory: Optional[int] = Field(default=0, ge=0)
    is_new: bool = False
    is_trending: bool = False


class ProductUpdate(BaseModel):
    category_id: Optional[PositiveInt] = None
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, ge=Decimal("0"))
    compare_price: Optional[Decimal] = Field(default=None, ge=Decimal("0"))
    image_url: Optional[str] = None
    inventory: Optional[int] = Field(default=None, ge=0)
    is_new: Optional[bool] = None
    is_trending: Optional[bool] = None


class ProductRead(BaseModel):
    id: int
    vendor_id: int
    category_id: int
    name: str
    description: str
    price: Decimal
    compare_price: Optional[Decimal] = None
    discount_percent: Optional[int] = None
    image_url: str
    inventory: Optional[int] = None
    rating: float
    review_count: int
    is_new: bool
    is_trending: bool

    model_config = ConfigDict(from_attributes=True)


class ProductDetail(BaseModel):
    product: ProductRead
    vendor: Optional[VendorRead] = None


# -------------------- Cart --------------------

class CartItemAdd(BaseModel):
    product_id: PositiveInt
    quantity: int = Field(default=1, ge=1)


class CartItemUpdate(BaseModel):
    # zero or below removes the item
    quantity: int


class CartItemRead(BaseModel):
    id: int
    product_id: int
    quantity: int
    price: Decimal
    line_total: Decimal
    product: ProductRead

    model_config = ConfigDict(from_attributes=True)


class CartRead(BaseModel):
    cart_id: Optional[int] = None
    items: list[CartItemRead] = []
    item_count: int = 0
    subtotal: Decimal = Decimal("0.00")


# -------------------- Orders --------------------

class ShippingAddress(BaseModel):
    full_name: str = Field(..., min_length=3)
    address_line1: str = Field(..., min_length=5)
    address_line2: Optional[str] = None
    city: str = Field(..., min_length=2)
    state: str = Field(..., min_length=2)
    postal_code: str = Field(..., min_length=3)
    country: str = Field(..., min_length=2)
    phone: str = Field(..., min_length=7)


class OrderCreate(BaseModel):
    shipping_address: ShippingAddress
    payment_method: str = Field(..., min_length=1, max_length=50)

    @model_validator(mode="before")
    @classmethod
    def ignore_client_total(cls, data):
        # totals are always computed server-side
        if isinstance(data, dict):
            data = {k: v for k, v in data.items() if k not in ("total_amount", "totalAmount")}
        return data


class OrderItemRead(BaseModel):
    id: int
    product_id: Optional[int] = None
    vendor_id: int
    product_name: str
    quantity: int
    price: Decimal

    model_config = ConfigDict(from_attributes=True)


class OrderRead(BaseModel):
    id: int
    user_id: int
    total_amount: Decimal
    status: str
    shipping_address: dict
    payment_method: str
    created_at: datetime
    items: list[OrderItemRead] = []

    model_config = ConfigDict(from_attributes=True)


# -------------------- Reviews --------------------

class ReviewCreate(BaseModel):
    product_id: PositiveInt
    vendor_id: PositiveInt
    rating: int
    title: Optional[str] = Field(default=None, max_length=200)
    comment: Optional[str] = Field(default=None, max_length=5000)
    order_id: Optional[PositiveInt] = None

    @field_validator("rating", mode="before")
    @classmethod
    def whole_star(cls, v):
        # reject 4.5 instead of letting int coercion truncate it
        if isinstance(v, bool) or (isinstance(v, float) and not v.is_integer()):
            raise ValueError("rating must be an integer between 1 and 5")
        return v

    @field_validator("rating")
    @classmethod
    def in_range(cls, v: int):
        if v < 1 or v > 5:
            raise ValueError("rating must be an integer between 1 and 5")
        return v


class ReviewRead(BaseModel):
    id: int
    user_id: int
    product_id: Optional[int] = None
    vendor_id: int
    order_id: Optional[int] = None
    rating: int
    title: Optional[str] = None
    comment: Optional[str] = None
    status: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ReconcileResult(BaseModel):
    product_counts_fixed: int
    ratings_fixed: int
