from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base schema: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        str_strip_whitespace=True,
    )


# Define order status enum
class OrderStatus(str, Enum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    REJECTED = "Rejected"


class PaymentMethod(str, Enum):
    CASH_ON_DELIVERY = "Cash on Delivery"
    CARD = "Credit/Debit Card"
    UPI = "UPI"


class IntendedFor(str, Enum):
    ALL = "all"
    USERS = "users"
    ADMINS = "admins"


class NotificationType(str, Enum):
    USER = "user"
    ORDER = "order"
    STOCK = "stock"
    SYSTEM = "system"


class MessageOut(CamelModel):
    message: str


# -----------------------------
# Users
# -----------------------------


class SignupRequest(CamelModel):
    username: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=72)


class LoginRequest(CamelModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class UserOut(CamelModel):
    id: int
    username: str
    email: str
    is_admin: bool


class TokenOut(CamelModel):
    message: str
    token: str
    user_id: int
    is_admin: bool


# -----------------------------
# Catalog
# -----------------------------


class ProductOut(CamelModel):
    id: int
    name: str
    description: Optional[str] = None
    price: Decimal
    original_price: Optional[Decimal] = None
    stock: int
    image_url: Optional[str] = None
    category_id: Optional[int] = None


class StockUpdate(CamelModel):
    stock: int = Field(..., ge=0)


class StockOut(CamelModel):
    message: str
    stock: int


class CategoryCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    is_visible: bool = True


class CategoryUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    is_visible: Optional[bool] = None


class CategoryOut(CamelModel):
    id: int
    name: str
    is_visible: bool


class SpecialCategoryCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    product_ids: List[int] = []
    is_visible: bool = True


class SpecialCategoryUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    product_ids: Optional[List[int]] = None
    is_visible: Optional[bool] = None


class SpecialCategoryOut(CamelModel):
    id: int
    name: str
    is_visible: bool
    products: List[ProductOut] = []


# -----------------------------
# Cart & favorites
# -----------------------------


class CartLine(CamelModel):
    product_id: int = Field(..., gt=0, description="Product ID")
    quantity: int = Field(..., gt=0, description="Product quantity")


class CartReplace(CamelModel):
    cart: List[CartLine]


class CartItemOut(CamelModel):
    product_id: int
    quantity: int
    product: ProductOut


class CartOut(CamelModel):
    message: str
    items: List[CartItemOut]


class FavoriteCreate(CamelModel):
    product_id: int = Field(..., gt=0)


class FavoriteOut(CamelModel):
    id: int
    product_id: int
    created_at: Optional[datetime] = None
    product: ProductOut


# -----------------------------
# Orders
# -----------------------------


class OrderItemIn(CamelModel):
    product_id: int = Field(..., gt=0, description="Product ID")
    quantity: int = Field(..., gt=0, description="Product quantity")
    # accepted for compatibility with older clients, never used for pricing
    price: Optional[Decimal] = None


class Shipping(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    address: str = Field(..., min_length=1, max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    zip: str = Field(..., min_length=1, max_length=20)


class OrderCreate(CamelModel):
    user_id: int
    items: List[OrderItemIn] = Field(..., min_length=1, description="List of order items")
    total: Optional[Decimal] = None
    shipping: Shipping
    payment_method: PaymentMethod
    idempotency_key: Optional[str] = Field(None, min_length=1, max_length=100)


class OrderPlaced(CamelModel):
    message: str
    order_id: int
    total: Decimal
    status: OrderStatus


class StatusUpdate(CamelModel):
    # plain str so unknown values reach the state machine and fail as InvalidTransition
    status: Optional[str] = None


class OrderItemOut(CamelModel):
    product_id: Optional[int] = None
    product_name: str
    image_url: Optional[str] = None
    quantity: int
    price: Decimal


class OrderOut(CamelModel):
    id: int
    user_id: int
    username: Optional[str] = None
    items: List[OrderItemOut] = []
    total: Decimal
    status: OrderStatus
    shipping: Shipping
    payment_method: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_order(cls, order) -> "OrderOut":
        return cls(
            id=order.id,
            user_id=order.user_id,
            username=order.user.username if order.user else None,
            items=[
                OrderItemOut(
                    product_id=item.product_id,
                    product_name=item.product_name,
                    image_url=item.product.image_url if item.product else None,
                    quantity=item.quantity,
                    price=item.price,
                )
                for item in order.items
            ],
            total=order.total,
            status=order.status,
            shipping=Shipping(
                name=order.shipping_name,
                address=order.shipping_address,
                city=order.shipping_city,
                state=order.shipping_state,
                zip=order.shipping_zip,
            ),
            payment_method=order.payment_method,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


class StatusChanged(CamelModel):
    message: str
    order_id: int
    status: OrderStatus


# -----------------------------
# Notifications & content
# -----------------------------


class NotificationCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1)
    intended_for: IntendedFor = IntendedFor.ALL


class NotificationMetadata(CamelModel):
    order_id: Optional[int] = None
    order_total: Optional[Decimal] = None
    order_status: Optional[str] = None
    product_name: Optional[str] = None


class NotificationOut(CamelModel):
    id: int
    title: str
    message: str
    created_at: Optional[datetime] = None
    created_by: str
    intended_for: IntendedFor
    type: NotificationType
    is_read: bool
    metadata: NotificationMetadata


class MigrationOut(CamelModel):
    message: str
    updated: int


class TextContentIn(CamelModel):
    text: str = Field(..., min_length=1)


class TextContentOut(CamelModel):
    text: str
    created_at: Optional[datetime] = None


class ContactMessageIn(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    message: str = Field(..., min_length=1)


class ContactMessageOut(CamelModel):
    id: int
    name: str
    message: str
    email: str
    created_at: Optional[datetime] = None
    is_read: bool


class BannerIn(CamelModel):
    image_url: str = Field(..., min_length=1, max_length=500)


class BannerOut(CamelModel):
    id: int
    image_url: str
    created_at: Optional[datetime] = None
