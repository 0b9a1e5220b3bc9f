# webapp/schemas/vendor.py
import enum
from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


# Backend payloads are camelCase with Mongo-style "_id" keys
class BackendModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


def _ref_from_id(value: Any) -> Any:
    # Unpopulated references arrive as a bare id string
    if isinstance(value, str):
        return {"_id": value}
    return value


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


# Order states an admin can no longer move out of
TERMINAL_ORDER_STATUSES = {OrderStatus.DELIVERED, OrderStatus.CANCELLED}


class ImageRef(BackendModel):
    url: str


class ContactPerson(BackendModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class VendorRef(BackendModel):
    id: str = Field(alias="_id")
    business_name: Optional[str] = None
    description: Optional[str] = None
    rating: Optional[float] = None
    contact_person: Optional[ContactPerson] = None


class UserRef(BackendModel):
    id: str = Field(alias="_id")
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class BookingRef(BackendModel):
    id: str = Field(alias="_id")
    property: Optional[Any] = None
    check_in: Optional[datetime] = None
    check_out: Optional[datetime] = None


# Vendor product as listed in the marketplace (read-only)
class Product(BackendModel):
    id: str = Field(alias="_id")
    name: str
    description: str = ""
    category: str = ""
    price: float = Field(ge=0)
    images: List[ImageRef] = []
    vendor: Optional[VendorRef] = None
    is_available: bool = True
    stock_quantity: int = 0
    min_order_quantity: int = 1
    max_order_quantity: int
    preparation_time: int = 0
    tags: List[str] = []

    @field_validator("vendor", mode="before")
    @classmethod
    def _vendor_from_id(cls, value):
        return _ref_from_id(value)

    @property
    def vendor_id(self) -> Optional[str]:
        return self.vendor.id if self.vendor else None


# Product as captured on an order line; the backend may send only part of it
class ProductSnapshot(BackendModel):
    id: str = Field(alias="_id")
    name: str = ""
    description: str = ""
    price: float = 0.0
    images: List[ImageRef] = []
    preparation_time: int = 0


class VendorOrderItem(BackendModel):
    product: ProductSnapshot
    quantity: int
    price: float
    special_instructions: Optional[str] = None

    @field_validator("product", mode="before")
    @classmethod
    def _product_from_id(cls, value):
        return _ref_from_id(value)


class DeliveryAddress(BackendModel):
    property: Optional[str] = None
    unit: Optional[str] = None
    special_instructions: Optional[str] = None


class VendorOrder(BackendModel):
    id: str = Field(alias="_id")
    order_number: str
    user: Optional[UserRef] = None
    vendor: Optional[VendorRef] = None
    booking: Optional[BookingRef] = None
    items: List[VendorOrderItem] = []
    subtotal: float = 0.0
    service_fee: float = 0.0
    delivery_fee: float = 0.0
    total_amount: float = 0.0
    order_status: OrderStatus = OrderStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    delivery_address: Optional[DeliveryAddress] = None
    preferred_delivery_time: Optional[datetime] = None
    estimated_delivery_time: Optional[datetime] = None
    actual_delivery_time: Optional[datetime] = None
    customer_notes: Optional[str] = None
    vendor_notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("user", "vendor", "booking", mode="before")
    @classmethod
    def _refs_from_id(cls, value):
        return _ref_from_id(value)

    @field_validator("order_number", mode="before")
    @classmethod
    def _order_number_as_str(cls, value):
        return str(value) if value is not None else value


# Gateway session relayed to a redirect, never stored
class PaymentSession(BaseModel):
    authorization_url: str
    reference: Optional[str] = None
    access_code: Optional[str] = None


# Request body sent to POST /api/vendor-orders
class OrderItemPayload(BackendModel):
    product_id: str
    quantity: int = Field(ge=1)
    special_instructions: Optional[str] = None


class OrderCreatePayload(BackendModel):
    booking_id: str
    vendor_id: str
    items: List[OrderItemPayload]
    delivery_address: DeliveryAddress
    preferred_delivery_time: Optional[str] = None
    customer_notes: Optional[str] = None

    def to_backend(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


# Schema for updating vendor order status (admin)
class OrderStatusPatch(BaseModel):
    status: OrderStatus
    vendor_notes: Optional[str] = None


# Order as shown in order lists, with display-ready summary fields
class VendorOrderSummary(VendorOrder):
    item_summary: str = ""
    status_label: str = ""


class VendorOrderList(BaseModel):
    items: List[VendorOrderSummary]
    total: int


class ProductList(BaseModel):
    items: List[Product]
    total: int


# Result of the payment-success page: a paid order or a failure with retry actions
class PaymentOutcome(BaseModel):
    status: str
    message: str
    order_id: Optional[str] = None
    order_number: Optional[str] = None
    total_amount: Optional[float] = None
    vendor_name: Optional[str] = None
    order_status: Optional[str] = None
    payment_status: Optional[str] = None
    actions: List[str] = []
