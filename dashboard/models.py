"""
Entity models for the dashboard.

Documents arrive from Firestore with fields missing or mistyped, so each model
has a `from_document` constructor that fills safe defaults instead of failing.
"""
from __future__ import annotations

import datetime
from enum import Enum
from typing import Any, Literal

from dateutil import parser as dateparser
from pydantic import BaseModel, Field

from .config import DEFAULT_PRODUCT_IMAGE


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


BookingStatus = Literal["pending", "confirmed", "completed", "cancelled"]
Role = Literal["admin", "super_admin", "customer"]


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def _to_utc(dt: datetime.datetime) -> datetime.datetime:
    return dt if dt.tzinfo else dt.replace(tzinfo=datetime.timezone.utc)


def to_datetime(value: Any, default_now: bool = True) -> datetime.datetime | None:
    """Coerce a Firestore timestamp, datetime, date or string to an aware datetime."""
    if isinstance(value, datetime.datetime):
        return _to_utc(value)
    if isinstance(value, datetime.date):
        return datetime.datetime.combine(value, datetime.time(), tzinfo=datetime.timezone.utc)
    if isinstance(value, str) and value:
        try:
            return _to_utc(dateparser.parse(value))
        except (ValueError, OverflowError):
            pass
    return utcnow() if default_now else None


def _num(value: Any, default: float = 0.0) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    # NaN and zero both fall back, like a falsy check
    return number if number == number and number != 0 else default


def _str(value: Any, default: str = "") -> str:
    return str(value) if value else default


def _list(value: Any) -> list:
    return list(value) if isinstance(value, (list, tuple)) else []


def _choice(value: Any, allowed, default: str) -> str:
    return value if value in allowed else default


class OrderLineItem(BaseModel):
    product_id: str = ""
    product_name: str = "Unknown Product"
    price: float = 0.0
    quantity: int = 1
    image: str = DEFAULT_PRODUCT_IMAGE

    @classmethod
    def from_dict(cls, data: dict) -> "OrderLineItem":
        return cls(
            product_id=_str(data.get("productId")),
            product_name=_str(data.get("productName"), "Unknown Product"),
            price=_num(data.get("price")),
            quantity=int(_num(data.get("quantity"), 1)),
            image=_str(data.get("image"), DEFAULT_PRODUCT_IMAGE),
        )


class Order(BaseModel):
    id: str
    customer_id: str = ""
    customer_name: str = "Unknown Customer"
    customer_email: str = "No Email"
    products: list[OrderLineItem] = Field(default_factory=list)
    total_amount: float = 0.0
    payment_method: str = "Unknown"
    shipping_address: str = ""
    status: OrderStatus = OrderStatus.PENDING
    notes: str = ""
    created_at: datetime.datetime = Field(default_factory=utcnow)
    updated_at: datetime.datetime = Field(default_factory=utcnow)

    @classmethod
    def from_document(cls, doc_id: str, data: dict) -> "Order":
        products = [OrderLineItem.from_dict(p) for p in _list(data.get("products")) if isinstance(p, dict)]
        status = data.get("status")
        return cls(
            id=doc_id,
            customer_id=_str(data.get("customerId")),
            customer_name=_str(data.get("customerName"), "Unknown Customer"),
            customer_email=_str(data.get("customerEmail"), "No Email"),
            products=products,
            total_amount=_num(data.get("totalAmount")),
            payment_method=_str(data.get("paymentMethod"), "Unknown"),
            shipping_address=_str(data.get("shippingAddress")),
            status=_choice(status, {s.value for s in OrderStatus}, OrderStatus.PENDING.value),
            notes=_str(data.get("notes")),
            created_at=to_datetime(data.get("createdAt")),
            updated_at=to_datetime(data.get("updatedAt")),
        )


class Customer(BaseModel):
    uid: str
    name: str = "Unknown Customer"
    email: str = ""
    phone: str = ""
    address: str = ""
    city: str = ""
    country: str = ""
    status: str = "active"
    role: str = "customer"
    created_at: datetime.datetime = Field(default_factory=utcnow)
    last_login: datetime.datetime = Field(default_factory=utcnow)

    @classmethod
    def from_document(cls, doc_id: str, data: dict) -> "Customer":
        return cls(
            uid=doc_id,
            name=_str(data.get("name"), "Unknown Customer"),
            email=_str(data.get("email")),
            phone=_str(data.get("phone")),
            address=_str(data.get("address")),
            city=_str(data.get("city")),
            country=_str(data.get("country")),
            status=_str(data.get("status"), "active"),
            role=_str(data.get("role"), "customer"),
            created_at=to_datetime(data.get("createdAt")),
            last_login=to_datetime(data.get("lastLogin")),
        )


class Product(BaseModel):
    id: str
    name: str = ""
    description: str = ""
    price: float = 0.0
    cost: float = 0.0
    category: str = ""
    branch_names: list[str] = Field(default_factory=list)
    branches: list[str] = Field(default_factory=list)
    stock: float = 0.0
    total_stock: float = 0.0
    total_sold: float = 0.0
    revenue: float = 0.0
    status: str = "active"
    sku: str = ""
    rating: float = 0.0
    reviews: int = 0
    created_at: datetime.datetime | None = None
    updated_at: datetime.datetime | None = None

    @classmethod
    def from_document(cls, doc_id: str, data: dict) -> "Product":
        return cls(
            id=doc_id,
            name=_str(data.get("name")),
            description=_str(data.get("description")),
            price=_num(data.get("price")),
            cost=_num(data.get("cost")),
            category=_str(data.get("category")),
            branch_names=[str(b) for b in _list(data.get("branchNames"))],
            branches=[str(b) for b in _list(data.get("branches"))],
            stock=_num(data.get("stock")),
            total_stock=_num(data.get("totalStock")),
            total_sold=_num(data.get("totalSold")),
            revenue=_num(data.get("revenue")),
            status=_str(data.get("status"), "active"),
            sku=_str(data.get("sku")),
            rating=_num(data.get("rating")),
            reviews=int(_num(data.get("reviews"))),
            created_at=to_datetime(data.get("createdAt"), default_now=False),
            updated_at=to_datetime(data.get("updatedAt"), default_now=False),
        )


class Service(BaseModel):
    id: str
    name: str = ""
    description: str = ""
    price: float = 0.0
    duration: float = 0.0
    category: str = ""
    branch_names: list[str] = Field(default_factory=list)
    branches: list[str] = Field(default_factory=list)
    status: str = "active"
    popularity: str = "low"
    revenue: float = 0.0
    total_bookings: int = 0
    created_at: datetime.datetime | None = None
    updated_at: datetime.datetime | None = None

    @classmethod
    def from_document(cls, doc_id: str, data: dict) -> "Service":
        return cls(
            id=doc_id,
            name=_str(data.get("name")),
            description=_str(data.get("description")),
            price=_num(data.get("price")),
            duration=_num(data.get("duration")),
            category=_str(data.get("category")),
            branch_names=[str(b) for b in _list(data.get("branchNames"))],
            branches=[str(b) for b in _list(data.get("branches"))],
            status=_str(data.get("status"), "active"),
            popularity=_str(data.get("popularity"), "low"),
            revenue=_num(data.get("revenue")),
            total_bookings=int(_num(data.get("totalBookings"))),
            created_at=to_datetime(data.get("createdAt"), default_now=False),
            updated_at=to_datetime(data.get("updatedAt"), default_now=False),
        )


class Booking(BaseModel):
    id: str
    service_id: str = ""
    service_name: str = ""
    service_price: float = 0.0
    total_amount: float = 0.0
    customer_id: str = ""
    customer_name: str = ""
    customer_email: str = ""
    date: str = ""
    time: str = ""
    status: BookingStatus = "pending"
    notes: str = ""
    created_at: datetime.datetime | None = None
    updated_at: datetime.datetime | None = None

    @classmethod
    def from_document(cls, doc_id: str, data: dict) -> "Booking":
        return cls(
            id=doc_id,
            service_id=_str(data.get("serviceId")),
            service_name=_str(data.get("serviceName")),
            service_price=_num(data.get("servicePrice")),
            total_amount=_num(data.get("totalAmount")),
            customer_id=_str(data.get("customerId")),
            customer_name=_str(data.get("customerName")),
            customer_email=_str(data.get("customerEmail")),
            date=_str(data.get("date")),
            time=_str(data.get("time")),
            status=_choice(data.get("status"), ("pending", "confirmed", "completed", "cancelled"), "pending"),
            notes=_str(data.get("notes")),
            created_at=to_datetime(data.get("createdAt"), default_now=False),
            updated_at=to_datetime(data.get("updatedAt"), default_now=False),
        )


class UserProfile(BaseModel):
    id: str
    email: str = ""
    role: Role = "admin"
    branch_id: str | None = None
    branch_name: str | None = None
    name: str | None = None
    phone: str | None = None


class OrderStats(BaseModel):
    total: int = 0
    pending: int = 0
    confirmed: int = 0
    processing: int = 0
    shipped: int = 0
    delivered: int = 0
    cancelled: int = 0
    refunded: int = 0
    total_revenue: float = 0.0
    today_orders: int = 0
    active_customers: int = 0


class MonthExpense(BaseModel):
    month: str
    products_cost: float = 0.0
    services_cost: float = 0.0
    appointments_cost: float = 0.0
    total_cost: float = 0.0
    revenue: float = 0.0
    profit: float = 0.0


class BranchExpense(BaseModel):
    branch: str
    products_cost: float = 0.0
    services_cost: float = 0.0
    appointments_cost: float = 0.0
    total_cost: float = 0.0


class CategoryExpense(BaseModel):
    category: str
    products_cost: float = 0.0
    services_cost: float = 0.0
    total_cost: float = 0.0


class ExpenseSummary(BaseModel):
    total_products_cost: float = 0.0
    total_services_cost: float = 0.0
    total_appointments_cost: float = 0.0
    total_expenses: float = 0.0
    total_revenue: float = 0.0
    total_profit: float = 0.0
    profit_margin: float = 0.0
    month_wise: list[MonthExpense] = Field(default_factory=list)
    branch_wise: list[BranchExpense] = Field(default_factory=list)
    category_wise: list[CategoryExpense] = Field(default_factory=list)
