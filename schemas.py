"""
Request and response schemas for SoleMate

Each request model validates one endpoint's body before any database work happens.
Response models read straight from ORM rows (``from_attributes``):
- Product -> ProductOut
- Order -> OrderOut / OrderDetail
- OrderItem -> OrderItemOut
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, HttpUrl

from models import OrderStatus


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# Auth

class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8, description="Plain-text password, hashed with bcrypt")
    full_name: Optional[str] = Field(None, max_length=255)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class UserPublic(ORMModel):
    id: UUID
    email: str
    full_name: Optional[str] = None
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
    role: str
    created_at: Optional[datetime] = None


class AuthResponse(BaseModel):
    user: UserPublic
    access_token: str
    token_type: str = "bearer"


class ProfileUpdate(BaseModel):
    """Only the fields present in the body are written; an explicit null clears one."""

    full_name: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)
    avatar_url: Optional[HttpUrl] = None


class ProfileResponse(BaseModel):
    message: str
    user: UserPublic


class PasswordUpdate(BaseModel):
    password: str = Field(..., min_length=8, description="New plain-text password")


# Catalog

class ProductIn(BaseModel):
    name: str = Field(..., min_length=1, description="Product name")
    category: str = Field(..., min_length=1, description="Catalog category")
    price: Decimal = Field(..., ge=0, description="Unit price")
    original_price: Optional[Decimal] = Field(None, ge=0, description="Price before discount")
    description: Optional[str] = None
    image_url: Optional[str] = None
    sizes: Optional[List[str]] = None
    colors: Optional[List[str]] = None
    featured: bool = False
    stock_quantity: int = Field(0, ge=0, description="Units in stock")


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    category: Optional[str] = Field(None, min_length=1)
    price: Optional[Decimal] = Field(None, ge=0)
    original_price: Optional[Decimal] = Field(None, ge=0)
    description: Optional[str] = None
    image_url: Optional[str] = None
    sizes: Optional[List[str]] = None
    colors: Optional[List[str]] = None
    featured: Optional[bool] = None
    stock_quantity: Optional[int] = Field(None, ge=0)


class ProductOut(ORMModel):
    id: UUID
    name: str
    description: Optional[str] = None
    category: str
    price: Decimal
    original_price: Optional[Decimal] = None
    image_url: Optional[str] = None
    sizes: List[str] = []
    colors: List[str] = []
    in_stock: bool
    featured: bool
    stock_quantity: int
    created_at: datetime
    updated_at: datetime


# Orders

class OrderItemIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: UUID = Field(..., alias="productId", description="Product ID")
    quantity: int = Field(..., ge=1, strict=True, description="Quantity ordered")
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2, description="Unit price at purchase time")
    size: Optional[str] = None
    product_name: Optional[str] = Field(None, description="Snapshot of product name at purchase time")


class OrderCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    items: List[OrderItemIn] = Field(..., min_length=1, description="Line items")
    total: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2, description="Order total as computed by the client")
    shipping_address: Dict[str, Any] = Field(..., alias="shippingAddress")


class OrderItemOut(ORMModel):
    id: UUID
    order_id: UUID
    product_id: Optional[UUID] = None
    product_name: str
    quantity: int
    size: Optional[str] = None
    price: Decimal
    created_at: datetime


class OrderOut(ORMModel):
    id: UUID
    user_id: UUID
    status: str
    total: Decimal
    shipping_address: Optional[Dict[str, Any]] = None
    created_at: datetime
    updated_at: datetime


class OrderWithItems(OrderOut):
    order_items: List[OrderItemOut] = []


class OrderDetail(BaseModel):
    order: OrderOut
    items: List[OrderItemOut]


class AdminOrderOut(OrderOut):
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


# Wishlist and reviews

class WishlistAdd(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: UUID = Field(..., alias="productId")


class WishlistOut(BaseModel):
    wishlist_ids: List[UUID]


class ReviewIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: UUID = Field(..., alias="productId")
    rating: int = Field(..., ge=1, le=5, description="Rating must be between 1 and 5")
    title: Optional[str] = None
    content: Optional[str] = None


class ReviewOut(ORMModel):
    id: UUID
    product_id: UUID
    user_id: UUID
    rating: int
    title: Optional[str] = None
    content: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class PublicReview(BaseModel):
    id: UUID
    product_id: UUID
    rating: int
    title: Optional[str] = None
    content: Optional[str] = None
    created_at: datetime
    reviewer_name: str


# Contact

class ContactRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    subject: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=10, max_length=5000)


class ContactReceipt(BaseModel):
    inquiry_id: UUID
    created_at: datetime


# Admin

class AdminStats(BaseModel):
    total_products: int
    total_orders: int
    total_users: int
    total_revenue: Decimal
    pending_orders: int
    out_of_stock: int


class ImageUploadOut(BaseModel):
    image_url: str
