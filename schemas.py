"""
Database Schemas for the Storefront

Each Pydantic model represents a MongoDB collection. The collection name is the lowercase of the class name.

- Category -> "category"
- Product -> "product"
- Banner -> "banner"
- Order -> "order" (order items are embedded)

Request models for the admin API and the checkout live at the bottom.
"""
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator


class DeliveryOption(str, Enum):
    PICKUP = "PICKUP"
    HOME_DELIVERY = "HOME_DELIVERY"


# checkout selector -> stored option
DELIVERY_SELECTORS = {
    "free_pickup": DeliveryOption.PICKUP,
    "home_delivery": DeliveryOption.HOME_DELIVERY,
}

DELIVERY_FEES = {
    DeliveryOption.PICKUP: 0.00,
    DeliveryOption.HOME_DELIVERY: 20.00,
}


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


def effective_price(product: Dict[str, Any]) -> float:
    """Discount price when set, otherwise the original price."""
    discount = product.get("discount_price")
    if discount is not None:
        return float(discount)
    return float(product["original_price"])


class Category(BaseModel):
    name: str = Field(..., min_length=1, description="Display name")
    slug: str = Field(..., min_length=1, description="URL slug, unique")
    description: Optional[str] = Field(None, description="Category description")


class Product(BaseModel):
    name: str = Field(..., min_length=1, description="Product name")
    slug: str = Field(..., min_length=1, description="URL slug, unique")
    description: str = Field("", description="Product description")
    short_description: Optional[str] = None
    original_price: float = Field(..., ge=0, description="List price")
    discount_price: Optional[float] = Field(None, ge=0, description="Sale price, wins over the list price when set")
    category_id: int = Field(..., description="Owning category")
    stock_quantity: int = Field(0, ge=0, description="Units available for sale")
    is_active: bool = Field(True, description="Visible and orderable in the storefront")
    is_featured: bool = False
    is_recently_added: bool = False
    sku: Optional[str] = None
    weight: Optional[float] = Field(None, ge=0)
    dimensions: Optional[str] = None
    seo_title: Optional[str] = None
    seo_description: Optional[str] = None
    seo_keywords: Optional[str] = None
    sort_order: int = 0
    images: List[str] = Field(default_factory=list, description="Image URLs")

    @model_validator(mode="after")
    def check_discount(self):
        if self.discount_price is not None and self.discount_price > self.original_price:
            raise ValueError("discount_price must not exceed original_price")
        return self


class Banner(BaseModel):
    image_url: str = Field(..., min_length=1)
    alt: Optional[str] = None
    title: Optional[str] = None
    subtitle: Optional[str] = None
    href: Optional[str] = None
    sort_order: int = 0
    is_active: bool = True
    product_id: Optional[int] = None


class OrderItem(BaseModel):
    product_id: int
    product_name: str
    quantity: int = Field(..., gt=0)
    unit_price: float = Field(..., ge=0, description="Effective price captured when the order was placed")
    line_total: float = Field(..., ge=0)


class Order(BaseModel):
    customer_name: str
    whatsapp_number: str
    delivery_option: DeliveryOption
    delivery_fee: float
    subtotal: float
    total_price: float
    status: OrderStatus = Field(OrderStatus.PENDING, description="Order status")
    note: Optional[str] = None
    items: List[OrderItem]


# Admin request bodies

class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1)
    slug: Optional[str] = None
    description: Optional[str] = None


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    slug: Optional[str] = None
    description: Optional[str] = None


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1)
    slug: Optional[str] = None
    description: str = ""
    short_description: Optional[str] = None
    original_price: float = Field(..., ge=0)
    discount_price: Optional[float] = Field(None, ge=0)
    category_id: int
    stock_quantity: int = Field(0, ge=0)
    is_active: bool = True
    is_featured: bool = False
    is_recently_added: bool = False
    sku: Optional[str] = None
    weight: Optional[float] = Field(None, ge=0)
    dimensions: Optional[str] = None
    seo_title: Optional[str] = None
    seo_description: Optional[str] = None
    seo_keywords: Optional[str] = None
    sort_order: int = 0
    images: List[str] = Field(default_factory=list)


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    slug: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    short_description: Optional[str] = None
    original_price: Optional[float] = Field(None, ge=0)
    discount_price: Optional[float] = Field(None, ge=0)
    category_id: Optional[int] = None
    stock_quantity: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None
    is_featured: Optional[bool] = None
    is_recently_added: Optional[bool] = None
    sku: Optional[str] = None
    weight: Optional[float] = Field(None, ge=0)
    dimensions: Optional[str] = None
    seo_title: Optional[str] = None
    seo_description: Optional[str] = None
    seo_keywords: Optional[str] = None
    sort_order: Optional[int] = None


class ImageRequest(BaseModel):
    url: str = Field(..., min_length=1)


class StatusUpdate(BaseModel):
    status: OrderStatus


class AdminLogin(BaseModel):
    user: str
    password: str


# Checkout

class CheckoutItem(BaseModel):
    product_id: int = Field(..., alias="productId")
    quantity: int = Field(..., gt=0)


class CheckoutRequest(BaseModel):
    full_name: str = Field(..., alias="fullName", min_length=1)
    whatsapp: str = Field(..., min_length=1)
    delivery_option: DeliveryOption = Field(..., alias="deliveryOption")
    items: List[CheckoutItem] = Field(..., min_length=1)
    note: Optional[str] = None
