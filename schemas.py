"""
Database Schemas

MongoDB collection schemas and request payloads, as Pydantic models.
Model name is converted to lowercase for the collection name:
- Category -> "category" collection
- SubCategory -> "subcategory" collection
- Product -> "product" collection
- Order -> "order" collection
- Settings -> "settings" collection
- Admin -> "admin" collection

Update payloads are patches: only the fields present in the request are
applied (see `model_dump(exclude_unset=True)`), so an omitted field and a
field explicitly sent as 0, "" or null stay distinguishable.
"""

from datetime import datetime
from typing import Annotated, List, Literal, Optional

from pydantic import BaseModel, BeforeValidator, EmailStr, Field

CatalogType = Literal["product", "eservice"]
Currency = Literal["SYP", "USD"]
OrderStatus = Literal["pending", "confirmed", "processing", "shipped", "delivered", "cancelled"]

CURRENCIES = ("SYP", "USD")


def _blank_to_none(v):
    if isinstance(v, str) and not v.strip():
        return None
    return v


# Admin forms post "" for cleared inputs; treat those as null.
Blank = BeforeValidator(_blank_to_none)
OptPrice = Annotated[Optional[Annotated[float, Field(ge=0)]], Blank]
OptDiscount = Annotated[Optional[Annotated[float, Field(ge=0, le=100)]], Blank]
OptType = Annotated[Optional[CatalogType], Blank]
OptCurrency = Annotated[Optional[Currency], Blank]
OptRef = Annotated[Optional[str], Blank]


# ------------ Catalog ------------

class Category(BaseModel):
    """
    Categories collection schema
    Collection name: "category"
    """
    name: str = Field(..., description="Unique display name")
    slug: str = Field(..., description="Lowercase name with spaces as hyphens")
    description: Optional[str] = Field(None, description="Default description for products")
    image: Optional[str] = Field(None, description="Image URL")
    default_price: Optional[float] = Field(None, ge=0, description="Default product price")
    default_discount: float = Field(0, ge=0, le=100, description="Default discount percent")
    type: CatalogType = Field("product", description="product | eservice")
    currency: Optional[Currency] = Field(None, description="Currency override")


class SubCategory(BaseModel):
    """
    Sub-categories collection schema
    Collection name: "subcategory"
    """
    name: str
    slug: str
    description: Optional[str] = None
    image: Optional[str] = None
    default_price: Optional[float] = Field(None, ge=0)
    default_discount: Optional[float] = Field(None, ge=0, le=100, description="None inherits the category default")
    category: str = Field(..., description="Parent category id")
    type: CatalogType = "eservice"
    currency: Optional[Currency] = None
    order: int = Field(0, description="Position among siblings of the same category")


class Product(BaseModel):
    """
    Products collection schema (also e-services)
    Collection name: "product"
    """
    name: str
    description: str = ""
    price: float = Field(..., ge=0)
    discount: float = Field(0, ge=0, le=100)
    image: Optional[str] = None
    type: CatalogType = "product"
    category: str
    sub_category: Optional[str] = None
    order: int = 0
    stock: int = Field(-1, description="-1 means unlimited")
    active: bool = True
    currency: Optional[Currency] = None


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    image: Optional[str] = None
    default_price: OptPrice = None
    default_discount: OptDiscount = None
    type: OptType = None
    currency: OptCurrency = None


class CategoryUpdate(CategoryCreate):
    name: Optional[str] = Field(None, min_length=1)
    apply_defaults_to_products: bool = False


class SubCategoryCreate(BaseModel):
    name: str = Field(..., min_length=1)
    category: str
    description: Optional[str] = None
    image: Optional[str] = None
    default_price: OptPrice = None
    default_discount: OptDiscount = None
    type: OptType = None
    currency: OptCurrency = None


class SubCategoryUpdate(SubCategoryCreate):
    name: Optional[str] = Field(None, min_length=1)
    category: OptRef = None


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    price: OptPrice = None
    discount: OptDiscount = None
    image: Optional[str] = None
    type: OptType = None
    category: OptRef = None
    sub_category: OptRef = None
    stock: Optional[int] = None
    active: Optional[bool] = None
    currency: OptCurrency = None


class ProductUpdate(ProductCreate):
    name: Optional[str] = Field(None, min_length=1)


class ProductBatchUpdate(BaseModel):
    ids: List[str] = Field(..., min_length=1)
    category: OptRef = None
    sub_category: OptRef = None
    description: Optional[str] = None


class MoveRequest(BaseModel):
    direction: Literal["up", "down"]


# ------------ Orders ------------

class Customer(BaseModel):
    full_name: str
    phone_number: str
    city: str
    email: Optional[EmailStr] = None


class OrderItem(BaseModel):
    product: str = Field(..., description="Product id as string")
    product_name: Optional[str] = None
    product_description: Optional[str] = None
    category_name: Optional[str] = None
    sub_category_name: Optional[str] = None
    sub_category_description: Optional[str] = None
    quantity: int = Field(..., ge=1)
    price: OptPrice = None
    discount: float = Field(0, ge=0, le=100)


class OrderCreate(BaseModel):
    customer: Customer
    items: List[OrderItem] = Field(..., min_length=1)
    total_amount: float = Field(..., ge=0)
    email: Annotated[Optional[EmailStr], Blank] = Field(None, description="Customer email for the confirmation")
    notes: Optional[str] = None


class Order(BaseModel):
    """
    Orders collection schema
    Collection name: "order"
    """
    order_number: str
    customer: Customer
    items: List[OrderItem]
    total_amount: float
    status: OrderStatus = "pending"
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class OrderUpdate(BaseModel):
    status: Optional[OrderStatus] = None
    notes: Optional[str] = None


# ------------ Settings ------------

class Settings(BaseModel):
    """
    Settings singleton
    Collection name: "settings"
    """
    currency: Currency = "SYP"
    updated_at: Optional[datetime] = None


class SettingsUpdate(BaseModel):
    currency: Optional[str] = None


# ------------ Admin ------------

class Admin(BaseModel):
    """
    Admins collection schema
    Collection name: "admin"
    """
    username: str = Field(..., description="Display name")
    email: EmailStr = Field(..., description="Login email")
    password_hash: str = Field(..., description="bcrypt hash (server-side)")
    role: str = Field("admin", description="Role: admin")


class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(min_length=6)
    confirm_password: str


class LoginRequest(BaseModel):
    email: EmailStr
    password: str
