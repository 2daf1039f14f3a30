"""
Database Schemas for the Provision Store Billing System

Each Pydantic model represents a MongoDB collection in the connected database.
Collection name is the lowercase of the class name (e.g., Bill -> "bill").
BillItem is embedded in Bill and is not a collection by itself.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Literal, Optional, List, get_args
from datetime import datetime

WeightUnit = Literal["kg", "gm"]
Category = Literal[
    "Grains",
    "Pulses",
    "Spices",
    "Oil & Ghee",
    "Beverages",
    "Sweeteners",
    "Dairy",
    "Snacks",
    "Others",
]
BillStatus = Literal["draft", "completed", "cancelled"]
PaymentMethod = Literal["cash", "card", "upi", "other"]

CATEGORIES: List[str] = list(get_args(Category))


class User(BaseModel):
    """Users of the system (admin/cashier). Bills and products are scoped to a user."""
    username: str = Field(..., min_length=1, max_length=50, description="Unique username")
    full_name: str = Field(..., description="Full name")
    role: Literal["admin", "cashier"] = Field("cashier", description="Role: admin or cashier")
    password_hash: str = Field(..., description="bcrypt password hash (server-side only)")
    is_active: bool = Field(True, description="Whether the user is active")


class ProductIn(BaseModel):
    """Editable product fields accepted from clients. Prices are per kilogram."""
    model_config = ConfigDict(str_strip_whitespace=True, allow_inf_nan=False)

    name: str = Field(..., min_length=1, max_length=100, description="Product name")
    price_per_unit: float = Field(..., ge=0, description="Price per kg")
    weight: float = Field(..., gt=0, description="Pack weight")
    weight_unit: WeightUnit = Field("kg", description="Unit of weight: kg or gm")
    category: Category = Field("Others", description="Category")


class Product(ProductIn):
    """Products available for sale."""
    is_active: bool = Field(True, description="False once the product is deleted")


class BillItem(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    product_id: str = Field(..., description="Referenced product _id as string")
    name: str = Field(..., description="Snapshot of product name at time of sale")
    price_per_unit: float = Field(..., ge=0)
    weight: float = Field(..., ge=0)
    weight_unit: WeightUnit
    quantity: int = Field(..., ge=1)
    item_total: float = Field(..., ge=0, description="round(unit value * quantity, 2)")


class Bill(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, allow_inf_nan=False)

    bill_number: str = Field(..., description="Auto-generated bill number, BILLYYYYMMDDNNNN")
    user_id: str = Field(..., description="Owning user _id as string")
    items: List[BillItem] = Field(..., min_length=1)
    total_amount: float = Field(..., ge=0)
    status: BillStatus = "completed"
    payment_method: PaymentMethod = "cash"
    customer_name: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = Field(None, max_length=500)
    created_at: Optional[datetime] = None


# ----- Cart payloads (shared by the API and the client) -----

class CartItem(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    product_id: str = Field(..., min_length=1)
    price_per_unit: float = Field(..., ge=0)
    weight: float = Field(..., ge=0)
    weight_unit: WeightUnit
    quantity: int = Field(..., ge=1)
    item_total: Optional[float] = Field(None, description="Ignored; recomputed server-side")


class CreateBillRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, allow_inf_nan=False)

    items: List[CartItem] = Field(..., min_length=1)
    total_amount: float = Field(..., ge=0)
    customer_name: Optional[str] = Field(None, max_length=100)
    payment_method: PaymentMethod = "cash"
    notes: Optional[str] = Field(None, max_length=500)
