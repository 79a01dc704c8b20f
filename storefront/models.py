# storefront/models.py
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Optional

from pydantic import BaseModel, Field, field_serializer


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Category(BaseModel):
    id: int
    name: str
    description: str = ""


class Product(BaseModel):
    id: int
    name: str
    description: str = ""
    price: Decimal = Field(..., ge=0)
    category_id: Optional[int] = None
    stock_quantity: int = Field(0, ge=0)
    image_url: Optional[str] = None
    specifications: Optional[Dict[str, str]] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_serializer("price", when_used="json")
    def _price_as_number(self, price: Decimal) -> float:
        return float(price)


class Admin(BaseModel):
    id: int
    username: str
    password_hash: str


class CartLine(BaseModel):
    id: int
    name: str = ""
    price: Decimal = Field(Decimal("0"), ge=0)
    quantity: int = Field(..., gt=0)

    @field_serializer("price", when_used="json")
    def _price_as_number(self, price: Decimal) -> float:
        return float(price)
