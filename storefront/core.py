# storefront/core.py
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

# Request bodies accepted by the HTTP surface.


class ProductIn(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = ""
    price: Decimal = Field(..., ge=0)
    category_id: Optional[int] = None
    stock_quantity: int = Field(0, ge=0)
    image_url: Optional[str] = None
    specifications: Optional[Dict[str, str]] = None


class CategoryIn(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = ""


class LoginIn(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None


class CartAddIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: int = Field(..., alias="productId")
    quantity: int = 1
    name: str = ""
    price: Decimal = Field(Decimal("0"), ge=0)


class CartUpdateIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: int = Field(..., alias="productId")
    quantity: int


class CheckoutIn(BaseModel):
    # Entries are normalized by the checkout processor, not rejected here.
    items: Optional[List[Any]] = None


def _make_product_fields(p: ProductIn) -> Dict[str, Any]:
    return {
        "name": p.name,
        "description": p.description,
        "price": p.price,
        "category_id": p.category_id,
        "stock_quantity": p.stock_quantity,
        "image_url": p.image_url or None,
        "specifications": p.specifications or None,
    }
