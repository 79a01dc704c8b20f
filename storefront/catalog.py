# storefront/catalog.py
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from .core import CategoryIn, ProductIn, _make_product_fields
from .database import Store
from .errors import NotFound, ValidationFailed
from .models import Product, utcnow

# Product and category logic behind the catalog endpoints.

logger = logging.getLogger("storefront.catalog")

SORT_FIELDS = ("name", "price", "created_at")
DEFAULT_SORT = "name"
DEFAULT_LIMIT = 100
FALLBACK_LIMIT = 20
MAX_LIMIT = 100


def _to_int(raw: Any) -> Optional[int]:
    try:
        return int(str(raw).strip())
    except (TypeError, ValueError):
        return None


def _to_decimal(raw: Optional[str], name: str) -> Optional[Decimal]:
    if raw is None or str(raw).strip() == "":
        return None
    try:
        value = Decimal(str(raw).strip())
    except InvalidOperation:
        raise ValidationFailed(f"{name} must be a number")
    if not value.is_finite():
        raise ValidationFailed(f"{name} must be a number")
    return value


@dataclass
class ProductQuery:
    category_id: Optional[int] = None
    search: Optional[str] = None
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None
    sort_field: str = DEFAULT_SORT
    descending: bool = False
    page: int = 1
    limit: int = DEFAULT_LIMIT

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    @classmethod
    def from_params(
        cls,
        category: Optional[str] = None,
        search: Optional[str] = None,
        sort: Optional[str] = None,
        page: Optional[str] = None,
        limit: Optional[str] = None,
        min_price: Optional[str] = None,
        max_price: Optional[str] = None,
    ) -> "ProductQuery":
        category_id = None
        if category not in (None, ""):
            category_id = _to_int(category)
            if category_id is None:
                raise ValidationFailed("category must be an integer id")

        sort = sort or DEFAULT_SORT
        descending = sort.startswith("-")
        field = sort.lstrip("-")
        if field not in SORT_FIELDS:
            field, descending = DEFAULT_SORT, False

        if limit is None:
            size = DEFAULT_LIMIT
        else:
            size = min(max(_to_int(limit) or FALLBACK_LIMIT, 1), MAX_LIMIT)

        return cls(
            category_id=category_id,
            search=search or None,
            min_price=_to_decimal(min_price, "minPrice"),
            max_price=_to_decimal(max_price, "maxPrice"),
            sort_field=field,
            descending=descending,
            page=max(_to_int(page) or 1, 1),
            limit=size,
        )

    def matches(self, p: Product) -> bool:
        if self.category_id is not None and p.category_id != self.category_id:
            return False
        if self.search:
            term = self.search.lower()
            if term not in p.name.lower() and term not in (p.description or "").lower():
                return False
        if self.min_price is not None and p.price < self.min_price:
            return False
        if self.max_price is not None and p.price > self.max_price:
            return False
        return True


# ---------------------------
# Products
# ---------------------------
async def list_products_logic(store: Store, query: ProductQuery) -> List[Dict[str, Any]]:
    found = [p for p in store.list_products() if query.matches(p)]
    found.sort(key=lambda p: (getattr(p, query.sort_field), p.id), reverse=query.descending)
    page = found[query.offset:query.offset + query.limit]
    return [p.model_dump(mode="json") for p in page]


async def get_product_logic(store: Store, product_id: int) -> Dict[str, Any]:
    p = store.get_product(product_id)
    if p is None:
        raise NotFound("Product not found")
    category = store.get_category(p.category_id) if p.category_id is not None else None
    out = p.model_dump(mode="json")
    out["category_name"] = category.name if category else None
    return out


async def create_product_logic(store: Store, payload: ProductIn) -> Dict[str, Any]:
    product = store.create_product(_make_product_fields(payload))
    logger.info("Created product %s (%s)", product.id, product.name)
    return product.model_dump(mode="json")


async def update_product_logic(store: Store, product_id: int, payload: ProductIn) -> Dict[str, Any]:
    # The row lock keeps an admin edit from interleaving with a checkout.
    async with store.transaction() as tx:
        rows = await tx.lock_products([product_id])
        current = rows.get(product_id)
        if current is None:
            raise NotFound("Not found")
        updated = current.model_copy(update={**_make_product_fields(payload), "updated_at": utcnow()})
        tx.put_product(updated)
    logger.info("Updated product %s", product_id)
    return updated.model_dump(mode="json")


async def delete_product_logic(store: Store, product_id: int) -> Dict[str, Any]:
    async with store.transaction() as tx:
        rows = await tx.lock_products([product_id])
        if product_id not in rows:
            raise NotFound("Not found")
        tx.delete_product(product_id)
    logger.info("Deleted product %s", product_id)
    return {"ok": True, "deleted": 1}


# ---------------------------
# Categories
# ---------------------------
async def list_categories_logic(store: Store) -> List[Dict[str, Any]]:
    categories = sorted(store.list_categories(), key=lambda c: (c.name, c.id))
    return [c.model_dump(mode="json") for c in categories]


async def create_category_logic(store: Store, payload: CategoryIn) -> Dict[str, Any]:
    category = store.create_category(payload.model_dump())
    logger.info("Created category %s (%s)", category.id, category.name)
    return category.model_dump(mode="json")


async def update_category_logic(store: Store, category_id: int, payload: CategoryIn) -> Dict[str, Any]:
    category = store.update_category(category_id, payload.model_dump())
    if category is None:
        raise NotFound("Not found")
    return category.model_dump(mode="json")


async def delete_category_logic(store: Store, category_id: int) -> Dict[str, Any]:
    # Products that still point at the category are left as they are.
    if not store.delete_category(category_id):
        raise NotFound("Not found")
    logger.info("Deleted category %s", category_id)
    return {"ok": True, "deleted": 1}
