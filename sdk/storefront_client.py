# sdk/storefront_client.py
import os
from typing import Any, Dict, List, Optional

import httpx
import requests
from rich import print

DEFAULT_BASE_URL = os.getenv("STOREFRONT_URL", "http://127.0.0.1:8085")


class StoreClient:
    """
    Thin client for the storefront API.

    The underlying ``requests.Session`` keeps the session cookie, so the cart
    and the admin login carry over between calls on the same client.
    """

    def __init__(self, base_url: str = DEFAULT_BASE_URL, timeout: int = 10):
        self.base_url = base_url.rstrip("/")
        self.session = requests.Session()
        self.timeout = timeout

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _json(self, r: requests.Response):
        r.raise_for_status()
        return r.json()

    # Catalog
    def list_products(
        self,
        category: Optional[int] = None,
        search: Optional[str] = None,
        sort: Optional[str] = None,
        page: Optional[int] = None,
        limit: Optional[int] = None,
        min_price: Optional[float] = None,
        max_price: Optional[float] = None,
    ) -> List[Dict[str, Any]]:
        params = {
            "category": category,
            "search": search,
            "sort": sort,
            "page": page,
            "limit": limit,
            "minPrice": min_price,
            "maxPrice": max_price,
        }
        params = {k: v for k, v in params.items() if v is not None}
        return self._json(self.session.get(self._url("/api/products"), params=params, timeout=self.timeout))

    def get_product(self, product_id: int) -> Dict[str, Any]:
        return self._json(self.session.get(self._url(f"/api/products/{product_id}"), timeout=self.timeout))

    def list_categories(self) -> List[Dict[str, Any]]:
        return self._json(self.session.get(self._url("/api/categories"), timeout=self.timeout))

    # Admin
    def login(self, username: str, password: str) -> Dict[str, Any]:
        r = self.session.post(
            self._url("/api/auth/login"), json={"username": username, "password": password}, timeout=self.timeout
        )
        return self._json(r)

    def logout(self) -> Dict[str, Any]:
        return self._json(self.session.post(self._url("/api/auth/logout"), timeout=self.timeout))

    def me(self) -> Dict[str, Any]:
        return self._json(self.session.get(self._url("/api/auth/me"), timeout=self.timeout))

    def create_product(
        self,
        name: str,
        price: float,
        stock_quantity: int = 0,
        category_id: Optional[int] = None,
        description: str = "",
        **extra: Any,
    ) -> Dict[str, Any]:
        payload = {
            "name": name,
            "price": price,
            "stock_quantity": stock_quantity,
            "category_id": category_id,
            "description": description,
            **extra,
        }
        return self._json(self.session.post(self._url("/api/products"), json=payload, timeout=self.timeout))

    def update_product(self, product_id: int, **fields: Any) -> Dict[str, Any]:
        current = self.get_product(product_id)
        editable = ("name", "description", "price", "category_id", "stock_quantity", "image_url", "specifications")
        payload = {k: current.get(k) for k in editable}
        payload.update(fields)
        r = self.session.put(self._url(f"/api/products/{product_id}"), json=payload, timeout=self.timeout)
        return self._json(r)

    def delete_product(self, product_id: int) -> Dict[str, Any]:
        return self._json(self.session.delete(self._url(f"/api/products/{product_id}"), timeout=self.timeout))

    def create_category(self, name: str, description: str = "") -> Dict[str, Any]:
        r = self.session.post(
            self._url("/api/categories"), json={"name": name, "description": description}, timeout=self.timeout
        )
        return self._json(r)

    def delete_category(self, category_id: int) -> Dict[str, Any]:
        return self._json(self.session.delete(self._url(f"/api/categories/{category_id}"), timeout=self.timeout))

    # Cart
    def view_cart(self) -> Dict[str, Any]:
        return self._json(self.session.get(self._url("/api/cart"), timeout=self.timeout))

    def add_to_cart(self, product_id: int, quantity: int = 1, name: str = "", price: float = 0) -> Dict[str, Any]:
        payload = {"productId": product_id, "quantity": quantity, "name": name, "price": price}
        return self._json(self.session.post(self._url("/api/cart/add"), json=payload, timeout=self.timeout))

    def update_cart(self, product_id: int, quantity: int) -> Dict[str, Any]:
        payload = {"productId": product_id, "quantity": quantity}
        return self._json(self.session.post(self._url("/api/cart/update"), json=payload, timeout=self.timeout))

    def clear_cart(self) -> Dict[str, Any]:
        return self._json(self.session.post(self._url("/api/cart/clear"), timeout=self.timeout))

    # Checkout
    def checkout(self, items: Optional[List[Dict[str, int]]] = None) -> requests.Response:
        body = {"items": items} if items else {}
        # no raise_for_status(): callers inspect 409 and its `insufficient` list
        return self.session.post(self._url("/api/checkout"), json=body, timeout=self.timeout)

    async def checkout_async(self, items: Optional[List[Dict[str, int]]] = None) -> httpx.Response:
        body = {"items": items} if items else {}
        cookies = self.session.cookies.get_dict()
        async with httpx.AsyncClient(base_url=self.base_url, cookies=cookies, timeout=self.timeout) as client:
            return await client.post("/api/checkout", json=body)


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Storefront API client")
    subparsers = parser.add_subparsers(dest="command", required=True)

    lp = subparsers.add_parser("list-products", help="List products")
    lp.add_argument("--category", type=int, help="Filter by category id")
    lp.add_argument("--search", help="Search in name and description")
    lp.add_argument("--sort", help="name, price or created_at; prefix '-' for descending")
    lp.add_argument("--page", type=int)
    lp.add_argument("--limit", type=int)

    gp = subparsers.add_parser("get-product", help="Get a product by its ID")
    gp.add_argument("--product-id", type=int, required=True)

    subparsers.add_parser("list-categories", help="List categories")

    co = subparsers.add_parser("buy", help="Check out a single product")
    co.add_argument("--product-id", type=int, required=True)
    co.add_argument("--qty", type=int, default=1)

    args = parser.parse_args()
    c = StoreClient()

    if args.command == "list-products":
        print(c.list_products(category=args.category, search=args.search, sort=args.sort, page=args.page, limit=args.limit))
    elif args.command == "get-product":
        print(c.get_product(args.product_id))
    elif args.command == "list-categories":
        print(c.list_categories())
    elif args.command == "buy":
        r = c.checkout([{"id": args.product_id, "quantity": args.qty}])
        print(r.status_code, r.json())
