"""
storefront/sessions.py - Server-side sessions and the per-session cart.

The browser only holds a signed cookie with the session id (Starlette's
``SessionMiddleware``); identity (``admin_id``) and the cart live here, keyed
by that id. Handlers receive an explicit ``SessionContext`` through
``Depends(get_session)`` instead of reaching for request-global state.
"""
import logging
import time
import uuid
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from fastapi import Request

from .errors import ValidationFailed
from .models import CartLine

logger = logging.getLogger("storefront.sessions")


class SessionData:
    def __init__(self):
        self.admin_id: Optional[int] = None
        self.cart: List[CartLine] = []
        self.last_seen = time.monotonic()


class SessionStore:
    def __init__(self, max_age: int = 60 * 60 * 4):
        self.max_age = max_age
        self._sessions: Dict[str, SessionData] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self) -> Tuple[str, SessionData]:
        self._purge()
        sid = uuid.uuid4().hex
        data = SessionData()
        self._sessions[sid] = data
        return sid, data

    def get(self, sid: str) -> Optional[SessionData]:
        data = self._sessions.get(sid)
        if data is None:
            return None
        now = time.monotonic()
        if now - data.last_seen > self.max_age:
            del self._sessions[sid]
            return None
        data.last_seen = now
        return data

    def destroy(self, sid: str) -> None:
        self._sessions.pop(sid, None)

    def rotate(self, sid: str) -> Tuple[str, SessionData]:
        """Move a session's data under a fresh id; the old id stops working."""
        data = self._sessions.pop(sid, None) or SessionData()
        new_sid = uuid.uuid4().hex
        data.last_seen = time.monotonic()
        self._sessions[new_sid] = data
        return new_sid, data

    def _purge(self) -> None:
        cutoff = time.monotonic() - self.max_age
        expired = [sid for sid, data in self._sessions.items() if data.last_seen < cutoff]
        for sid in expired:
            del self._sessions[sid]
        if expired:
            logger.debug("Purged %d expired sessions", len(expired))


class SessionContext:
    """Handle on one session: its admin identity and its cart."""

    def __init__(self, sid: str, data: SessionData, store: SessionStore, cookie: Optional[Dict[str, Any]] = None):
        self.sid = sid
        self._data = data
        self._store = store
        self._cookie = cookie if cookie is not None else {}

    @property
    def admin_id(self) -> Optional[int]:
        return self._data.admin_id

    @admin_id.setter
    def admin_id(self, value: Optional[int]) -> None:
        self._data.admin_id = value

    def destroy(self) -> None:
        self._store.destroy(self.sid)
        self._data.admin_id = None
        self._data.cart = []

    def rotate(self) -> None:
        self.sid, self._data = self._store.rotate(self.sid)
        self._cookie["sid"] = self.sid

    # ---------------------------
    # Cart
    # ---------------------------
    def cart_items(self) -> List[CartLine]:
        return [line.model_copy() for line in self._data.cart]

    def add_to_cart(self, product_id: int, quantity: int = 1, name: str = "", price: Decimal = Decimal("0")) -> None:
        if quantity <= 0:
            raise ValidationFailed("quantity must be > 0")
        for line in self._data.cart:
            if line.id == product_id:
                line.quantity += quantity
                return
        self._data.cart.append(CartLine(id=product_id, name=name, price=price, quantity=quantity))

    def update_cart(self, product_id: int, quantity: int) -> None:
        cart = self._data.cart
        for index, line in enumerate(cart):
            if line.id == product_id:
                if quantity <= 0:
                    del cart[index]
                else:
                    line.quantity = quantity
                return

    def clear_cart(self) -> None:
        self._data.cart = []

    def cart_summary(self) -> Dict[str, Any]:
        items = self._data.cart
        total = sum((line.price * line.quantity for line in items), Decimal("0"))
        return {
            "items": [line.model_dump(mode="json") for line in items],
            "total_quantity": sum(line.quantity for line in items),
            "total": float(total),
        }


def get_session(request: Request) -> SessionContext:
    sessions: SessionStore = request.app.state.sessions
    sid = request.session.get("sid")
    data = sessions.get(sid) if sid else None
    if data is None:
        sid, data = sessions.create()
        request.session["sid"] = sid
    return SessionContext(sid, data, sessions, request.session)
