"""
storefront/checkout.py - Checkout transaction processor.

Turns a cart (or an explicit item list) into one all-or-nothing stock
decrement:

    Started -> Locking -> Validating -> Aborted            (InsufficientStock)
                                     -> Committing -> Committed
    any step after Started           -> Failed             (TransactionFailure)

Every distinct product row is locked before its stock is read, so two
checkouts over overlapping products serialize; the loser of a race for the
last unit sees the stock the winner left behind. On every failure path the
store is left exactly as it was.
"""
import enum
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from .database import Store
from .errors import EmptyCart, InsufficientStock, InvalidItems, TransactionFailure
from .sessions import SessionContext

logger = logging.getLogger("storefront.checkout")

LOG_LINES = 10


class CheckoutState(str, enum.Enum):
    STARTED = "started"
    LOCKING = "locking"
    VALIDATING = "validating"
    ABORTED = "aborted"
    COMMITTING = "committing"
    COMMITTED = "committed"
    FAILED = "failed"


@dataclass
class LineItem:
    product_id: int
    quantity: int


def _coerce_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def normalize_items(raw_items: Iterable[Any]) -> List[LineItem]:
    """
    Coerce raw ``{id, quantity}`` entries into line items.

    Entries whose id is not an integer or whose quantity is not a positive
    integer are dropped. Repeated ids are merged into one line (quantities
    summed) so the stock check sees the full amount asked for.
    """
    merged: Dict[int, int] = {}
    for entry in raw_items:
        if isinstance(entry, dict):
            pid = _coerce_int(entry.get("id", entry.get("productId")))
            qty = _coerce_int(entry.get("quantity"))
        else:
            pid = _coerce_int(getattr(entry, "id", None))
            qty = _coerce_int(getattr(entry, "quantity", None))
        if pid is None or qty is None or qty <= 0:
            continue
        merged[pid] = merged.get(pid, 0) + qty
    return [LineItem(pid, qty) for pid, qty in merged.items()]


def resolve_items(session: SessionContext, items: Optional[List[Any]] = None) -> List[LineItem]:
    raw = items if items else session.cart_items()
    if not raw:
        raise EmptyCart()
    lines = normalize_items(raw)
    if not lines:
        raise InvalidItems()
    return lines


async def checkout(store: Store, session: SessionContext, items: Optional[List[Any]] = None) -> List[LineItem]:
    """
    Run one checkout. Returns the committed line items; raises ``EmptyCart``,
    ``InvalidItems``, ``InsufficientStock`` or ``TransactionFailure``.
    """
    lines = resolve_items(session, items)
    state = CheckoutState.STARTED
    tx = store.begin()

    def advance(new_state: CheckoutState) -> None:
        nonlocal state
        logger.debug("checkout %s: %s -> %s", session.sid[:8], state.value, new_state.value)
        state = new_state

    try:
        advance(CheckoutState.LOCKING)
        rows = await tx.lock_products(line.product_id for line in lines)

        advance(CheckoutState.VALIDATING)
        insufficient = []
        for line in lines:
            row = rows.get(line.product_id)
            available = row.stock_quantity if row is not None else 0
            if available < line.quantity:
                insufficient.append({"id": line.product_id, "available": available, "requested": line.quantity})
        if insufficient:
            await tx.rollback()
            advance(CheckoutState.ABORTED)
            logger.info(
                "Checkout rejected, insufficient stock on %d line(s): %s%s",
                len(insufficient), insufficient[:LOG_LINES], " ..." if len(insufficient) > LOG_LINES else "",
            )
            raise InsufficientStock(insufficient)

        advance(CheckoutState.COMMITTING)
        for line in lines:
            tx.set_stock(line.product_id, rows[line.product_id].stock_quantity - line.quantity)
        await tx.commit()
        advance(CheckoutState.COMMITTED)
    except InsufficientStock:
        raise
    except Exception as exc:
        await tx.rollback()
        advance(CheckoutState.FAILED)
        logger.exception("Checkout failed and was rolled back")
        raise TransactionFailure() from exc
    finally:
        # Also covers cancellation: nothing stays locked or half-staged.
        await tx.rollback()

    session.clear_cart()
    logger.info(
        "Checkout committed: %s",
        ", ".join(f"{line.product_id}x{line.quantity}" for line in lines),
    )
    return lines
