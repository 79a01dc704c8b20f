# storefront/database.py
import asyncio
import json
import logging
import os
import tempfile
from contextlib import asynccontextmanager
from typing import Any, Dict, Iterable, List, Optional, Set

from pydantic import ValidationError

from .errors import StorageError
from .models import Admin, Category, Product, utcnow

# This file holds the catalog tables, the per-row locks and the unit of work
# used to change product rows.

logger = logging.getLogger("storefront.database")

_TABLES = ("products", "categories", "admins")


class Transaction:
    """
    One unit of work over product rows.

    ``lock_products`` takes exclusive locks on a set of rows (ascending id
    order, all at once) and returns their current values. The locks are held
    until ``commit`` or ``rollback``. Writes are staged on the transaction and
    reach the store only on commit, in a single step.
    """

    def __init__(self, store: "Store", lock_timeout: float):
        self._store = store
        self._lock_timeout = lock_timeout
        self._held: List[asyncio.Lock] = []
        self._locked: Set[int] = set()
        self._locking_done = False
        self._pending: Dict[int, Optional[Product]] = {}
        self.closed = False

    @property
    def locked_ids(self) -> Set[int]:
        return set(self._locked)

    async def lock_products(self, ids: Iterable[int]) -> Dict[int, Product]:
        self._check_open()
        if self._locking_done:
            raise StorageError("rows are already locked by this transaction")
        self._locking_done = True

        # Only existing rows get a lock; an absent id has nothing to protect.
        products = self._store.products
        pid = None
        try:
            for pid in sorted(set(ids) & products.keys()):
                lock = self._store._get_lock(f"product:{pid}")
                await asyncio.wait_for(lock.acquire(), timeout=self._lock_timeout)
                self._held.append(lock)
                self._locked.add(pid)
        except asyncio.TimeoutError as exc:
            self._release()
            raise StorageError(f"timed out waiting for lock on product {pid}") from exc
        except BaseException:
            self._release()
            raise

        products = self._store.products
        return {pid: products[pid].model_copy() for pid in self._locked if pid in products}

    def set_stock(self, product_id: int, quantity: int) -> Product:
        row = self._row(product_id)
        if quantity < 0:
            raise StorageError(f"stock of product {product_id} cannot go below zero")
        staged = row.model_copy(update={"stock_quantity": quantity, "updated_at": utcnow()})
        self._pending[product_id] = staged
        return staged

    def put_product(self, product: Product) -> None:
        self._row(product.id)
        self._pending[product.id] = product

    def delete_product(self, product_id: int) -> None:
        self._row(product_id)
        self._pending[product_id] = None

    async def commit(self) -> None:
        self._check_open()
        deleted = []
        try:
            if self._pending:
                self._store._write(products=self._pending)
                deleted = [pid for pid, row in self._pending.items() if row is None]
        finally:
            self.closed = True
            self._release()
        for pid in deleted:
            self._store._drop_lock(f"product:{pid}")

    async def rollback(self) -> None:
        if self.closed:
            return
        self._pending.clear()
        self.closed = True
        self._release()

    def _row(self, product_id: int) -> Product:
        self._check_open()
        if product_id not in self._locked:
            raise StorageError(f"product {product_id} is not locked by this transaction")
        if product_id in self._pending:
            row = self._pending[product_id]
        else:
            row = self._store.products.get(product_id)
        if row is None:
            raise StorageError(f"product {product_id} does not exist")
        return row

    def _check_open(self) -> None:
        if self.closed:
            raise StorageError("transaction is already closed")

    def _release(self) -> None:
        for lock in reversed(self._held):
            if lock.locked():
                lock.release()
            else:
                logger.warning("Row lock was already released before the transaction closed")
        self._held.clear()
        self._locked.clear()


class Store:
    """
    Catalog storage: products, categories and admins.

    Kept in memory; when ``data_file`` is set every write is flushed to that
    JSON document before it becomes visible, so a failed flush changes nothing.
    """

    def __init__(self, data_file: Optional[str] = None, lock_timeout: float = 5.0):
        self.data_file = data_file
        self.lock_timeout = lock_timeout
        self.products: Dict[int, Product] = {}
        self.categories: Dict[int, Category] = {}
        self.admins: Dict[int, Admin] = {}
        self._sequences: Dict[str, int] = {name: 0 for name in _TABLES}
        self._locks: Dict[str, asyncio.Lock] = {}
        if data_file:
            self._load()

    def _get_lock(self, key: str) -> asyncio.Lock:
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]

    def _drop_lock(self, key: str) -> None:
        # Ids are never reused, so a deleted row's lock is only kept while in use.
        lock = self._locks.get(key)
        if lock is not None and not lock.locked() and not getattr(lock, "_waiters", None):
            del self._locks[key]

    # ---------------------------
    # Transactions
    # ---------------------------
    def begin(self, lock_timeout: Optional[float] = None) -> Transaction:
        return Transaction(self, lock_timeout if lock_timeout is not None else self.lock_timeout)

    @asynccontextmanager
    async def transaction(self):
        tx = self.begin()
        try:
            yield tx
            if not tx.closed:
                await tx.commit()
        finally:
            await tx.rollback()

    # ---------------------------
    # Reads
    # ---------------------------
    def list_products(self) -> List[Product]:
        return list(self.products.values())

    def get_product(self, product_id: int) -> Optional[Product]:
        return self.products.get(product_id)

    def list_categories(self) -> List[Category]:
        return list(self.categories.values())

    def get_category(self, category_id: int) -> Optional[Category]:
        return self.categories.get(category_id)

    def find_admin(self, username: str) -> Optional[Admin]:
        for admin in self.admins.values():
            if admin.username == username:
                return admin
        return None

    # ---------------------------
    # Writes that need no row lock
    # ---------------------------
    def create_product(self, fields: Dict[str, Any]) -> Product:
        pid = self._sequences["products"] + 1
        now = utcnow()
        product = Product(id=pid, created_at=now, updated_at=now, **fields)
        self._write(products={pid: product}, sequences={"products": pid})
        return product

    def create_category(self, fields: Dict[str, Any]) -> Category:
        cid = self._sequences["categories"] + 1
        category = Category(id=cid, **fields)
        self._write(categories={cid: category}, sequences={"categories": cid})
        return category

    def update_category(self, category_id: int, fields: Dict[str, Any]) -> Optional[Category]:
        current = self.categories.get(category_id)
        if current is None:
            return None
        category = Category(**{**current.model_dump(), **fields, "id": category_id})
        self._write(categories={category_id: category})
        return category

    def delete_category(self, category_id: int) -> bool:
        if category_id not in self.categories:
            return False
        self._write(categories={category_id: None})
        return True

    def create_admin(self, username: str, password_hash: str) -> Admin:
        if self.find_admin(username) is not None:
            raise StorageError(f"admin {username!r} already exists")
        aid = self._sequences["admins"] + 1
        admin = Admin(id=aid, username=username, password_hash=password_hash)
        self._write(admins={aid: admin}, sequences={"admins": aid})
        return admin

    # ---------------------------
    # Persistence
    # ---------------------------
    def _write(
        self,
        products: Optional[Dict[int, Optional[Product]]] = None,
        categories: Optional[Dict[int, Optional[Category]]] = None,
        admins: Optional[Dict[int, Optional[Admin]]] = None,
        sequences: Optional[Dict[str, int]] = None,
    ) -> None:
        # Runs without awaiting: the change is flushed and applied as one step.
        tables = {
            "products": _merged(self.products, products),
            "categories": _merged(self.categories, categories),
            "admins": _merged(self.admins, admins),
        }
        seqs = {**self._sequences, **(sequences or {})}
        if self.data_file:
            self._flush(tables, seqs)
        self.products = tables["products"]
        self.categories = tables["categories"]
        self.admins = tables["admins"]
        self._sequences = seqs

    def _flush(self, tables: Dict[str, Dict[int, Any]], sequences: Dict[str, int]) -> None:
        doc = {name: [row.model_dump(mode="json") for row in tables[name].values()] for name in _TABLES}
        doc["sequences"] = sequences
        directory = os.path.dirname(os.path.abspath(self.data_file))
        tmp = None
        try:
            fd, tmp = tempfile.mkstemp(prefix=".storefront-", suffix=".json", dir=directory)
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(doc, fh, indent=2)
            os.replace(tmp, self.data_file)
        except OSError as exc:
            logger.exception("Error saving database to %s", self.data_file)
            if tmp and os.path.exists(tmp):
                os.unlink(tmp)
            raise StorageError(f"could not save {self.data_file}") from exc

    def _load(self) -> None:
        if not os.path.exists(self.data_file):
            logger.info("Data file %s not found, starting with an empty store", self.data_file)
            return
        try:
            with open(self.data_file, encoding="utf-8") as fh:
                doc = json.load(fh)
            self.products = {p.id: p for p in map(Product.model_validate, doc.get("products", []))}
            self.categories = {c.id: c for c in map(Category.model_validate, doc.get("categories", []))}
            self.admins = {a.id: a for a in map(Admin.model_validate, doc.get("admins", []))}
        except (OSError, ValueError, ValidationError) as exc:
            raise StorageError(f"could not load {self.data_file}: {exc}") from exc

        # Files written by older tools carry no sequences; never reuse an id.
        saved = doc.get("sequences") or {}
        for name in _TABLES:
            table = getattr(self, name)
            self._sequences[name] = max(int(saved.get(name, 0)), max(table, default=0))
        logger.info(
            "Database loaded: %d products, %d categories, %d admins",
            len(self.products), len(self.categories), len(self.admins),
        )


def _merged(current: Dict[int, Any], changes: Optional[Dict[int, Any]]) -> Dict[int, Any]:
    if not changes:
        return current
    out = dict(current)
    for key, row in changes.items():
        if row is None:
            out.pop(key, None)
        else:
            out[key] = row
    return out
