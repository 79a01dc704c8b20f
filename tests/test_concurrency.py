# tests/test_concurrency.py
import asyncio
import random

import httpx
import pytest

from storefront.checkout import checkout
from storefront.database import Store
from storefront.errors import InsufficientStock, TransactionFailure
from tests.conftest import add_product, new_session


async def _checkout_task(app, product_id):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as ac:
        return await ac.post("/api/checkout", json={"items": [{"id": product_id, "quantity": 1}]})


def test_concurrent_last_item(app, store):
    p = add_product(store, "last", stock=1)

    async def run():
        return await asyncio.gather(*(_checkout_task(app, p.id) for _ in range(10)))

    results = asyncio.run(run())
    statuses = sorted(r.status_code for r in results)
    # exactly one buyer gets the unit, everyone else sees it gone
    assert statuses == [200] + [409] * 9
    assert store.get_product(p.id).stock_quantity == 0


def test_checkout_waits_for_row_lock():
    async def scenario():
        store = Store(lock_timeout=1.0)
        p = add_product(store, stock=1)
        holder = store.begin()
        await holder.lock_products([p.id])

        task = asyncio.create_task(checkout(store, new_session(), [{"id": p.id, "quantity": 1}]))
        await asyncio.sleep(0.05)
        assert not task.done()

        holder.set_stock(p.id, 0)
        await holder.commit()
        with pytest.raises(InsufficientStock) as info:
            await task
        return store, p, info.value.insufficient

    store, p, insufficient = asyncio.run(scenario())
    assert insufficient == [{"id": p.id, "available": 0, "requested": 1}]
    assert store.get_product(p.id).stock_quantity == 0


def test_disjoint_products_do_not_block():
    async def scenario():
        store = Store(lock_timeout=1.0)
        busy = add_product(store, "busy", stock=1)
        free = add_product(store, "free", stock=1)
        holder = store.begin()
        await holder.lock_products([busy.id])
        await asyncio.wait_for(checkout(store, new_session(), [{"id": free.id, "quantity": 1}]), timeout=0.5)
        await holder.rollback()
        return store, free

    store, free = asyncio.run(scenario())
    assert store.get_product(free.id).stock_quantity == 0


def test_lock_timeout_fails_without_changes():
    async def scenario():
        store = Store(lock_timeout=0.05)
        a = add_product(store, "a", stock=2)
        b = add_product(store, "b", stock=2)
        holder = store.begin()
        await holder.lock_products([b.id])

        with pytest.raises(TransactionFailure):
            await checkout(store, new_session(), [{"id": a.id, "quantity": 1}, {"id": b.id, "quantity": 1}])
        await holder.rollback()

        # nothing stayed locked: a new checkout over both rows succeeds
        await checkout(store, new_session(), [{"id": a.id, "quantity": 1}, {"id": b.id, "quantity": 1}])
        return store, a, b

    store, a, b = asyncio.run(scenario())
    assert store.get_product(a.id).stock_quantity == 1
    assert store.get_product(b.id).stock_quantity == 1


def test_cancelled_checkout_releases_locks():
    async def scenario():
        store = Store(lock_timeout=1.0)
        a = add_product(store, "a", stock=1)
        b = add_product(store, "b", stock=1)
        holder = store.begin()
        await holder.lock_products([b.id])

        task = asyncio.create_task(checkout(store, new_session(), [{"id": a.id, "quantity": 1}, {"id": b.id, "quantity": 1}]))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        await holder.rollback()

        await asyncio.wait_for(checkout(store, new_session(), [{"id": a.id, "quantity": 1}]), timeout=0.5)
        return store, a, b

    store, a, b = asyncio.run(scenario())
    assert store.get_product(a.id).stock_quantity == 0
    assert store.get_product(b.id).stock_quantity == 1


def test_stock_never_goes_negative():
    rng = random.Random(7)

    async def shopper(store, ids):
        items = [{"id": pid, "quantity": rng.randint(1, 3)} for pid in rng.sample(ids, rng.randint(1, len(ids)))]
        try:
            await checkout(store, new_session(), items)
            return items
        except InsufficientStock:
            return []

    async def scenario():
        store = Store(lock_timeout=1.0)
        ids = [add_product(store, f"p{i}", stock=10).id for i in range(4)]
        sold = await asyncio.gather(*(shopper(store, ids) for _ in range(40)))
        return store, ids, sold

    store, ids, sold = asyncio.run(scenario())
    for pid in ids:
        taken = sum(item["quantity"] for items in sold for item in items if item["id"] == pid)
        assert store.get_product(pid).stock_quantity == 10 - taken
        assert store.get_product(pid).stock_quantity >= 0
