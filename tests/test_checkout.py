# tests/test_checkout.py
from storefront.errors import StorageError
from tests.conftest import add_product


def stock_of(store, pid):
    return store.get_product(pid).stock_quantity


def test_checkout_decrements_then_rejects_when_short(client, store):
    p = add_product(store, stock=3)
    client.post("/api/cart/add", json={"productId": p.id, "quantity": 1, "name": p.name, "price": 10})

    r = client.post("/api/checkout", json={"items": [{"id": p.id, "quantity": 2}]})
    assert r.status_code == 200
    assert r.json() == {"ok": True}
    assert stock_of(store, p.id) == 1
    assert client.get("/api/cart").json()["items"] == []

    r2 = client.post("/api/checkout", json={"items": [{"id": p.id, "quantity": 2}]})
    assert r2.status_code == 409
    body = r2.json()
    assert body["insufficient"] == [{"id": p.id, "available": 1, "requested": 2}]
    assert "error" in body
    assert stock_of(store, p.id) == 1


def test_checkout_is_all_or_nothing(client, store):
    a = add_product(store, "A", stock=5)
    b = add_product(store, "B", stock=1)
    r = client.post("/api/checkout", json={"items": [{"id": a.id, "quantity": 2}, {"id": b.id, "quantity": 3}]})
    assert r.status_code == 409
    assert r.json()["insufficient"] == [{"id": b.id, "available": 1, "requested": 3}]
    assert stock_of(store, a.id) == 5
    assert stock_of(store, b.id) == 1


def test_failed_checkout_is_repeatable_and_keeps_cart(client, store):
    p = add_product(store, stock=1)
    client.post("/api/cart/add", json={"productId": p.id, "quantity": 2, "name": p.name, "price": 10})

    first = client.post("/api/checkout")
    second = client.post("/api/checkout")
    assert first.status_code == second.status_code == 409
    assert first.json() == second.json()
    assert client.get("/api/cart").json()["total_quantity"] == 2
    assert stock_of(store, p.id) == 1


def test_checkout_uses_session_cart(client, store):
    p = add_product(store, stock=4)
    client.post("/api/cart/add", json={"productId": p.id, "quantity": 1, "name": p.name, "price": 10})
    client.post("/api/cart/add", json={"productId": p.id, "quantity": 2, "name": p.name, "price": 10})

    r = client.post("/api/checkout", json={})
    assert r.status_code == 200
    assert stock_of(store, p.id) == 1
    assert client.get("/api/cart").json()["items"] == []


def test_explicit_items_take_priority_over_cart(client, store):
    in_cart = add_product(store, "In cart", stock=1)
    explicit = add_product(store, "Explicit", stock=1)
    client.post("/api/cart/add", json={"productId": in_cart.id, "quantity": 1})

    r = client.post("/api/checkout", json={"items": [{"id": explicit.id, "quantity": 1}]})
    assert r.status_code == 200
    assert stock_of(store, explicit.id) == 0
    assert stock_of(store, in_cart.id) == 1
    assert client.get("/api/cart").json()["items"] == []


def test_empty_cart_is_rejected(client):
    r = client.post("/api/checkout")
    assert r.status_code == 400
    assert r.json() == {"error": "Cart is empty"}


def test_items_that_cannot_be_used_are_rejected(client, store):
    p = add_product(store, stock=3)
    items = [{"id": "abc", "quantity": 1}, {"id": p.id, "quantity": 0}, {"id": p.id, "quantity": -2}]
    r = client.post("/api/checkout", json={"items": items})
    assert r.status_code == 400
    assert r.json() == {"error": "No valid items to check out"}
    assert stock_of(store, p.id) == 3


def test_bad_entries_are_dropped_and_strings_coerced(client, store):
    p = add_product(store, stock=3)
    items = [{"id": "nope", "quantity": 1}, {"id": str(p.id), "quantity": "2"}]
    r = client.post("/api/checkout", json={"items": items})
    assert r.status_code == 200
    assert stock_of(store, p.id) == 1


def test_repeated_ids_are_checked_against_their_total(client, store):
    p = add_product(store, stock=3)
    r = client.post("/api/checkout", json={"items": [{"id": p.id, "quantity": 2}, {"id": p.id, "quantity": 2}]})
    assert r.status_code == 409
    assert r.json()["insufficient"] == [{"id": p.id, "available": 3, "requested": 4}]
    assert stock_of(store, p.id) == 3


def test_unknown_product_reports_zero_available(client, store):
    p = add_product(store, stock=3)
    r = client.post("/api/checkout", json={"items": [{"id": p.id, "quantity": 1}, {"id": 999, "quantity": 1}]})
    assert r.status_code == 409
    assert r.json()["insufficient"] == [{"id": 999, "available": 0, "requested": 1}]
    assert stock_of(store, p.id) == 3


def test_unknown_ids_do_not_grow_lock_table(client, store):
    p = add_product(store, stock=3)
    items = [{"id": p.id, "quantity": 1}] + [{"id": 10_000 + i, "quantity": 1} for i in range(500)]
    for _ in range(2):
        r = client.post("/api/checkout", json={"items": items})
        assert r.status_code == 409
        assert len(r.json()["insufficient"]) == 500
    assert list(store._locks) == [f"product:{p.id}"]


def test_deleted_product_lock_is_dropped(admin_client, store):
    p = add_product(store, stock=3)
    admin_client.post("/api/checkout", json={"items": [{"id": p.id, "quantity": 1}]})
    assert f"product:{p.id}" in store._locks

    assert admin_client.delete(f"/api/products/{p.id}").status_code == 200
    assert f"product:{p.id}" not in store._locks


def test_storage_fault_rolls_back(client, store, monkeypatch):
    p = add_product(store, stock=3)
    client.post("/api/cart/add", json={"productId": p.id, "quantity": 1})

    def boom(**changes):
        raise StorageError("disk full")

    monkeypatch.setattr(store, "_write", boom)
    r = client.post("/api/checkout")
    assert r.status_code == 500
    assert r.json() == {"error": "Checkout failed, please try again"}
    assert stock_of(store, p.id) == 3
    assert client.get("/api/cart").json()["total_quantity"] == 1

    # locks were released: the retry goes through once storage is back
    monkeypatch.undo()
    r2 = client.post("/api/checkout")
    assert r2.status_code == 200
    assert stock_of(store, p.id) == 2


def test_checkout_touches_updated_at(client, store):
    p = add_product(store, stock=3)
    before = p.updated_at
    client.post("/api/checkout", json={"items": [{"id": p.id, "quantity": 1}]})
    assert store.get_product(p.id).updated_at >= before
    assert store.get_product(p.id).created_at == p.created_at
