import asyncio
import os

from sdk.storefront_client import StoreClient

BASE_URL = os.getenv("STOREFRONT_URL", "http://127.0.0.1:8085")
SHOPPERS = ["alice", "bob", "carol", "dave"]


async def simulate_purchase(shopper: str, client: StoreClient, product_id: int, qty: int):
    r = await client.checkout_async([{"id": product_id, "quantity": qty}])
    body = r.json()
    if r.status_code == 200:
        print(f"✅ {shopper} bought {qty} unit(s)")
    elif r.status_code == 409:
        short = body["insufficient"][0]
        print(f"❌ {shopper} was too late: {short['available']} left, wanted {short['requested']}")
    else:
        print(f"⚠️  {shopper} unexpected response {r.status_code}: {body}")


async def main():
    admin = StoreClient(base_url=BASE_URL)
    admin.login(os.getenv("STOREFRONT_ADMIN_USERNAME", "admin"), os.getenv("STOREFRONT_ADMIN_PASSWORD", "admin123"))

    category = admin.create_category("Demo", "Concurrency demo")
    product = admin.create_product("Gaming Laptop", 1499.0, stock_quantity=2, category_id=category["id"])
    print(f"\n🖥️  Created product {product['id']} with stock {product['stock_quantity']}")

    # every shopper gets its own session
    shoppers = {name: StoreClient(base_url=BASE_URL) for name in SHOPPERS}
    for client in shoppers.values():
        client.view_cart()

    print("\n⚡ Simulating concurrent checkouts...")
    await asyncio.gather(*(
        simulate_purchase(name, client, product["id"], 1) for name, client in shoppers.items()
    ))

    final = admin.get_product(product["id"])
    print(f"\n📦 Final stock: {final['stock_quantity']}")

    admin.delete_product(product["id"])
    admin.delete_category(category["id"])
    admin.logout()


if __name__ == "__main__":
    asyncio.run(main())
