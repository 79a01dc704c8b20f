# cli.py - interactive storefront shell with autocomplete
import os
import sys
from datetime import datetime
from typing import Any, Dict, List, Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.prompt import Confirm, IntPrompt, Prompt
from rich.table import Table
from rich.text import Text

from prompt_toolkit import prompt
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.styles import Style as PromptStyle

import requests

from sdk.storefront_client import StoreClient

console = Console()
c = StoreClient(base_url=os.getenv("STOREFRONT_URL", "http://127.0.0.1:8085"))

status_message = "Ready"
product_cache: List[Dict[str, Any]] = []

custom_style = PromptStyle.from_dict({
    'completion-menu.completion': 'bg:#008888 #ffffff',
    'completion-menu.completion.current': 'bg:#00aaaa #000000',
    'scrollbar.background': 'bg:#88aaaa',
    'scrollbar.button': 'bg:#222222',
})


# ---------------------------
# Display helpers
# ---------------------------
def show_products(products: List[Dict[str, Any]]):
    if not products:
        console.print("[italic yellow]No products found[/italic yellow]")
        return

    table = Table(
        title="📦 Products Catalog",
        box=box.ROUNDED,
        header_style="bold cyan",
        title_style="bold magenta",
        show_lines=True
    )
    table.add_column("ID", style="dim", width=6)
    table.add_column("Name", style="bold", width=24)
    table.add_column("Price", justify="right", width=10)
    table.add_column("Stock", justify="right", width=8)
    table.add_column("Category", width=15)

    for p in products:
        stock = p.get("stock_quantity", 0)
        stock_style = "red" if stock == 0 else "white"
        table.add_row(
            str(p.get("id", "N/A")),
            p.get("name", "N/A"),
            f"${p.get('price', 0):.2f}",
            f"[{stock_style}]{stock}[/{stock_style}]",
            p.get("category_name") or str(p.get("category_id") or "-"),
        )
    console.print(table)


def show_categories(categories: List[Dict[str, Any]]):
    table = Table(title="🏷️ Categories", box=box.ROUNDED, header_style="bold cyan")
    table.add_column("ID", style="dim", width=6)
    table.add_column("Name", style="bold", width=20)
    table.add_column("Description", width=40)
    for cat in categories:
        table.add_row(str(cat["id"]), cat["name"], cat.get("description", ""))
    console.print(table)


def show_cart(cart: Dict[str, Any]):
    title = Text()
    title.append("🛒 Shopping Cart", style="bold")
    title.append(f" - Total: ${cart.get('total', 0):.2f}", style="bold green")

    items = cart.get("items", [])
    if not items:
        console.print(Panel("Your cart is empty 🛍️", title=title, style="blue"))
        return

    table = Table(box=box.ROUNDED, header_style="bold blue", show_lines=True)
    table.add_column("ID", style="dim", width=6)
    table.add_column("Product", style="bold", width=30)
    table.add_column("Qty", justify="right", width=8)
    table.add_column("Price", justify="right", width=12)
    table.add_column("Subtotal", justify="right", width=12)

    for it in items:
        table.add_row(
            str(it["id"]),
            it.get("name") or f"Product {it['id']}",
            str(it["quantity"]),
            f"${it['price']:.2f}",
            f"${it['price'] * it['quantity']:.2f}",
        )
    console.print(Panel(table, title=title, border_style="blue"))


def show_insufficient(body: Dict[str, Any]):
    table = Table(title="❌ Not enough stock", box=box.ROUNDED, header_style="bold red")
    table.add_column("Product", width=10)
    table.add_column("Available", justify="right", width=10)
    table.add_column("Requested", justify="right", width=10)
    for row in body.get("insufficient", []):
        table.add_row(str(row["id"]), str(row["available"]), str(row["requested"]))
    console.print(table)


def show_status(message: str, is_success: bool = True):
    style = "green" if is_success else "red"
    return Panel.fit(f"[{style}]{message}[/{style}]", title="Status")


# ---------------------------
# API wrapper
# ---------------------------
def _error_text(e: Exception) -> str:
    if isinstance(e, requests.exceptions.HTTPError) and e.response is not None:
        try:
            return f"HTTP {e.response.status_code}: {e.response.json().get('error')}"
        except ValueError:
            return f"HTTP {e.response.status_code}"
    return str(e)


def try_api(fn, *args, success_msg: Optional[str] = None, **kwargs):
    """
    Calls fn(*args, **kwargs) behind a spinner; prints a status panel and
    returns None when the call fails.
    """
    global status_message
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
        ) as progress:
            progress.add_task(description="Processing...", total=None)
            result = fn(*args, **kwargs)

        if success_msg:
            status_message = success_msg
            console.print(show_status(success_msg, True))
        return result
    except (requests.exceptions.RequestException, ValueError) as e:
        status_message = f"Error: {_error_text(e)}"
        console.print(show_status(status_message, False))
        return None


# ---------------------------
# Autocompletion and input helpers
# ---------------------------
def get_product_completer():
    global product_cache
    if not product_cache:
        product_cache = try_api(c.list_products) or []
    return WordCompleter([str(p["id"]) for p in product_cache], ignore_case=True)


def prompt_with_autocomplete(message: str, completer=None, default: str = ""):
    return prompt(f"{message} ", completer=completer, style=custom_style, default=default)


def ask_float(message: str, default: float = 10.0) -> float:
    while True:
        raw = Prompt.ask(message, default=str(default))
        try:
            return float(raw)
        except ValueError:
            console.print("[red]Please enter a valid number.[/red]")


def ask_product_id() -> Optional[int]:
    raw = prompt_with_autocomplete("Enter product ID", completer=get_product_completer()).strip()
    try:
        return int(raw)
    except ValueError:
        console.print("[red]Product IDs are numbers.[/red]")
        return None


def create_header():
    header = Table(show_header=False, box=box.ROUNDED)
    header.add_column("left", width=30)
    header.add_column("center", width=40)
    header.add_column("right", width=30)
    now = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    header.add_row(
        "🛍️ Storefront",
        f"[bold blue]{c.base_url}[/bold blue]",
        f"[dim]{now}[/dim]"
    )
    return Panel(header, style="bold blue")


# ---------------------------
# Actions
# ---------------------------
def do_checkout():
    r = try_api(c.checkout)
    if r is None:
        return
    body = r.json()
    if r.status_code == 200:
        console.print(Panel.fit("[green]Order placed, stock reserved.[/green]", title="✅ Checkout"))
    elif r.status_code == 409:
        show_insufficient(body)
    else:
        console.print(Panel.fit(f"[red]Checkout failed:[/red] {body.get('error')}", title="❌ Checkout"))


def do_add_to_cart():
    pid = ask_product_id()
    if pid is None:
        return
    product = try_api(c.get_product, pid)
    if not product:
        return
    qty = IntPrompt.ask("Enter quantity", default=1)
    cart = try_api(
        c.add_to_cart, pid, qty, product["name"], product["price"],
        success_msg=f"Added {qty} x {product['name']} to cart"
    )
    if cart:
        show_cart(cart)


def do_create_product():
    global product_cache
    name = prompt_with_autocomplete("Enter product name")
    price = ask_float("💰 Price", default=10.0)
    stock = IntPrompt.ask("📦 Stock quantity", default=1)
    category = IntPrompt.ask("🏷️ Category ID", default=1)
    resp = try_api(c.create_product, name, price, stock, category, success_msg=f"Product '{name}' created")
    if resp:
        show_products([resp])
        product_cache = []


# ---------------------------
# Main menu
# ---------------------------
def menu():
    global status_message, product_cache

    console.clear()
    console.print(create_header())
    product_cache = try_api(c.list_products) or []

    while True:
        if status_message:
            console.print(show_status(status_message, "Error" not in status_message))

        menu_table = Table.grid(padding=(0, 2))
        menu_table.add_column("Key", style="bold cyan", width=4)
        menu_table.add_column("Option", width=30)
        menu_table.add_column("Key", style="bold cyan", width=4)
        menu_table.add_column("Option", width=30)

        options = [
            ("1", "📦 List products", "8", "✅ Checkout"),
            ("2", "🔍 Search products", "9", "🧹 Clear cart"),
            ("3", "ℹ️ Product details", "10", "🔑 Admin login"),
            ("4", "🏷️ Categories", "11", "➕ Create product"),
            ("5", "🛒 Add to cart", "12", "✏️ Set stock"),
            ("6", "➖ Update cart line", "13", "🗑️ Delete product"),
            ("7", "🛒 View cart", "14", "🚪 Logout"),
            ("", "", "q", "👋 Quit"),
        ]
        for row in options:
            menu_table.add_row(*row)
        console.print(Panel(menu_table, title="📋 Menu", border_style="yellow"))

        choice = prompt_with_autocomplete(
            "\nChoose an option",
            completer=WordCompleter([str(i) for i in range(1, 15)] + ["q", "quit", "exit"])
        ).strip()

        if choice == "1":
            sort = prompt_with_autocomplete(
                "Sort by", completer=WordCompleter(["name", "-name", "price", "-price", "created_at", "-created_at"]),
                default="name",
            )
            products = try_api(c.list_products, sort=sort, success_msg="Products loaded")
            if products is not None:
                product_cache = products
                show_products(products)

        elif choice == "2":
            term = prompt_with_autocomplete("Enter search term")
            res = try_api(c.list_products, search=term, success_msg=f"Search for '{term}' completed")
            if res is not None:
                show_products(res)

        elif choice == "3":
            pid = ask_product_id()
            if pid is not None:
                resp = try_api(c.get_product, pid)
                if resp:
                    show_products([resp])

        elif choice == "4":
            cats = try_api(c.list_categories)
            if cats is not None:
                show_categories(cats)

        elif choice == "5":
            do_add_to_cart()

        elif choice == "6":
            pid = ask_product_id()
            if pid is not None:
                qty = IntPrompt.ask("New quantity (0 removes the line)", default=0)
                cart = try_api(c.update_cart, pid, qty, success_msg="Cart updated")
                if cart:
                    show_cart(cart)

        elif choice == "7":
            cart = try_api(c.view_cart)
            if cart:
                show_cart(cart)

        elif choice == "8":
            do_checkout()

        elif choice == "9":
            cart = try_api(c.clear_cart, success_msg="Cart cleared")
            if cart:
                show_cart(cart)

        elif choice == "10":
            username = prompt_with_autocomplete("Username", default="admin")
            password = Prompt.ask("Password", password=True)
            try_api(c.login, username, password, success_msg=f"Logged in as {username}")

        elif choice == "11":
            do_create_product()

        elif choice == "12":
            pid = ask_product_id()
            if pid is not None:
                stock = IntPrompt.ask("New stock quantity", default=0)
                resp = try_api(c.update_product, pid, stock_quantity=stock, success_msg="Stock updated")
                if resp:
                    show_products([resp])

        elif choice == "13":
            pid = ask_product_id()
            if pid is not None and Confirm.ask(f"[red]Delete product {pid}?[/red]"):
                try_api(c.delete_product, pid, success_msg=f"Product {pid} deleted")
                product_cache = []

        elif choice == "14":
            try_api(c.logout, success_msg="Logged out")

        elif choice.lower() in ("q", "quit", "exit"):
            if Confirm.ask("Are you sure you want to quit?"):
                console.print(Panel.fit("[bold green]Bye! 👋[/bold green]", title="Goodbye"))
                sys.exit(0)

        console.print()
        console.rule(style="dim")


if __name__ == "__main__":
    try:
        menu()
    except KeyboardInterrupt:
        console.print("\n\n[bold red]Interrupted by user[/bold red]")
        sys.exit(1)
