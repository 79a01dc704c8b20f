# storefront/main.py
import logging
import time
from typing import Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

from . import __version__, auth, catalog
from .checkout import checkout
from .config import Settings, get_settings
from .core import CartAddIn, CartUpdateIn, CategoryIn, CheckoutIn, LoginIn, ProductIn
from .database import Store
from .errors import StorageError, StoreError
from .sessions import SessionContext, SessionStore, get_session

logger = logging.getLogger("storefront")
access_logger = logging.getLogger("storefront.access")


def get_store(request: Request) -> Store:
    return request.app.state.store


def create_app(settings: Optional[Settings] = None, store: Optional[Store] = None) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if store is None:
        store = Store(data_file=settings.data_file, lock_timeout=settings.lock_timeout)
    auth.ensure_admin(store, settings.admin_username, settings.admin_password)

    app = FastAPI(title="storefront", version=__version__)
    app.state.settings = settings
    app.state.store = store
    app.state.sessions = SessionStore(max_age=settings.session_max_age)

    app.add_middleware(GZipMiddleware, minimum_size=1024)
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.session_secret,
        max_age=settings.session_max_age,
        same_site="lax",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_error_handlers(app)
    _register_routes(app)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed = (time.perf_counter() - started) * 1000
        access_logger.info("%s %s %d %.1fms", request.method, request.url.path, response.status_code, elapsed)
        return response

    return app


# ---------------------------
# Error handlers
# ---------------------------
def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StoreError)
    async def store_error(request: Request, exc: StoreError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(StorageError)
    async def storage_error(request: Request, exc: StorageError):
        logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=500, content={"error": "Storage failure"})

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'][1:]) or 'body'}: {err['msg']}" for err in exc.errors()
        )
        return JSONResponse(status_code=400, content={"error": problems or "Invalid request"})

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})


# ---------------------------
# Routes
# ---------------------------
def _register_routes(app: FastAPI) -> None:

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    # ---------------------------
    # Product endpoints
    # ---------------------------
    @app.get("/api/products")
    async def list_products(
        category: Optional[str] = None,
        search: Optional[str] = None,
        sort: Optional[str] = None,
        page: Optional[str] = None,
        limit: Optional[str] = None,
        min_price: Optional[str] = Query(None, alias="minPrice"),
        max_price: Optional[str] = Query(None, alias="maxPrice"),
        store: Store = Depends(get_store),
    ):
        query = catalog.ProductQuery.from_params(category, search, sort, page, limit, min_price, max_price)
        return await catalog.list_products_logic(store, query)

    @app.get("/api/products/{product_id}")
    async def get_product(product_id: int, store: Store = Depends(get_store)):
        return await catalog.get_product_logic(store, product_id)

    @app.post("/api/products", status_code=201, dependencies=[Depends(auth.require_admin)])
    async def create_product(payload: ProductIn, store: Store = Depends(get_store)):
        return await catalog.create_product_logic(store, payload)

    @app.put("/api/products/{product_id}", dependencies=[Depends(auth.require_admin)])
    async def update_product(product_id: int, payload: ProductIn, store: Store = Depends(get_store)):
        return await catalog.update_product_logic(store, product_id, payload)

    @app.delete("/api/products/{product_id}", dependencies=[Depends(auth.require_admin)])
    async def delete_product(product_id: int, store: Store = Depends(get_store)):
        return await catalog.delete_product_logic(store, product_id)

    # ---------------------------
    # Category endpoints
    # ---------------------------
    @app.get("/api/categories")
    async def list_categories(store: Store = Depends(get_store)):
        return await catalog.list_categories_logic(store)

    @app.post("/api/categories", status_code=201, dependencies=[Depends(auth.require_admin)])
    async def create_category(payload: CategoryIn, store: Store = Depends(get_store)):
        return await catalog.create_category_logic(store, payload)

    @app.put("/api/categories/{category_id}", dependencies=[Depends(auth.require_admin)])
    async def update_category(category_id: int, payload: CategoryIn, store: Store = Depends(get_store)):
        return await catalog.update_category_logic(store, category_id, payload)

    @app.delete("/api/categories/{category_id}", dependencies=[Depends(auth.require_admin)])
    async def delete_category(category_id: int, store: Store = Depends(get_store)):
        return await catalog.delete_category_logic(store, category_id)

    # ---------------------------
    # Auth endpoints
    # ---------------------------
    @app.post("/api/auth/login")
    async def login(
        payload: LoginIn, store: Store = Depends(get_store), session: SessionContext = Depends(get_session)
    ):
        return auth.login(store, session, payload.username, payload.password)

    @app.post("/api/auth/logout")
    async def logout(request: Request, session: SessionContext = Depends(get_session)):
        out = auth.logout(session)
        request.session.clear()
        return out

    @app.get("/api/auth/me")
    async def me(session: SessionContext = Depends(get_session)):
        return auth.current_admin(session)

    # ---------------------------
    # Cart endpoints
    # ---------------------------
    @app.get("/api/cart")
    async def view_cart(session: SessionContext = Depends(get_session)):
        return session.cart_summary()

    @app.post("/api/cart/add")
    async def cart_add(payload: CartAddIn, session: SessionContext = Depends(get_session)):
        session.add_to_cart(payload.product_id, payload.quantity, payload.name, payload.price)
        return session.cart_summary()

    @app.post("/api/cart/update")
    async def cart_update(payload: CartUpdateIn, session: SessionContext = Depends(get_session)):
        session.update_cart(payload.product_id, payload.quantity)
        return session.cart_summary()

    @app.post("/api/cart/clear")
    async def cart_clear(session: SessionContext = Depends(get_session)):
        session.clear_cart()
        return session.cart_summary()

    # ---------------------------
    # Checkout
    # ---------------------------
    @app.post("/api/checkout")
    async def cart_checkout(
        payload: Optional[CheckoutIn] = None,
        store: Store = Depends(get_store),
        session: SessionContext = Depends(get_session),
    ):
        await checkout(store, session, payload.items if payload else None)
        return {"ok": True}


app = create_app()

# Run the app directly with uvicorn (for development)
if __name__ == "__main__":
    import uvicorn

    uvicorn.run("storefront.main:app", host="0.0.0.0", port=8085, reload=True)
