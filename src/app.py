"""Storefront FastAPI application.

Every carts/products/orders request runs inside the storefront domain context
with a request id bound to its log lines; domain errors become 404/409/422.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from storefront.domain import storefront
from storefront.utils.logging import add_context, clear_context

# Initialized at import so every uvicorn worker shares one configured domain.
# PROTEAN_ENV selects the config overlay.
storefront.init()

_DOMAIN_PREFIXES = ("/carts", "/products", "/orders")

app = FastAPI(
    title="Storefront API",
    description="Carts, configurable pricing, stock holds and checkout",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Run domain requests inside the storefront context."""
    if not request.url.path.startswith(_DOMAIN_PREFIXES):
        return await call_next(request)

    request_id = request.headers.get("x-request-id") or uuid4().hex
    clear_context()
    add_context(request_id=request_id, method=request.method, path=request.url.path)
    with storefront.domain_context():
        response = await call_next(request)
    response.headers["x-request-id"] = request_id
    return response


from storefront.api import cart_router, order_router, pricing_router, register_exception_handlers  # noqa: E402

register_exception_handlers(app)
app.include_router(cart_router)
app.include_router(pricing_router)
app.include_router(order_router)


@app.get("/health")
async def health():
    return JSONResponse(content={"status": "ok", "domain": storefront.name})
