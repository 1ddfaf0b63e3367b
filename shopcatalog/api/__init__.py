"""API layer module.

Contains FastAPI routers and request/response schemas.
"""

from shopcatalog.api.categories import router as categories_router
from shopcatalog.api.health import router as health_router
from shopcatalog.api.products import router as products_router

__all__ = [
    "categories_router",
    "health_router",
    "products_router",
]
