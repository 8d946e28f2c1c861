"""HTTP controllers for the storefront API."""

from blockhaven.web.controllers.addresses import router as addresses_router
from blockhaven.web.controllers.currencies import router as currencies_router
from blockhaven.web.controllers.orders import router as orders_router
from blockhaven.web.controllers.quotes import router as quotes_router

__all__ = [
    "currencies_router",
    "quotes_router",
    "addresses_router",
    "orders_router",
]
