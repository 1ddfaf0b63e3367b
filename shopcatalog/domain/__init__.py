"""Domain layer.

Holds the error taxonomy shared by the catalog engine and the API layer.
"""

from shopcatalog.domain.exceptions import (
    CatalogError,
    CategoryNotFoundError,
    DomainError,
    ProductNotFoundError,
    StoreUnavailableError,
)

__all__ = [
    "CatalogError",
    "CategoryNotFoundError",
    "DomainError",
    "ProductNotFoundError",
    "StoreUnavailableError",
]
