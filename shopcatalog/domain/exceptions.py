"""Domain exceptions.

Errors raised by the catalog engine. Validation problems in search
input never surface here: malformed facet values are dropped while
parsing. What remains are lookups of records that do not exist and
failures of the underlying store.
"""

from typing import Any


class DomainError(Exception):
    """Base class for all domain exceptions.

    All domain errors should inherit from this class to allow
    catching domain-specific errors at the API layer.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize domain error.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


# ============================================================================
# Catalog Errors
# ============================================================================


class CatalogError(DomainError):
    """Base class for catalog-related errors."""

    pass


class ProductNotFoundError(CatalogError):
    """Raised when a product looked up by id or slug does not exist."""

    def __init__(self, product_id: str, key: str = "product_id") -> None:
        """Initialize product not found error.

        Args:
            product_id: ID, or other lookup value, of the missing product.
            key: Name of the lookup field reported in details.
        """
        super().__init__(
            f"Product {product_id} not found",
            details={key: product_id},
        )


class CategoryNotFoundError(CatalogError):
    """Raised when a category looked up by id does not exist."""

    def __init__(self, category_id: str) -> None:
        """Initialize category not found error.

        Args:
            category_id: ID of the missing category.
        """
        super().__init__(
            f"Category {category_id} not found",
            details={"category_id": category_id},
        )


# ============================================================================
# Infrastructure Errors
# ============================================================================


class StoreUnavailableError(DomainError):
    """Raised when the catalog store cannot answer a query.

    Distinct from an empty result: callers must never read this
    as "no products matched".
    """

    def __init__(self, operation: str, reason: str) -> None:
        """Initialize store unavailable error.

        Args:
            operation: Store operation that failed (e.g. "find_products").
            reason: Underlying error message.
        """
        super().__init__(
            f"Catalog store failed during {operation}: {reason}",
            details={"operation": operation, "reason": reason},
        )
