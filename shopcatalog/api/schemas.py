"""API schemas for the catalog API.

Pydantic models for request/response validation and serialization.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


# ============================================================================
# Common Schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Standard error response.

    All API errors follow this format for consistency.
    """

    error_code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: dict[str, Any] | list[Any] = Field(
        default_factory=list, description="Additional error details"
    )
    request_id: str | None = Field(
        default=None, description="Request ID for correlation"
    )


# ============================================================================
# Product Schemas
# ============================================================================


class PricesSchema(BaseModel):
    """Product-level price triple."""

    original_price: float = Field(default=0, description="List price")
    price: float = Field(default=0, description="Promotional price")
    discount: float = Field(default=0, description="Discount amount")


class ReferenceSchema(BaseModel):
    """Category or tag reference embedded in a product."""

    id: str
    name: dict[str, str] = Field(default_factory=dict)
    slug: str | None = None


class ProductSchema(BaseModel):
    """Product with its variants grouped by attribute axis."""

    id: str = Field(..., description="Product identifier")
    title: dict[str, str] = Field(default_factory=dict, description="Localized title")
    description: dict[str, str] | None = Field(default=None, description="Localized description")
    short_description: dict[str, str] | None = Field(default=None)
    name: str | None = Field(default=None, description="Raw product name")
    slug: str | None = None
    sku: str | None = None
    brand: str | None = None
    vendor: str | None = None
    user: str | None = Field(default=None, description="Owner identifier")
    prices: PricesSchema = Field(default_factory=PricesSchema)
    is_combination: bool = False
    current_stock: int = 0
    sales_count: int = 0
    featured: int = 0
    promotional: int = 0
    date_to_promo: datetime | None = None
    rating: float = Field(default=0, ge=0, le=5, description="Average rating")
    num_reviews: int = 0
    status: str = "show"
    category: str | None = Field(default=None, description="Primary category id")
    categories: list[ReferenceSchema] = Field(default_factory=list)
    tags: list[ReferenceSchema] = Field(default_factory=list)
    variants: list[dict[str, Any]] = Field(
        default_factory=list, description="Variant fragments in declaration order"
    )
    grouped_variants: dict[str, list[dict[str, Any]]] = Field(
        default_factory=dict, description="Variant fragments grouped by attribute axis"
    )
    effective_price: float | None = Field(
        default=None, description="Resolved price, present in price-ranked searches"
    )
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ProductSearchResponse(BaseModel):
    """One page of product search results."""

    products: list[ProductSchema] = Field(..., description="Products on this page")
    total: int = Field(..., description="Total number of matching products")
    page: int = Field(..., description="Current page number")
    per_page: int = Field(..., description="Items per page")
    pages: int = Field(..., description="Total number of pages")
    previous_page: int | None = Field(default=None, description="Previous page, if any")
    next_page: int | None = Field(default=None, description="Next page, if any")


class ProductListResponse(BaseModel):
    """Unpaginated product list."""

    products: list[ProductSchema]
    total: int


class StoreProductsResponse(BaseModel):
    """Product lists of a storefront page."""

    products: list[ProductSchema] = Field(
        default_factory=list, description="Products matching category, title or slug"
    )
    popular_products: list[ProductSchema] = Field(default_factory=list)
    discounted_products: list[ProductSchema] = Field(default_factory=list)
    related_products: list[ProductSchema] = Field(
        default_factory=list, description="Products sharing the first match's category"
    )


class BrandListResponse(BaseModel):
    """Distinct product brands."""

    brands: list[str]
    total: int


class GroupVariantsRequest(BaseModel):
    """Flat variant fragments to group."""

    variants: list[dict[str, Any]] = Field(
        ..., description="Variant fragments keyed by attribute identifiers"
    )


class GroupVariantsResponse(BaseModel):
    """Variant fragments grouped per attribute axis."""

    grouped_variants: dict[str, list[dict[str, Any]]]


# ============================================================================
# Category Schemas
# ============================================================================


class CategoryNodeSchema(BaseModel):
    """Category placed in a tree, with its children."""

    id: str
    name: dict[str, str] = Field(default_factory=dict)
    parent_id: str | None = None
    parent_name: dict[str, str] | None = None
    description: dict[str, str] | None = None
    icon: str | None = None
    image: str | None = None
    status: str = "show"
    is_top_category: bool = False
    product_count: int = Field(default=0, description="Live number of products")
    is_checked: bool = False
    children: list["CategoryNodeSchema"] = Field(default_factory=list)


class CategoryTreeResponse(BaseModel):
    """Category forest."""

    categories: list[CategoryNodeSchema]


class FeaturedCategorySchema(BaseModel):
    """Top category with its product count."""

    id: str
    name: dict[str, str] = Field(default_factory=dict)
    image: str | None = None
    product_count: int = 0


class CategorySchema(BaseModel):
    """Stored category."""

    id: str
    name: dict[str, str] = Field(default_factory=dict)
    description: dict[str, str] | None = None
    slug: str | None = None
    parent_id: str | None = None
    parent_name: dict[str, str] | None = None
    icon: str | None = None
    image: str | None = None
    is_top_category: bool = False
    show_products_on_homepage: bool = False
    status: str = "show"
    position: int = 0


class CategoryUpdateRequest(BaseModel):
    """Partial category update.

    Localized fields are merged into the stored locale maps.
    """

    name: dict[str, str] | None = None
    description: dict[str, str] | None = None
    parent_name: dict[str, str] | None = None
    slug: str | None = None
    parent_id: str | None = None
    icon: str | None = None
    image: str | None = None
    status: str | None = Field(default=None, pattern="^(show|hide)$")
    is_top_category: bool | None = None


class DeleteCategoriesRequest(BaseModel):
    """Categories to delete."""

    ids: list[str] = Field(..., min_length=1, description="Category identifiers")


class DeleteCategoriesResponse(BaseModel):
    """Outcome of a category delete."""

    deleted: int = Field(..., description="Categories removed, children included")
