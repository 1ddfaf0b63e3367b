"""Product API endpoints.

Provides faceted product search, storefront product views, brand
listing, product details by id or slug and variant grouping.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from shopcatalog.api.schemas import (
    BrandListResponse,
    ErrorResponse,
    GroupVariantsRequest,
    GroupVariantsResponse,
    ProductListResponse,
    ProductSchema,
    ProductSearchResponse,
    StoreProductsResponse,
)
from shopcatalog.catalog.facets import SearchFacets, SortOrder, parse_text
from shopcatalog.catalog.service import CatalogService, PaginationParams, SearchResult
from shopcatalog.catalog.variants import group_variants
from shopcatalog.infrastructure.config import settings
from shopcatalog.infrastructure.database import get_session

router = APIRouter(prefix="/products", tags=["Products"])

# Every facet is taken as raw text: malformed values are dropped while
# parsing instead of failing the request.
RawParam = Annotated[str | None, Query()]
RawList = Annotated[list[str] | None, Query()]


# ============================================================================
# Dependencies
# ============================================================================


def get_catalog_service(
    session: Annotated[AsyncSession, Depends(get_session)],
) -> CatalogService:
    """Get a request-scoped catalog service."""
    return CatalogService(session)


# ============================================================================
# Converters
# ============================================================================


def _joined(values: list[str] | None) -> str | None:
    """Merge repeated and comma-separated list parameters."""
    if not values:
        return None
    return ",".join(values)


def _schemas(items: list[dict[str, Any]]) -> list[ProductSchema]:
    return [ProductSchema.model_validate(item) for item in items]


def to_list_response(items: list[dict[str, Any]]) -> ProductListResponse:
    """Convert serialized products to a list response."""
    return ProductListResponse(products=_schemas(items), total=len(items))


def result_to_response(result: SearchResult) -> ProductSearchResponse:
    """Convert a search result to response schema."""
    return ProductSearchResponse(
        products=[ProductSchema.model_validate(item) for item in result.items],
        total=result.total,
        page=result.page,
        per_page=result.page_size,
        pages=result.total_pages,
        previous_page=result.previous_page,
        next_page=result.next_page,
    )


# ============================================================================
# Endpoints
# ============================================================================


@router.get(
    "",
    response_model=ProductSearchResponse,
    responses={503: {"model": ErrorResponse}},
    summary="Search products",
    description="Search products with optional facets, ordering and pagination.",
)
async def search_products(
    service: Annotated[CatalogService, Depends(get_catalog_service)],
    page: RawParam = None,
    per_page: RawParam = None,
    name: RawParam = None,
    category: RawParam = None,
    categories: RawList = None,
    brands: RawList = None,
    colors: RawList = None,
    tag: RawParam = None,
    vendor: RawParam = None,
    user: RawParam = None,
    featured: RawParam = None,
    promotional: RawParam = None,
    min: RawParam = None,
    max: RawParam = None,
    rating: RawParam = None,
    start_date: RawParam = None,
    end_date: RawParam = None,
    status: RawParam = None,
    order: RawParam = None,
    lang: RawParam = None,
) -> ProductSearchResponse:
    """Search products.

    Present facets are combined with AND; list facets match any of their
    values. ``order=lowest``/``highest`` rank by effective price, in which
    case ``min``/``max`` bound that price instead of the list price.

    Returns:
        One page of matching products with pagination metadata.
    """
    facets = SearchFacets.from_raw(
        name=name,
        category=category,
        categories=_joined(categories),
        brands=_joined(brands),
        colors=_joined(colors),
        tag=tag,
        vendor=vendor,
        user=user,
        featured=featured,
        promotional=promotional,
        min=min,
        max=max,
        rating=rating,
        start_date=start_date,
        end_date=end_date,
        status=status,
        locale=lang or settings.default_locale,
    )
    result = await service.search_products(
        facets,
        SortOrder.parse(order),
        PaginationParams.from_raw(page, per_page),
    )
    return result_to_response(result)


@router.get(
    "/brands",
    response_model=BrandListResponse,
    responses={503: {"model": ErrorResponse}},
    summary="List brands",
    description="Distinct product brands, trimmed and capitalized.",
)
async def list_brands(
    service: Annotated[CatalogService, Depends(get_catalog_service)],
) -> BrandListResponse:
    """List distinct brands.

    Returns:
        Brand names.
    """
    brands = await service.get_brands()
    return BrandListResponse(brands=brands, total=len(brands))


@router.post(
    "/variants/group",
    response_model=GroupVariantsResponse,
    status_code=status.HTTP_200_OK,
    summary="Group variant fragments",
    description="Group flat variant fragments by their attribute identifier keys.",
)
async def group_variant_fragments(request: GroupVariantsRequest) -> GroupVariantsResponse:
    """Group variant fragments per attribute axis."""
    return GroupVariantsResponse(grouped_variants=group_variants(request.variants))


@router.get(
    "/showing",
    response_model=ProductListResponse,
    responses={503: {"model": ErrorResponse}},
    summary="List visible products",
    description="Every visible product, newest first.",
)
async def list_showing_products(
    service: Annotated[CatalogService, Depends(get_catalog_service)],
) -> ProductListResponse:
    """List visible products."""
    products = await service.get_showing_products()
    return to_list_response(products)


@router.get(
    "/best-sellers",
    response_model=ProductListResponse,
    responses={503: {"model": ErrorResponse}},
    summary="Best sellers of the month",
    description="Products sold and updated this month, by units sold.",
)
async def list_best_sellers(
    service: Annotated[CatalogService, Depends(get_catalog_service)],
) -> ProductListResponse:
    """List this month's best sellers."""
    products = await service.get_best_sellers_of_month()
    return to_list_response(products)


@router.get(
    "/store",
    response_model=StoreProductsResponse,
    responses={503: {"model": ErrorResponse}},
    summary="Storefront product lists",
    description=(
        "Products by category, title or slug, with related products for a slug; "
        "popular and discounted products when none is given."
    ),
)
async def list_store_products(
    service: Annotated[CatalogService, Depends(get_catalog_service)],
    category: RawParam = None,
    title: RawParam = None,
    slug: RawParam = None,
) -> StoreProductsResponse:
    """List the products of a storefront page.

    Returns:
        The product lists that apply to the given filters.
    """
    view = await service.get_store_products(
        category=parse_text(category),
        title=parse_text(title),
        slug=parse_text(slug),
    )
    return StoreProductsResponse(
        products=_schemas(view.products),
        popular_products=_schemas(view.popular_products),
        discounted_products=_schemas(view.discounted_products),
        related_products=_schemas(view.related_products),
    )


@router.get(
    "/slug/{slug}",
    response_model=ProductSchema,
    responses={
        404: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
    summary="Get product by slug",
)
async def get_product_by_slug(
    slug: str,
    service: Annotated[CatalogService, Depends(get_catalog_service)],
) -> ProductSchema:
    """Get a product by slug.

    Raises:
        ProductNotFoundError: If no product has the slug.
    """
    product = await service.get_product_by_slug(slug)
    return ProductSchema.model_validate(product)


@router.get(
    "/{product_id}",
    response_model=ProductSchema,
    responses={
        404: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
    summary="Get product details",
    description="Get one product with its variants grouped by attribute axis.",
)
async def get_product(
    product_id: str,
    service: Annotated[CatalogService, Depends(get_catalog_service)],
) -> ProductSchema:
    """Get a product by ID.

    Args:
        product_id: Product identifier.
        service: Catalog service.

    Returns:
        Product details.

    Raises:
        ProductNotFoundError: If the product does not exist.
    """
    product = await service.get_product(product_id)
    return ProductSchema.model_validate(product)
