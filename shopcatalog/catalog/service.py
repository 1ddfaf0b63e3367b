"""Catalog service for product search and storefront views.

High-level service that resolves facet lookups, compiles the search
predicate, ranks and paginates products and attaches grouped variants.
"""

import asyncio
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone, tzinfo
from decimal import Decimal
from typing import Any
from zoneinfo import ZoneInfo

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from shopcatalog.catalog.facets import (
    SHOWING,
    CompiledQuery,
    FieldEquals,
    ResolvedFacets,
    SearchFacets,
    SortOrder,
    best_sellers_view,
    compile_facets,
    discounted_view,
    matches_price,
    store_view,
)
from shopcatalog.catalog.models import Product
from shopcatalog.catalog.pricing import resolve_price
from shopcatalog.catalog.repository import (
    AttributeRepository,
    CategoryRepository,
    ProductRepository,
    TagRepository,
)
from shopcatalog.catalog.variants import group_variants
from shopcatalog.domain.exceptions import ProductNotFoundError
from shopcatalog.infrastructure.config import settings

logger = structlog.get_logger()


@dataclass
class PaginationParams:
    """Pagination parameters.

    Attributes:
        page: Page number (1-indexed).
        page_size: Items per page.
    """

    page: int = 1
    page_size: int = 12

    @classmethod
    def from_raw(cls, page: Any = None, page_size: Any = None) -> "PaginationParams":
        """Build pagination from untrusted values.

        Malformed or out-of-range values fall back to the first page and
        the configured default size; sizes are capped at the maximum.
        """
        return cls(
            page=_positive_int(page) or 1,
            page_size=min(
                _positive_int(page_size) or settings.default_page_size,
                settings.max_page_size,
            ),
        )

    @property
    def offset(self) -> int:
        """Calculate offset from page number."""
        return (self.page - 1) * self.page_size

    @property
    def limit(self) -> int:
        """Get limit (alias for page_size)."""
        return self.page_size


def _positive_int(value: Any) -> int | None:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


@dataclass
class SearchResult:
    """One page of search results.

    Attributes:
        items: Serialized products with grouped variants.
        total: Count of all matches.
        page: Current page.
        page_size: Items per page.
    """

    items: list[dict[str, Any]]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        """Calculate total pages."""
        return math.ceil(self.total / self.page_size)

    @property
    def previous_page(self) -> int | None:
        """Previous page number, None on the first page."""
        return self.page - 1 if self.page > 1 else None

    @property
    def next_page(self) -> int | None:
        """Next page number, None once this page reaches the end."""
        return self.page + 1 if self.page * self.page_size < self.total else None


@dataclass
class StoreProducts:
    """Product lists for the storefront landing and listing pages.

    Attributes:
        products: Visible products matching category, title or slug.
        popular_products: Best selling visible products, when unfiltered.
        discounted_products: Visible discounted products, when unfiltered.
        related_products: Products sharing the primary category of the
            first slug match.
    """

    products: list[dict[str, Any]] = field(default_factory=list)
    popular_products: list[dict[str, Any]] = field(default_factory=list)
    discounted_products: list[dict[str, Any]] = field(default_factory=list)
    related_products: list[dict[str, Any]] = field(default_factory=list)


def serialize_product(product: Product, effective_price: Decimal | None = None) -> dict[str, Any]:
    """Product dictionary with its variants grouped by attribute axis."""
    data = product.to_dict()
    data["grouped_variants"] = group_variants(data["variants"])
    if effective_price is not None:
        data["effective_price"] = float(effective_price)
    return data


class CatalogService:
    """Service for catalog search.

    Stateless between calls: build one per request. Repositories default
    to SQLAlchemy implementations over ``session`` and can be substituted.

    Example usage:
        async with async_session_factory() as session:
            service = CatalogService(session)
            result = await service.search_products(
                SearchFacets.from_raw(name="shoe"),
                SortOrder.LOWEST,
                PaginationParams(page=1),
            )
    """

    def __init__(
        self,
        session: AsyncSession | None = None,
        *,
        products: ProductRepository | None = None,
        categories: CategoryRepository | None = None,
        tags: TagRepository | None = None,
        attributes: AttributeRepository | None = None,
        tz: tzinfo | None = None,
    ) -> None:
        """Initialize service.

        Args:
            session: Async SQLAlchemy session backing the default repositories.
            products: Product repository override.
            categories: Category repository override.
            tags: Tag repository override.
            attributes: Attribute repository override.
            tz: Timezone for creation-date day bounds.
        """
        lock = asyncio.Lock()
        self.products = products or ProductRepository(session, lock)
        self.categories = categories or CategoryRepository(session, lock)
        self.tags = tags or TagRepository(session, lock)
        self.attributes = attributes or AttributeRepository(session, lock)
        self.tz = tz or ZoneInfo(settings.catalog_timezone)

    async def resolve_facets(self, facets: SearchFacets) -> ResolvedFacets:
        """Run the lookups the facets depend on, concurrently.

        Args:
            facets: Parsed facets.

        Returns:
            Ids resolved for categories, tags and colour options.
        """
        category_ids, text_category_ids, tag_ids, text_tag_ids, color_options = (
            await asyncio.gather(
                self._lookup_category(facets.category),
                self._lookup_text(self.categories, facets.name, facets.locale),
                self._lookup_tag(facets.tag),
                self._lookup_text(self.tags, facets.name, facets.locale),
                self._lookup_colors(facets.colors),
            )
        )
        return ResolvedFacets(
            category_ids=category_ids,
            text_category_ids=text_category_ids,
            tag_ids=tag_ids,
            text_tag_ids=text_tag_ids,
            color_options=color_options,
        )

    async def _lookup_category(self, category_id: str | None) -> list[str]:
        if not category_id:
            return []
        category = await self.categories.get_by_id(category_id)
        if category is None:
            logger.info("Category facet did not resolve", category_id=category_id)
            return []
        return [category.id]

    async def _lookup_tag(self, slug: str | None) -> list[str]:
        if not slug:
            return []
        tag = await self.tags.get_by_slug(slug)
        if tag is None:
            logger.info("Tag facet did not resolve", slug=slug)
            return []
        return [tag.id]

    async def _lookup_text(
        self,
        repository: CategoryRepository | TagRepository,
        text: str | None,
        locale: str,
    ) -> list[str]:
        if not text:
            return []
        return await repository.find_ids_by_name(text, locale)

    async def _lookup_colors(self, colors: list[str]) -> dict[str, list[str]]:
        if not colors:
            return {}
        return await self.attributes.find_color_options(colors)

    async def search_products(
        self,
        facets: SearchFacets,
        order: SortOrder = SortOrder.NEWEST,
        pagination: PaginationParams | None = None,
    ) -> SearchResult:
        """Search products with facets, ordering and pagination.

        Args:
            facets: Parsed facets.
            order: Result order. ``lowest``/``highest`` rank by effective price.
            pagination: Page to return.

        Returns:
            Paginated product results.

        Raises:
            StoreUnavailableError: If the store cannot answer.
        """
        pagination = pagination or PaginationParams(page_size=settings.default_page_size)
        resolved = await self.resolve_facets(facets)
        compiled = compile_facets(facets, resolved, order.price_ranked, self.tz)

        if compiled.matches_nothing:
            result = SearchResult([], 0, pagination.page, pagination.page_size)
        elif order.price_ranked:
            result = await self._search_by_price(compiled, order, pagination)
        else:
            result = await self._search_by_field(compiled, order, pagination)

        logger.info(
            "Product search completed",
            order=order.value,
            page=result.page,
            page_size=result.page_size,
            total=result.total,
            returned=len(result.items),
        )
        return result

    async def _search_by_field(
        self,
        compiled: CompiledQuery,
        order: SortOrder,
        pagination: PaginationParams,
    ) -> SearchResult:
        products, total = await asyncio.gather(
            self.products.find(compiled.store, order, pagination.offset, pagination.limit),
            self.products.count(compiled.store),
        )
        return SearchResult(
            items=[serialize_product(p) for p in products],
            total=total,
            page=pagination.page,
            page_size=pagination.page_size,
        )

    async def _search_by_price(
        self,
        compiled: CompiledQuery,
        order: SortOrder,
        pagination: PaginationParams,
    ) -> SearchResult:
        candidates = await self.products.find_price_candidates(compiled.store)
        now = datetime.now(timezone.utc)

        ranked: list[tuple[Decimal, str]] = []
        for product in candidates:
            price = resolve_price(product.pricing_document(), now)
            if matches_price(compiled.post, price):
                ranked.append((price, product.id))

        # id ascending breaks ties in both directions
        ranked.sort(key=lambda item: item[1])
        ranked.sort(key=lambda item: item[0], reverse=order is SortOrder.HIGHEST)

        page = ranked[pagination.offset : pagination.offset + pagination.limit]
        prices = {product_id: price for price, product_id in page}
        products = await self.products.get_by_ids([product_id for _, product_id in page])

        return SearchResult(
            items=[serialize_product(p, prices[p.id]) for p in products],
            total=len(ranked),
            page=pagination.page,
            page_size=pagination.page_size,
        )

    async def get_product(self, product_id: str) -> dict[str, Any]:
        """Get one product with grouped variants.

        Args:
            product_id: Product ID.

        Returns:
            Serialized product.

        Raises:
            ProductNotFoundError: If the product does not exist.
        """
        product = await self.products.get_by_id(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        return serialize_product(product)

    async def get_brands(self) -> list[str]:
        """Get distinct brands, capitalized.

        Returns:
            Brand names.
        """
        brands = await self.products.get_brands()
        return [b[0].upper() + b[1:] for b in (brand.strip() for brand in brands) if b]

    # ========================================================================
    # Storefront views
    # ========================================================================

    async def get_product_by_slug(self, slug: str) -> dict[str, Any]:
        """Get one product by slug, with grouped variants.

        Raises:
            ProductNotFoundError: If no product has that slug.
        """
        product = await self.products.get_by_slug(slug)
        if product is None:
            raise ProductNotFoundError(slug, key="slug")
        return serialize_product(product)

    async def get_showing_products(self) -> list[dict[str, Any]]:
        """Get every visible product, newest first."""
        products = await self.products.find(
            SHOWING, SortOrder.NEWEST, 0, None, operation="find_showing_products"
        )
        return [serialize_product(p) for p in products]

    async def get_best_sellers_of_month(self) -> list[dict[str, Any]]:
        """Get the month's best sellers.

        Products updated during the current month in the catalog
        timezone and sold at least once, by units sold.

        Returns:
            At most ``settings.best_sellers_limit`` products.
        """
        today = datetime.now(self.tz).date()
        products = await self.products.find(
            best_sellers_view(today, self.tz),
            SortOrder.POPULAR,
            0,
            settings.best_sellers_limit,
            operation="find_best_sellers",
        )
        return [serialize_product(p) for p in products]

    async def get_store_products(
        self,
        category: str | None = None,
        title: str | None = None,
        slug: str | None = None,
    ) -> StoreProducts:
        """Get the product lists of a storefront page.

        With a slug, the matches and the products sharing the first
        match's primary category. With a category or title, the matches
        only. Without any of them, the popular and discounted products.

        Args:
            category: Category id the products must belong to.
            title: Title substring, matched in every catalog locale.
            slug: Slug substring.

        Returns:
            Product lists; the lists that do not apply are empty.
        """
        view = StoreProducts()

        if slug or title or category:
            matches = await self.products.find(
                store_view(category, title, slug, settings.catalog_locales),
                SortOrder.NEWEST,
                0,
                settings.storefront_list_limit,
                operation="find_store_products",
            )
            view.products = [serialize_product(p) for p in matches]
            if slug and matches and matches[0].category_id:
                related = await self.products.find(
                    FieldEquals("category_id", matches[0].category_id),
                    SortOrder.NEWEST,
                    0,
                    settings.storefront_list_limit,
                    operation="find_related_products",
                )
                view.related_products = [serialize_product(p) for p in related]
        else:
            popular, discounted = await asyncio.gather(
                self.products.find(
                    SHOWING,
                    SortOrder.POPULAR,
                    0,
                    settings.storefront_highlight_limit,
                    operation="find_popular_products",
                ),
                self.products.find(
                    discounted_view(),
                    SortOrder.NEWEST,
                    0,
                    settings.storefront_highlight_limit,
                    operation="find_discounted_products",
                ),
            )
            view.popular_products = [serialize_product(p) for p in popular]
            view.discounted_products = [serialize_product(p) for p in discounted]

        logger.info(
            "Store products listed",
            category=category,
            title=title,
            slug=slug,
            products=len(view.products),
            related=len(view.related_products),
            popular=len(view.popular_products),
            discounted=len(view.discounted_products),
        )
        return view
