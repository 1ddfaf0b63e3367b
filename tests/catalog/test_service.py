"""Tests for the catalog search service."""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from shopcatalog.catalog.facets import (
    SHOWING,
    FieldCompare,
    FieldEquals,
    InCategories,
    SearchFacets,
    SortOrder,
    TextMatch,
    discounted_view,
    store_view,
)
from shopcatalog.catalog.models import Category, Product, ProductVariant
from shopcatalog.catalog.service import (
    CatalogService,
    PaginationParams,
    SearchResult,
    StoreProducts,
)
from shopcatalog.domain.exceptions import ProductNotFoundError, StoreUnavailableError
from shopcatalog.infrastructure.config import settings

COLOR = "a" * 24
RED = "c" * 24
BLUE = "d" * 24


def simple(product_id: str, price: str) -> Product:
    """Create a transient simple product."""
    return Product(
        id=product_id,
        title={"en": product_id},
        is_combination=False,
        original_price=Decimal(price),
        price=Decimal("0"),
        promotional=0,
        variants=[],
    )


def combination(product_id: str, *prices: str) -> Product:
    """Create a transient combination product, one variant per price."""
    colors = [RED, BLUE]
    return Product(
        id=product_id,
        title={"en": product_id},
        is_combination=True,
        promotional=0,
        variants=[
            ProductVariant(position=i, fragment={COLOR: colors[i % 2], "price": price})
            for i, price in enumerate(prices)
        ],
    )


@pytest.fixture
def catalog() -> dict[str, Product]:
    """Products keyed by id: effective prices 30, 10, 20, 10."""
    products = [
        simple("p3", "30"),
        combination("p1", "10.00", "99.00"),
        simple("p2", "20"),
        simple("p0", "10"),
    ]
    return {p.id: p for p in products}


@pytest.fixture
def products(catalog: dict[str, Product]) -> MagicMock:
    """Product repository over the catalog mapping."""
    repo = MagicMock()
    repo.find = AsyncMock(return_value=list(catalog.values())[:2])
    repo.count = AsyncMock(return_value=len(catalog))
    repo.find_price_candidates = AsyncMock(return_value=list(catalog.values()))
    repo.get_by_ids = AsyncMock(
        side_effect=lambda product_ids: [catalog[i] for i in product_ids if i in catalog]
    )
    repo.get_by_id = AsyncMock(side_effect=lambda product_id: catalog.get(product_id))
    repo.get_by_slug = AsyncMock(return_value=None)
    repo.get_brands = AsyncMock(return_value=["atelier", "maison blanche", "stride"])
    return repo


@pytest.fixture
def categories() -> MagicMock:
    """Category repository knowing one category."""
    repo = MagicMock()
    known = Category(id="cat1", name={"en": "Shoes"})
    repo.get_by_id = AsyncMock(
        side_effect=lambda category_id: known if category_id == "cat1" else None
    )
    repo.find_ids_by_name = AsyncMock(return_value=[])
    return repo


@pytest.fixture
def tags() -> MagicMock:
    """Tag repository without tags."""
    repo = MagicMock()
    repo.get_by_slug = AsyncMock(return_value=None)
    repo.find_ids_by_name = AsyncMock(return_value=[])
    return repo


@pytest.fixture
def attributes() -> MagicMock:
    """Attribute repository without colours."""
    repo = MagicMock()
    repo.find_color_options = AsyncMock(return_value={})
    return repo


@pytest.fixture
def service(
    products: MagicMock,
    categories: MagicMock,
    tags: MagicMock,
    attributes: MagicMock,
) -> CatalogService:
    """Catalog service over mocked repositories."""
    return CatalogService(
        products=products,
        categories=categories,
        tags=tags,
        attributes=attributes,
    )


class TestPagination:
    """Tests for pagination parameters and metadata."""

    def test_from_raw_defaults(self) -> None:
        """Malformed values fall back to the first page and default size."""
        pagination = PaginationParams.from_raw("abc", "-3")
        assert pagination.page == 1
        assert pagination.page_size == settings.default_page_size

    def test_from_raw_caps_size(self) -> None:
        """Page size is capped."""
        assert PaginationParams.from_raw(2, 10_000).page_size == settings.max_page_size

    def test_offset(self) -> None:
        """Offset skips the previous pages."""
        assert PaginationParams(page=3, page_size=12).offset == 24

    def test_first_page_metadata(self) -> None:
        """The first page has no previous page."""
        result = SearchResult(items=[], total=30, page=1, page_size=12)
        assert result.total_pages == 3
        assert result.previous_page is None
        assert result.next_page == 2

    def test_last_page_metadata(self) -> None:
        """A page reaching the total has no next page."""
        result = SearchResult(items=[], total=24, page=2, page_size=12)
        assert result.previous_page == 1
        assert result.next_page is None

    def test_empty_result_metadata(self) -> None:
        """No matches means no pages."""
        result = SearchResult(items=[], total=0, page=1, page_size=12)
        assert result.total_pages == 0
        assert result.next_page is None


class TestSearchByField:
    """Tests for store-ordered searches."""

    @pytest.mark.asyncio
    async def test_facetless_search(self, service: CatalogService, products: MagicMock) -> None:
        """A search without facets pages through every product."""
        result = await service.search_products(
            SearchFacets(), SortOrder.NEWEST, PaginationParams(page=1, page_size=2)
        )

        assert result.total == 4
        assert [item["id"] for item in result.items] == ["p3", "p1"]
        products.find.assert_awaited_once()
        _, order, offset, limit = products.find.await_args.args
        assert (order, offset, limit) == (SortOrder.NEWEST, 0, 2)

    @pytest.mark.asyncio
    async def test_items_carry_grouped_variants(self, service: CatalogService) -> None:
        """Every item is returned with its variants grouped."""
        result = await service.search_products(SearchFacets())

        combo = next(item for item in result.items if item["id"] == "p1")
        assert combo["grouped_variants"][COLOR] == [
            {COLOR: RED, "price": "10.00"},
            {COLOR: BLUE, "price": "99.00"},
        ]
        plain = next(item for item in result.items if item["id"] == "p3")
        assert plain["grouped_variants"] == {}
        assert "effective_price" not in plain

    @pytest.mark.asyncio
    async def test_resolved_category_reaches_store(
        self, service: CatalogService, products: MagicMock
    ) -> None:
        """A known category compiles into the store predicate."""
        await service.search_products(SearchFacets.from_raw(category="cat1"))

        predicate = products.count.await_args.args[0]
        assert predicate == InCategories(("cat1",))

    @pytest.mark.asyncio
    async def test_text_search(self, service: CatalogService, products: MagicMock) -> None:
        """Free text reaches the store in the requested locale."""
        await service.search_products(SearchFacets.from_raw(name="shoe", locale="fr"))

        assert products.count.await_args.args[0] == TextMatch("shoe", "fr")

    @pytest.mark.asyncio
    async def test_unknown_category_short_circuits(
        self, service: CatalogService, products: MagicMock
    ) -> None:
        """An unknown category returns nothing without querying products."""
        result = await service.search_products(SearchFacets.from_raw(category="nope"))

        assert result.total == 0
        assert result.items == []
        products.find.assert_not_awaited()
        products.count.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_store_failure_propagates(
        self, service: CatalogService, products: MagicMock
    ) -> None:
        """A store failure is not reported as an empty result."""
        products.count.side_effect = StoreUnavailableError("count_products", "connection refused")

        with pytest.raises(StoreUnavailableError):
            await service.search_products(SearchFacets())


class TestSearchByPrice:
    """Tests for price-ranked searches."""

    @pytest.mark.asyncio
    async def test_lowest_first(self, service: CatalogService) -> None:
        """Lowest ranks ascending by effective price, ties by id."""
        result = await service.search_products(SearchFacets(), SortOrder.LOWEST)

        assert [item["id"] for item in result.items] == ["p0", "p1", "p2", "p3"]
        prices = [item["effective_price"] for item in result.items]
        assert prices == sorted(prices)
        assert prices == [10.0, 10.0, 20.0, 30.0]

    @pytest.mark.asyncio
    async def test_highest_first(self, service: CatalogService) -> None:
        """Highest ranks descending by effective price, ties by id."""
        result = await service.search_products(SearchFacets(), SortOrder.HIGHEST)

        assert [item["id"] for item in result.items] == ["p3", "p2", "p0", "p1"]

    @pytest.mark.asyncio
    async def test_bounds_apply_to_effective_price(self, service: CatalogService) -> None:
        """Price bounds filter on the resolved price and the count follows."""
        result = await service.search_products(
            SearchFacets.from_raw(min="15", max="30"), SortOrder.LOWEST
        )

        assert [item["id"] for item in result.items] == ["p2", "p3"]
        assert result.total == 2

    @pytest.mark.asyncio
    async def test_pages_are_sliced_after_ranking(
        self, service: CatalogService, products: MagicMock
    ) -> None:
        """Only the requested page is materialized."""
        result = await service.search_products(
            SearchFacets(), SortOrder.LOWEST, PaginationParams(page=2, page_size=2)
        )

        assert [item["id"] for item in result.items] == ["p2", "p3"]
        assert result.total == 4
        assert result.previous_page == 1
        assert result.next_page is None
        products.get_by_ids.assert_awaited_once_with(["p2", "p3"])


class TestProductLookups:
    """Tests for single product and brand lookups."""

    @pytest.mark.asyncio
    async def test_get_product(self, service: CatalogService) -> None:
        """A product is returned with grouped variants."""
        product = await service.get_product("p1")
        assert product["id"] == "p1"
        assert COLOR in product["grouped_variants"]

    @pytest.mark.asyncio
    async def test_get_missing_product(self, service: CatalogService) -> None:
        """An unknown product raises."""
        with pytest.raises(ProductNotFoundError):
            await service.get_product("missing")

    @pytest.mark.asyncio
    async def test_brands_capitalized(self, service: CatalogService) -> None:
        """Brands are capitalized for display."""
        assert await service.get_brands() == ["Atelier", "Maison blanche", "Stride"]


class TestStorefrontViews:
    """Tests for storefront product views."""

    @pytest.mark.asyncio
    async def test_unfiltered_store_lists_popular_and_discounted(
        self, service: CatalogService, products: MagicMock
    ) -> None:
        """Without filters only the highlight lists are filled."""
        view = await service.get_store_products()

        assert [p["id"] for p in view.popular_products] == ["p3", "p1"]
        assert [p["id"] for p in view.discounted_products] == ["p3", "p1"]
        assert view.products == []
        assert view.related_products == []

        popular, discounted = products.find.await_args_list
        assert popular.args == (SHOWING, SortOrder.POPULAR, 0, settings.storefront_highlight_limit)
        assert popular.kwargs == {"operation": "find_popular_products"}
        assert discounted.args[0] == discounted_view()
        assert discounted.args[1] is SortOrder.NEWEST

    @pytest.mark.asyncio
    async def test_slug_adds_related_products(
        self, service: CatalogService, products: MagicMock, catalog: dict[str, Product]
    ) -> None:
        """Products sharing the first match's primary category are related."""
        catalog["p3"].category_id = "cat9"

        view = await service.get_store_products(slug="p3")

        assert [p["id"] for p in view.products] == ["p3", "p1"]
        assert [p["id"] for p in view.related_products] == ["p3", "p1"]
        matches, related = products.find.await_args_list
        assert matches.args[0] == store_view(slug="p3", locales=settings.catalog_locales)
        assert related.args[0] == FieldEquals("category_id", "cat9")

    @pytest.mark.asyncio
    async def test_slug_without_primary_category(
        self, service: CatalogService, products: MagicMock
    ) -> None:
        """Without a primary category there is nothing related."""
        view = await service.get_store_products(slug="p3")

        assert view.related_products == []
        products.find.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_title_lists_matches_only(
        self, service: CatalogService, products: MagicMock
    ) -> None:
        """A title search skips the related and highlight lists."""
        products.find.return_value = []

        view = await service.get_store_products(title="shoe", category="cat1")

        assert view == StoreProducts()
        products.find.assert_awaited_once()
        assert products.find.await_args.kwargs == {"operation": "find_store_products"}

    @pytest.mark.asyncio
    async def test_best_sellers_of_month(
        self, service: CatalogService, products: MagicMock
    ) -> None:
        """Best sellers are ranked by sales and capped."""
        best = await service.get_best_sellers_of_month()

        assert [p["id"] for p in best] == ["p3", "p1"]
        predicate, order, offset, limit = products.find.await_args.args
        assert order is SortOrder.POPULAR
        assert (offset, limit) == (0, settings.best_sellers_limit)
        assert FieldCompare("sales_count", ">", 0) in predicate.parts

    @pytest.mark.asyncio
    async def test_showing_products_are_unbounded(
        self, service: CatalogService, products: MagicMock
    ) -> None:
        """Every visible product is listed."""
        await service.get_showing_products()

        products.find.assert_awaited_once_with(
            SHOWING, SortOrder.NEWEST, 0, None, operation="find_showing_products"
        )

    @pytest.mark.asyncio
    async def test_product_by_slug(self, service: CatalogService, products: MagicMock) -> None:
        """A slug lookup returns the serialized product."""
        products.get_by_slug.return_value = simple("p9", "12")

        product = await service.get_product_by_slug("p9-slug")

        assert product["id"] == "p9"
        products.get_by_slug.assert_awaited_once_with("p9-slug")

    @pytest.mark.asyncio
    async def test_missing_slug(self, service: CatalogService) -> None:
        """An unknown slug raises with the slug in details."""
        with pytest.raises(ProductNotFoundError) as exc_info:
            await service.get_product_by_slug("nope")

        assert exc_info.value.details == {"slug": "nope"}
