"""Catalog repositories for database operations.

Every statement runs through :meth:`Repository._execute`, which
serializes access to the shared session and turns driver failures into
:class:`StoreUnavailableError`. Services issue independent lookups
concurrently; one ``AsyncSession`` cannot run two statements at once,
so repositories built over the same session share a lock.
"""

import asyncio
from collections.abc import Iterable, Sequence
from typing import Any

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import load_only, raiseload, selectinload

from shopcatalog.catalog.facets import Predicate, SortOrder
from shopcatalog.catalog.models import (
    Attribute,
    Category,
    Product,
    Tag,
    product_categories,
)
from shopcatalog.catalog.query import PredicateCompiler, sort_columns
from shopcatalog.domain.exceptions import StoreUnavailableError

logger = structlog.get_logger()


class Repository:
    """Base repository bound to one session.

    Args:
        session: Async SQLAlchemy session.
        lock: Lock shared by every repository using ``session``.
    """

    def __init__(self, session: AsyncSession, lock: asyncio.Lock | None = None) -> None:
        self.session = session
        self.lock = lock or asyncio.Lock()

    async def _execute(self, operation: str, statement: Any) -> Any:
        """Execute a statement, reporting store failures distinctly.

        Args:
            operation: Name used in logs and errors.
            statement: SQLAlchemy statement.

        Returns:
            Buffered result.

        Raises:
            StoreUnavailableError: If the database cannot answer.
        """
        async with self.lock:
            try:
                return await self.session.execute(statement)
            except (SQLAlchemyError, OSError) as e:
                logger.error(
                    "Catalog store query failed",
                    operation=operation,
                    error=str(e),
                )
                raise StoreUnavailableError(operation, str(e)) from e

    async def _flush(self, operation: str) -> None:
        async with self.lock:
            try:
                await self.session.flush()
            except (SQLAlchemyError, OSError) as e:
                logger.error("Catalog store write failed", operation=operation, error=str(e))
                raise StoreUnavailableError(operation, str(e)) from e


# ============================================================================
# Products
# ============================================================================


class ProductRepository(Repository):
    """Repository for Product database operations.

    Handles filtering with compiled predicates, sorting, pagination and
    the per-category aggregates the category tree needs.

    Example usage:
        async with async_session_factory() as session:
            repo = ProductRepository(session)
            products = await repo.find(compiled.store, SortOrder.NEWEST, 0, 12)
    """

    def __init__(self, session: AsyncSession, lock: asyncio.Lock | None = None) -> None:
        super().__init__(session, lock)
        self.compiler = PredicateCompiler()

    async def save(
        self,
        product: Product,
        category_ids: Iterable[str] = (),
        tag_ids: Iterable[str] = (),
    ) -> Product:
        """Save a product with its category and tag associations.

        Args:
            product: Product to save.
            category_ids: Categories to associate.
            tag_ids: Tags to associate.

        Returns:
            Saved product.
        """
        product.categories = await self._load_related("load_categories", Category, category_ids)
        product.tags = await self._load_related("load_tags", Tag, tag_ids)
        if product.name is None and product.title:
            product.name = product.title.get("en") or product.title.get("fr")

        self.session.add(product)
        await self._flush("save_product")
        return product

    async def _load_related(
        self, operation: str, model: type[Category] | type[Tag], ids: Iterable[str]
    ) -> list[Any]:
        ids = list(ids)
        if not ids:
            return []
        result = await self._execute(operation, select(model).where(model.id.in_(ids)))
        return list(result.scalars().all())

    async def get_by_id(self, product_id: str) -> Product | None:
        """Get product by ID.

        Args:
            product_id: Product ID.

        Returns:
            Product if found, None otherwise.
        """
        result = await self._execute(
            "get_product", select(Product).where(Product.id == product_id)
        )
        return result.scalar_one_or_none()

    async def get_by_ids(self, product_ids: Sequence[str]) -> list[Product]:
        """Get products by IDs, in the order the IDs are given.

        Args:
            product_ids: Product IDs.

        Returns:
            Products found, missing IDs skipped.
        """
        if not product_ids:
            return []
        # price candidates may already sit in the identity map half-loaded
        query = (
            select(Product)
            .where(Product.id.in_(product_ids))
            .execution_options(populate_existing=True)
        )
        result = await self._execute("get_products", query)
        by_id = {p.id: p for p in result.scalars().all()}
        return [by_id[pid] for pid in product_ids if pid in by_id]

    async def get_by_slug(self, slug: str) -> Product | None:
        """Get product by slug.

        Args:
            slug: Product slug, matched exactly.

        Returns:
            First product with that slug, None if there is none.
        """
        query = select(Product).where(Product.slug == slug).order_by(Product.id).limit(1)
        result = await self._execute("get_product_by_slug", query)
        return result.scalar_one_or_none()

    async def find(
        self,
        predicate: Predicate,
        order: SortOrder = SortOrder.NEWEST,
        offset: int = 0,
        limit: int | None = 12,
        operation: str = "find_products",
    ) -> list[Product]:
        """Find one page of products matching a predicate.

        Args:
            predicate: Store part of a compiled query, or a storefront view.
            order: Non-price order.
            offset: Rows to skip.
            limit: Maximum rows, None for all of them.
            operation: Name reported in logs and store errors.

        Returns:
            Matching products.
        """
        query = (
            select(Product)
            .where(self.compiler.to_clause(predicate))
            .order_by(*sort_columns(order))
            .offset(offset)
        )
        if limit is not None:
            query = query.limit(limit)
        result = await self._execute(operation, query)
        return list(result.scalars().all())

    async def count(self, predicate: Predicate) -> int:
        """Count products matching a predicate.

        Args:
            predicate: Store part of a compiled query.

        Returns:
            Count of matching products.
        """
        query = select(func.count(Product.id)).where(self.compiler.to_clause(predicate))
        result = await self._execute("count_products", query)
        return result.scalar_one()

    async def find_price_candidates(self, predicate: Predicate) -> list[Product]:
        """Load every match with only the fields needed to resolve prices.

        Args:
            predicate: Store part of a compiled query.

        Returns:
            Products with pricing columns and variants loaded.
        """
        query = (
            select(Product)
            .where(self.compiler.to_clause(predicate))
            .options(
                load_only(
                    Product.id,
                    Product.is_combination,
                    Product.original_price,
                    Product.price,
                    Product.discount,
                    Product.promotional,
                    Product.date_to_promo,
                ),
                selectinload(Product.variants),
                raiseload(Product.categories),
                raiseload(Product.tags),
            )
        )
        result = await self._execute("find_price_candidates", query)
        return list(result.scalars().all())

    async def get_brands(self) -> list[str]:
        """Get distinct non-empty brands, trimmed and lowercased.

        Returns:
            Sorted brand names.
        """
        brand = func.trim(func.lower(Product.brand))
        query = (
            select(brand)
            .where(Product.brand.is_not(None), Product.brand != "")
            .group_by(brand)
            .order_by(brand)
        )
        result = await self._execute("get_brands", query)
        return [row for row in result.scalars().all() if row]

    async def count_in_category(self, category_id: str) -> int:
        """Count products associated with a category.

        Args:
            category_id: Category ID.

        Returns:
            Live product count.
        """
        query = select(func.count()).select_from(product_categories).where(
            product_categories.c.category_id == category_id
        )
        result = await self._execute("count_in_category", query)
        return result.scalar_one()

    async def category_counts(self, category_ids: Sequence[str] | None = None) -> dict[str, int]:
        """Count products per category.

        Args:
            category_ids: Restrict to these categories; all when None.

        Returns:
            Mapping of category id to product count, categories with at
            least one product only.
        """
        query = select(
            product_categories.c.category_id,
            func.count(product_categories.c.product_id),
        ).group_by(product_categories.c.category_id)
        if category_ids is not None:
            query = query.where(product_categories.c.category_id.in_(category_ids))
        result = await self._execute("category_counts", query)
        return {category_id: count for category_id, count in result.all() if count > 0}


# ============================================================================
# Categories
# ============================================================================


LOCALIZED_CATEGORY_FIELDS = ("name", "description")
SCALAR_CATEGORY_FIELDS = (
    "slug",
    "icon",
    "image",
    "status",
    "parent_id",
    "parent_name",
    "is_top_category",
)


class CategoryRepository(Repository):
    """Repository for Category database operations."""

    async def save(self, category: Category) -> Category:
        """Save a category.

        Args:
            category: Category to save.

        Returns:
            Saved category.
        """
        self.session.add(category)
        await self._flush("save_category")
        return category

    async def get_by_id(self, category_id: str) -> Category | None:
        """Get category by ID.

        Args:
            category_id: Category ID.

        Returns:
            Category if found, None otherwise.
        """
        result = await self._execute(
            "get_category", select(Category).where(Category.id == category_id)
        )
        return result.scalar_one_or_none()

    async def get_by_ids(self, category_ids: Sequence[str]) -> list[Category]:
        """Get categories by IDs.

        Args:
            category_ids: Category IDs.

        Returns:
            Categories found.
        """
        if not category_ids:
            return []
        result = await self._execute(
            "get_categories", select(Category).where(Category.id.in_(category_ids))
        )
        return list(result.scalars().all())

    async def find_all(self, status: str | None = None) -> list[Category]:
        """Get all categories, newest first.

        Args:
            status: Optional status filter.

        Returns:
            Categories.
        """
        query = select(Category).order_by(Category.created_at.desc(), Category.id.desc())
        if status is not None:
            query = query.where(Category.status == status)
        result = await self._execute("find_categories", query)
        return list(result.scalars().all())

    async def find_top(self) -> list[Category]:
        """Get categories flagged as top categories.

        Returns:
            Top categories.
        """
        result = await self._execute(
            "find_top_categories",
            select(Category).where(Category.is_top_category.is_(True)),
        )
        return list(result.scalars().all())

    async def find_ids_by_name(self, text: str, locale: str) -> list[str]:
        """Get ids of categories whose localized name contains the text.

        Args:
            text: Text to search, case-insensitive.
            locale: Locale of the name to search.

        Returns:
            Matching category ids.
        """
        query = select(Category.id).where(
            Category.name[locale].as_string().icontains(text, autoescape=True)
        )
        result = await self._execute("find_categories_by_name", query)
        return list(result.scalars().all())

    async def update(self, category_id: str, data: dict[str, Any]) -> Category | None:
        """Partially update a category.

        Localized fields are merged into the existing locale maps; other
        fields are overwritten only when a value is provided. ``parent_name``
        is caller-maintained and replaced whenever given.

        Args:
            category_id: Category ID.
            data: Fields to update.

        Returns:
            Updated category, None if it does not exist.
        """
        category = await self.get_by_id(category_id)
        if category is None:
            return None

        for field in LOCALIZED_CATEGORY_FIELDS:
            if data.get(field) is not None:
                current = getattr(category, field) or {}
                setattr(category, field, {**current, **data[field]})
        for field in SCALAR_CATEGORY_FIELDS:
            if data.get(field) is not None:
                setattr(category, field, data[field])

        await self._flush("update_category")
        return category

    async def delete_many(self, category_ids: Sequence[str]) -> int:
        """Delete categories and their direct children.

        The cascade is one level deep: grandchildren keep their (now
        dangling) parent pointer and surface as orphaned roots.

        Args:
            category_ids: Category IDs to delete.

        Returns:
            Number of categories deleted.
        """
        if not category_ids:
            return 0

        result = await self._execute(
            "find_child_categories",
            select(Category.id).where(Category.parent_id.in_(category_ids)),
        )
        doomed = list(dict.fromkeys([*category_ids, *result.scalars().all()]))

        await self._execute(
            "unlink_categories",
            delete(product_categories).where(product_categories.c.category_id.in_(doomed)),
        )
        result = await self._execute(
            "delete_categories",
            delete(Category).where(Category.id.in_(doomed)).execution_options(
                synchronize_session=False
            ),
        )
        logger.info(
            "Categories deleted",
            requested=list(category_ids),
            deleted=result.rowcount,
        )
        return result.rowcount


# ============================================================================
# Tags and attributes
# ============================================================================


class TagRepository(Repository):
    """Repository for Tag lookups used by search."""

    async def save(self, tag: Tag) -> Tag:
        """Save a tag."""
        self.session.add(tag)
        await self._flush("save_tag")
        return tag

    async def get_by_slug(self, slug: str) -> Tag | None:
        """Get tag by slug."""
        result = await self._execute("get_tag", select(Tag).where(Tag.slug == slug).limit(1))
        return result.scalar_one_or_none()

    async def find_ids_by_name(self, text: str, locale: str) -> list[str]:
        """Get ids of tags whose localized name contains the text."""
        query = select(Tag.id).where(Tag.name[locale].as_string().icontains(text, autoescape=True))
        result = await self._execute("find_tags_by_name", query)
        return list(result.scalars().all())


class AttributeRepository(Repository):
    """Repository for variant attributes."""

    async def save(self, attribute: Attribute) -> Attribute:
        """Save an attribute with its options."""
        self.session.add(attribute)
        await self._flush("save_attribute")
        return attribute

    async def find_color_options(self, colors: Sequence[str]) -> dict[str, list[str]]:
        """Resolve colour names to option ids per attribute.

        An option matches when its name in any locale equals one of the
        colours, ignoring case. Only visible attributes are considered.

        Args:
            colors: Colour names.

        Returns:
            Attribute id -> matching option ids, attributes without a match omitted.
        """
        wanted = {c.strip().lower() for c in colors if c and c.strip()}
        if not wanted:
            return {}

        result = await self._execute(
            "find_color_attributes",
            select(Attribute).where(Attribute.status == "show"),
        )
        resolved: dict[str, list[str]] = {}
        for attribute in result.scalars().all():
            option_ids = [
                option.id
                for option in attribute.options
                if any(
                    isinstance(label, str) and label.strip().lower() in wanted
                    for label in (option.name or {}).values()
                )
            ]
            if option_ids:
                resolved[attribute.id] = option_ids
        return resolved
