"""Category tree assembly.

Categories are stored flat, each pointing at its parent. This module
builds the parent -> children forest, walks ancestor chains upward and
merges chains from many starting categories.

Parentage is not guaranteed to be acyclic, so every traversal is bounded
by a visited set and a depth cap.

Example:
    A (root)
    └── B (parent_id=A)
        └── C (parent_id=B)

    resolve_ancestors(C) -> [A, B]
"""

import asyncio
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from shopcatalog.catalog.models import Category
from shopcatalog.catalog.repository import CategoryRepository, ProductRepository
from shopcatalog.domain.exceptions import CategoryNotFoundError
from shopcatalog.infrastructure.config import settings

logger = structlog.get_logger()


@dataclass
class CategoryNode:
    """A category placed in a tree.

    Attributes:
        id: Category ID.
        name: Localized name.
        parent_id: ID of parent category (None for root).
        parent_name: Denormalized localized parent name.
        description: Localized description.
        icon: Icon URL.
        image: Image URL.
        status: "show" or "hide".
        is_top_category: Featured flag.
        product_count: Live number of associated products.
        is_checked: Selection flag for clients, always False here.
        children: Child nodes.
    """

    id: str
    name: dict[str, str]
    parent_id: str | None = None
    parent_name: dict[str, str] | None = None
    description: dict[str, str] | None = None
    icon: str | None = None
    image: str | None = None
    status: str = "show"
    is_top_category: bool = False
    product_count: int = 0
    is_checked: bool = False
    children: list["CategoryNode"] = field(default_factory=list, repr=False)

    @classmethod
    def from_model(cls, category: Category, product_count: int = 0) -> "CategoryNode":
        """Create a childless node from a stored category."""
        return cls(
            id=category.id,
            name=category.name or {},
            parent_id=category.parent_id,
            parent_name=category.parent_name,
            description=category.description,
            icon=category.icon,
            image=category.image,
            status=category.status,
            is_top_category=category.is_top_category,
            product_count=product_count,
        )

    def detached(self) -> "CategoryNode":
        """Copy of this node without children."""
        return CategoryNode(
            id=self.id,
            name=self.name,
            parent_id=self.parent_id,
            parent_name=self.parent_name,
            description=self.description,
            icon=self.icon,
            image=self.image,
            status=self.status,
            is_top_category=self.is_top_category,
            product_count=self.product_count,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary, children included."""
        return {
            "id": self.id,
            "name": self.name,
            "parent_id": self.parent_id,
            "parent_name": self.parent_name,
            "description": self.description,
            "icon": self.icon,
            "image": self.image,
            "status": self.status,
            "is_top_category": self.is_top_category,
            "product_count": self.product_count,
            "is_checked": self.is_checked,
            "children": [child.to_dict() for child in self.children],
        }


def merge_ancestors(chains: Iterable[Sequence[CategoryNode]]) -> list[CategoryNode]:
    """Union ancestor chains, keeping the first record seen per id.

    Args:
        chains: Ancestor lists, one per starting category.

    Returns:
        Deduplicated records in first-seen order.
    """
    merged: dict[str, CategoryNode] = {}
    for chain in chains:
        for record in chain:
            merged.setdefault(record.id, record)
    return list(merged.values())


def build_tree(
    records: Iterable[CategoryNode],
    max_depth: int | None = None,
) -> list[CategoryNode]:
    """Assemble a forest from flat category records.

    Roots are records without a parent and records whose parent is not
    among the given records. Children keep the input order. Records that
    are only reachable through a parentage cycle are left out.

    Args:
        records: Flat records; duplicates by id are ignored after the first.
        max_depth: Deepest level attached, defaults to the configured cap.

    Returns:
        Root nodes with their descendants attached.
    """
    max_depth = max_depth or settings.category_max_depth
    flat = merge_ancestors([list(records)])
    known = {record.id for record in flat}

    children: dict[str, list[CategoryNode]] = {}
    roots: list[CategoryNode] = []
    for record in flat:
        if record.parent_id and record.parent_id in known and record.parent_id != record.id:
            children.setdefault(record.parent_id, []).append(record)
        else:
            roots.append(record)

    visited: set[str] = set()

    def attach(record: CategoryNode, depth: int) -> CategoryNode:
        visited.add(record.id)
        node = record.detached()
        for child in children.get(record.id, []):
            if child.id in visited:
                continue
            if depth >= max_depth:
                logger.warning(
                    "Category tree depth cap reached",
                    category_id=record.id,
                    max_depth=max_depth,
                )
                break
            node.children.append(attach(child, depth + 1))
        return node

    forest = [attach(root, 1) for root in roots]

    unreached = [record.id for record in flat if record.id not in visited]
    if unreached:
        logger.warning("Categories unreachable from any root", category_ids=unreached)

    return forest


class CategoryTree:
    """Service assembling category trees with live product counts.

    Stateless between calls: build one per request.

    Example usage:
        async with async_session_factory() as session:
            tree = CategoryTree(session)
            forest = await tree.get_categories_with_live_product_counts()
    """

    def __init__(
        self,
        session: AsyncSession | None = None,
        *,
        categories: CategoryRepository | None = None,
        products: ProductRepository | None = None,
        max_depth: int | None = None,
    ) -> None:
        """Initialize service.

        Args:
            session: Async SQLAlchemy session backing the default repositories.
            categories: Category repository override.
            products: Product repository override.
            max_depth: Ancestor walk and tree depth cap.
        """
        lock = asyncio.Lock()
        self.categories = categories or CategoryRepository(session, lock)
        self.products = products or ProductRepository(session, lock)
        self.max_depth = max_depth or settings.category_max_depth

    async def get_category_tree(self, status: str | None = None) -> list[CategoryNode]:
        """Get the full category forest with product counts.

        Args:
            status: Only include categories with this status.

        Returns:
            Root nodes.
        """
        categories, counts = await asyncio.gather(
            self.categories.find_all(status=status),
            self.products.category_counts(),
        )
        records = [CategoryNode.from_model(c, counts.get(c.id, 0)) for c in categories]
        return build_tree(records, self.max_depth)

    async def resolve_ancestors(self, category_id: str) -> list[CategoryNode]:
        """Walk up from a category to its root.

        Each ancestor carries its live product count. The walk stops at a
        root, at a parent that no longer exists, on a revisited id, or at
        the depth cap.

        Args:
            category_id: Starting category.

        Returns:
            Ancestors ordered from root to immediate parent.
        """
        ancestors: list[CategoryNode] = []
        seen = {category_id}
        current = await self.categories.get_by_id(category_id)

        while current is not None and current.parent_id:
            if current.parent_id in seen:
                logger.warning(
                    "Category parentage cycle detected",
                    category_id=category_id,
                    repeated_id=current.parent_id,
                )
                break
            if len(ancestors) >= self.max_depth:
                logger.warning(
                    "Category ancestor depth cap reached",
                    category_id=category_id,
                    max_depth=self.max_depth,
                )
                break

            parent = await self.categories.get_by_id(current.parent_id)
            if parent is None:
                break

            count = await self.products.count_in_category(parent.id)
            ancestors.insert(0, CategoryNode.from_model(parent, count))
            seen.add(parent.id)
            current = parent

        return ancestors

    async def get_categories_with_live_product_counts(self) -> list[CategoryNode]:
        """Get the forest of categories that currently have products.

        Categories with at least one product are included with their
        whole ancestor chains; a shared ancestor appears once.

        Returns:
            Root nodes.
        """
        counts = await self.products.category_counts()
        categories = await self.categories.get_by_ids(sorted(counts))
        base = [CategoryNode.from_model(c, counts[c.id]) for c in categories]

        chains = await asyncio.gather(*(self.resolve_ancestors(c.id) for c in base))
        records = merge_ancestors([base, *chains])

        logger.info(
            "Assembled categories with products",
            with_products=len(base),
            total=len(records),
        )
        return build_tree(records, self.max_depth)

    async def get_featured_categories(self) -> list[dict[str, Any]]:
        """Get top categories with their product counts.

        Returns:
            Id, name, image and product count per top category.
        """
        categories = await self.categories.find_top()
        counts = await self.products.category_counts([c.id for c in categories])
        return [
            {
                "id": c.id,
                "name": c.name,
                "image": c.image,
                "product_count": counts.get(c.id, 0),
            }
            for c in categories
        ]

    async def update_category(self, category_id: str, data: dict[str, Any]) -> dict[str, Any]:
        """Partially update a category, merging localized fields.

        Raises:
            CategoryNotFoundError: If the category does not exist.
        """
        category = await self.categories.update(category_id, data)
        if category is None:
            raise CategoryNotFoundError(category_id)
        return category.to_dict()

    async def delete_categories(self, category_ids: Sequence[str]) -> int:
        """Delete categories and, one level deep, their children."""
        return await self.categories.delete_many(list(category_ids))

    async def delete_category(self, category_id: str) -> int:
        """Delete one category and its direct children.

        Raises:
            CategoryNotFoundError: If the category does not exist.
        """
        if await self.categories.get_by_id(category_id) is None:
            raise CategoryNotFoundError(category_id)
        return await self.categories.delete_many([category_id])
