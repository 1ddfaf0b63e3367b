"""Catalog query engine.

Compiles search facets into a predicate tree, resolves effective prices,
groups variant fragments by attribute axis and assembles category trees
with live product counts.
"""

from shopcatalog.catalog.facets import CompiledQuery, SearchFacets, SortOrder, compile_facets
from shopcatalog.catalog.models import Attribute, AttributeOption, Category, Product, ProductVariant, Tag
from shopcatalog.catalog.pricing import resolve_price
from shopcatalog.catalog.repository import (
    AttributeRepository,
    CategoryRepository,
    ProductRepository,
    TagRepository,
)
from shopcatalog.catalog.service import CatalogService, PaginationParams, SearchResult
from shopcatalog.catalog.tree import CategoryNode, CategoryTree, build_tree, merge_ancestors
from shopcatalog.catalog.variants import group_variants

__all__ = [
    # Facets
    "CompiledQuery",
    "SearchFacets",
    "SortOrder",
    "compile_facets",
    # Models
    "Attribute",
    "AttributeOption",
    "Category",
    "Product",
    "ProductVariant",
    "Tag",
    # Pricing and variants
    "resolve_price",
    "group_variants",
    # Repositories
    "AttributeRepository",
    "CategoryRepository",
    "ProductRepository",
    "TagRepository",
    # Services
    "CatalogService",
    "PaginationParams",
    "SearchResult",
    "CategoryNode",
    "CategoryTree",
    "build_tree",
    "merge_ancestors",
]
