"""Shared fixtures for API tests."""

from collections.abc import Generator
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from shopcatalog.api.categories import get_category_tree
from shopcatalog.api.products import get_catalog_service
from shopcatalog.catalog.service import StoreProducts
from shopcatalog.main import app


@pytest.fixture
def catalog_service() -> MagicMock:
    """Catalog service double."""
    service = MagicMock()
    service.search_products = AsyncMock()
    service.get_product = AsyncMock()
    service.get_brands = AsyncMock(return_value=[])
    service.get_product_by_slug = AsyncMock()
    service.get_showing_products = AsyncMock(return_value=[])
    service.get_best_sellers_of_month = AsyncMock(return_value=[])
    service.get_store_products = AsyncMock(return_value=StoreProducts())
    return service


@pytest.fixture
def category_tree() -> MagicMock:
    """Category tree service double."""
    tree = MagicMock()
    tree.get_category_tree = AsyncMock(return_value=[])
    tree.get_categories_with_live_product_counts = AsyncMock(return_value=[])
    tree.get_featured_categories = AsyncMock(return_value=[])
    tree.resolve_ancestors = AsyncMock(return_value=[])
    tree.update_category = AsyncMock()
    tree.delete_category = AsyncMock(return_value=0)
    tree.delete_categories = AsyncMock(return_value=0)
    return tree


@pytest.fixture
def client(
    catalog_service: MagicMock, category_tree: MagicMock
) -> Generator[TestClient, None, None]:
    """Create test client with service doubles injected."""
    app.dependency_overrides[get_catalog_service] = lambda: catalog_service
    app.dependency_overrides[get_category_tree] = lambda: category_tree
    yield TestClient(app)
    app.dependency_overrides.clear()
