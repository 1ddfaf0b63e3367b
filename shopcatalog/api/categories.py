"""Category API endpoints.

Provides category forests with live product counts, ancestor chains,
partial updates and cascading deletes.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from shopcatalog.api.schemas import (
    CategorySchema,
    CategoryNodeSchema,
    CategoryTreeResponse,
    CategoryUpdateRequest,
    DeleteCategoriesRequest,
    DeleteCategoriesResponse,
    ErrorResponse,
    FeaturedCategorySchema,
)
from shopcatalog.catalog.tree import CategoryNode, CategoryTree
from shopcatalog.infrastructure.database import get_session

router = APIRouter(prefix="/categories", tags=["Categories"])


# ============================================================================
# Dependencies
# ============================================================================


def get_category_tree(
    session: Annotated[AsyncSession, Depends(get_session)],
) -> CategoryTree:
    """Get a request-scoped category tree service."""
    return CategoryTree(session)


# ============================================================================
# Converters
# ============================================================================


def forest_to_response(forest: list[CategoryNode]) -> CategoryTreeResponse:
    """Convert a category forest to response schema."""
    return CategoryTreeResponse(
        categories=[CategoryNodeSchema.model_validate(node.to_dict()) for node in forest]
    )


# ============================================================================
# Endpoints
# ============================================================================


@router.get(
    "",
    response_model=CategoryTreeResponse,
    responses={503: {"model": ErrorResponse}},
    summary="Category tree",
    description="All categories as a forest, with product counts.",
)
async def list_categories(
    tree: Annotated[CategoryTree, Depends(get_category_tree)],
) -> CategoryTreeResponse:
    """Get every category as a forest."""
    return forest_to_response(await tree.get_category_tree())


@router.get(
    "/showing",
    response_model=CategoryTreeResponse,
    responses={503: {"model": ErrorResponse}},
    summary="Visible category tree",
    description="Categories with status 'show' as a forest.",
)
async def list_showing_categories(
    tree: Annotated[CategoryTree, Depends(get_category_tree)],
) -> CategoryTreeResponse:
    """Get visible categories as a forest."""
    return forest_to_response(await tree.get_category_tree(status="show"))


@router.get(
    "/with-products",
    response_model=CategoryTreeResponse,
    responses={503: {"model": ErrorResponse}},
    summary="Categories with products",
    description=(
        "Categories that currently have products, with their ancestors, "
        "as a forest with live product counts."
    ),
)
async def list_categories_with_products(
    tree: Annotated[CategoryTree, Depends(get_category_tree)],
) -> CategoryTreeResponse:
    """Get the live-count forest."""
    return forest_to_response(await tree.get_categories_with_live_product_counts())


@router.get(
    "/featured",
    response_model=list[FeaturedCategorySchema],
    responses={503: {"model": ErrorResponse}},
    summary="Featured categories",
    description="Top categories with their product counts.",
)
async def list_featured_categories(
    tree: Annotated[CategoryTree, Depends(get_category_tree)],
) -> list[FeaturedCategorySchema]:
    """Get top categories."""
    featured = await tree.get_featured_categories()
    return [FeaturedCategorySchema.model_validate(item) for item in featured]


@router.get(
    "/{category_id}/ancestors",
    response_model=list[CategoryNodeSchema],
    responses={503: {"model": ErrorResponse}},
    summary="Category ancestors",
    description="Ancestor chain from the root down to the immediate parent.",
)
async def get_ancestors(
    category_id: str,
    tree: Annotated[CategoryTree, Depends(get_category_tree)],
) -> list[CategoryNodeSchema]:
    """Get the ancestors of a category.

    An unknown category has no ancestors.
    """
    ancestors = await tree.resolve_ancestors(category_id)
    return [CategoryNodeSchema.model_validate(node.to_dict()) for node in ancestors]


@router.put(
    "/{category_id}",
    response_model=CategorySchema,
    responses={
        404: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
    summary="Update category",
    description="Partially update a category, merging localized fields.",
)
async def update_category(
    category_id: str,
    request: CategoryUpdateRequest,
    tree: Annotated[CategoryTree, Depends(get_category_tree)],
) -> CategorySchema:
    """Update a category.

    Args:
        category_id: Category identifier.
        request: Fields to change.
        tree: Category tree service.

    Returns:
        Updated category.

    Raises:
        CategoryNotFoundError: If the category does not exist.
    """
    category = await tree.update_category(category_id, request.model_dump(exclude_none=True))
    return CategorySchema.model_validate(category)


@router.delete(
    "/{category_id}",
    response_model=DeleteCategoriesResponse,
    responses={
        404: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
    summary="Delete category",
    description="Delete a category and its direct children.",
)
async def delete_category(
    category_id: str,
    tree: Annotated[CategoryTree, Depends(get_category_tree)],
) -> DeleteCategoriesResponse:
    """Delete one category, cascading one level."""
    deleted = await tree.delete_category(category_id)
    return DeleteCategoriesResponse(deleted=deleted)


@router.post(
    "/delete-many",
    response_model=DeleteCategoriesResponse,
    responses={503: {"model": ErrorResponse}},
    summary="Delete categories",
    description="Delete several categories and their direct children.",
)
async def delete_categories(
    request: DeleteCategoriesRequest,
    tree: Annotated[CategoryTree, Depends(get_category_tree)],
) -> DeleteCategoriesResponse:
    """Delete categories, cascading one level."""
    deleted = await tree.delete_categories(request.ids)
    return DeleteCategoriesResponse(deleted=deleted)
