"""Category tree management API"""
from fastapi import APIRouter, Depends, Query, status
from typing import List

from app.core.auth import Actor
from app.core.dependencies import get_category_service
from app.schemas.category import (
    CategoryCreate,
    CategoryMove,
    CategoryPage,
    CategoryResponse,
    CategoryStats,
    CategoryStatusUpdate,
    CategoryUpdate,
)
from app.services.category_service import MAX_PAGE_SIZE, CategoryService
import logging

logger = logging.getLogger(__name__)


categories_router = APIRouter(
    responses={
        400: {"description": "Invalid input"},
        404: {"description": "Category not found"},
        409: {"description": "Conflict with the current tree state"},
    },
)


# Static paths are declared before /{category_id} so they are matched first.

@categories_router.post(
    "",
    response_model=CategoryResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a category",
)
async def create_category(
    data: CategoryCreate,
    actor: Actor,
    service: CategoryService = Depends(get_category_service),
):
    """
    Create a category as a root (no parent_id) or under an existing parent.

    The slug, level and path are derived from the name and the parent.
    """
    return service.create_category(
        name=data.name,
        description=data.description,
        parent_id=data.parent_id,
        image_url=data.image_url,
        metadata=data.metadata,
        actor=actor,
    )


@categories_router.get("", response_model=CategoryPage, summary="List categories")
async def list_categories(
    page: int = Query(0, ge=0, description="0-based page index"),
    size: int = Query(20, ge=1, le=MAX_PAGE_SIZE),
    service: CategoryService = Depends(get_category_service),
):
    return service.list_categories(page=page, size=size)


@categories_router.get("/active", response_model=CategoryPage, summary="List active categories")
async def list_active_categories(
    page: int = Query(0, ge=0, description="0-based page index"),
    size: int = Query(20, ge=1, le=MAX_PAGE_SIZE),
    service: CategoryService = Depends(get_category_service),
):
    return service.list_active_categories(page=page, size=size)


@categories_router.get("/search", response_model=CategoryPage, summary="Search categories by name")
async def search_categories(
    q: str = Query(..., min_length=1, max_length=100, description="Name substring, case-insensitive"),
    page: int = Query(0, ge=0),
    size: int = Query(20, ge=1, le=MAX_PAGE_SIZE),
    service: CategoryService = Depends(get_category_service),
):
    return service.search_categories(q, page=page, size=size)


@categories_router.get("/roots", response_model=List[CategoryResponse], summary="List root categories")
async def get_root_categories(service: CategoryService = Depends(get_category_service)):
    return service.get_root_categories()


@categories_router.get("/leaves", response_model=List[CategoryResponse], summary="List leaf categories")
async def get_leaf_categories(service: CategoryService = Depends(get_category_service)):
    return service.get_leaf_categories()


@categories_router.get("/popular", response_model=List[CategoryResponse], summary="List popular categories")
async def get_popular_categories(
    limit: int = Query(10, ge=1, le=MAX_PAGE_SIZE),
    service: CategoryService = Depends(get_category_service),
):
    """Active categories ordered by number of linked products"""
    return service.get_popular_categories(limit)


@categories_router.get("/level/{level}", response_model=List[CategoryResponse], summary="List categories at a depth")
async def get_categories_by_level(
    level: int,
    service: CategoryService = Depends(get_category_service),
):
    return service.get_categories_by_level(level)


@categories_router.get("/slug/{slug}", response_model=CategoryResponse, summary="Get category by slug")
async def get_category_by_slug(
    slug: str,
    service: CategoryService = Depends(get_category_service),
):
    return service.get_by_slug(slug)


@categories_router.get("/path", response_model=CategoryResponse, summary="Get category by path")
async def get_category_by_path(
    path: str = Query(..., description="Materialized path, e.g. /grains/rice"),
    service: CategoryService = Depends(get_category_service),
):
    return service.get_by_path(path)


@categories_router.post("/rebuild-hierarchy", summary="Recompute hierarchy columns")
async def rebuild_hierarchy(
    actor: Actor,
    full: bool = Query(False, description="Recompute every node instead of only roots"),
    service: CategoryService = Depends(get_category_service),
):
    logger.info(f"Hierarchy rebuild (full={full}) requested by {actor}")
    changed = service.rebuild_hierarchy(full=full, actor=actor)
    return {"full": full, "updated": changed}


@categories_router.post("/reconcile-counters", summary="Recompute denormalized counters")
async def reconcile_counters(
    actor: Actor,
    service: CategoryService = Depends(get_category_service),
):
    logger.info(f"Counter reconciliation requested by {actor}")
    return {"corrected": service.reconcile_counters()}


@categories_router.get("/{category_id}", response_model=CategoryResponse, summary="Get category")
async def get_category(
    category_id: int,
    service: CategoryService = Depends(get_category_service),
):
    return service.get_category(category_id)


@categories_router.put("/{category_id}", response_model=CategoryResponse, summary="Update a category")
async def update_category(
    category_id: int,
    data: CategoryUpdate,
    actor: Actor,
    service: CategoryService = Depends(get_category_service),
):
    """
    Partially update a category. Omitted fields are left unchanged.

    Renaming regenerates the slug and rewrites the paths of the whole subtree.
    """
    return service.update_category(
        category_id,
        name=data.name,
        description=data.description,
        image_url=data.image_url,
        metadata=data.metadata,
        actor=actor,
    )


@categories_router.delete(
    "/{category_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a category",
)
async def delete_category(
    category_id: int,
    actor: Actor,
    service: CategoryService = Depends(get_category_service),
):
    """Soft-delete a category without children or products"""
    service.delete_category(category_id, actor=actor)


@categories_router.get(
    "/{category_id}/children",
    response_model=List[CategoryResponse],
    summary="List direct children",
)
async def get_child_categories(
    category_id: int,
    service: CategoryService = Depends(get_category_service),
):
    return service.get_child_categories(category_id)


@categories_router.get(
    "/{category_id}/hierarchy",
    response_model=List[CategoryResponse],
    summary="Get a category with all descendants",
)
async def get_category_hierarchy(
    category_id: int,
    service: CategoryService = Depends(get_category_service),
):
    return service.get_category_hierarchy(category_id)


@categories_router.get(
    "/{category_id}/breadcrumbs",
    response_model=List[str],
    summary="Get names from root to category",
)
async def get_breadcrumbs(
    category_id: int,
    service: CategoryService = Depends(get_category_service),
):
    return service.get_breadcrumbs(category_id)


@categories_router.get(
    "/{category_id}/stats",
    response_model=CategoryStats,
    summary="Get product statistics",
)
async def get_category_stats(
    category_id: int,
    service: CategoryService = Depends(get_category_service),
):
    return service.get_category_stats(category_id)


@categories_router.patch(
    "/{category_id}/status",
    response_model=CategoryResponse,
    summary="Activate or deactivate a category",
)
async def update_category_status(
    category_id: int,
    data: CategoryStatusUpdate,
    actor: Actor,
    service: CategoryService = Depends(get_category_service),
):
    return service.set_active(category_id, data.active, actor=actor)


@categories_router.patch(
    "/{category_id}/move",
    response_model=CategoryResponse,
    summary="Move a category under a new parent",
)
async def move_category(
    category_id: int,
    data: CategoryMove,
    actor: Actor,
    service: CategoryService = Depends(get_category_service),
):
    """Move a category and its subtree; a null new_parent_id moves it to root level"""
    return service.move_category(category_id, data.new_parent_id, actor=actor)
