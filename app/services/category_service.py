# app/services/category_service.py
import math
from collections import defaultdict
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import (
    CategoryNotFoundError,
    DepthExceededError,
    DuplicateNameError,
    HasActiveChildrenError,
    HasActiveProductsError,
    HasChildrenError,
    HasProductsError,
    InvalidMoveError,
    ValidationFailedError,
)
from app.core.logging import get_logger
from app.core.slug import NAME_MAX_LENGTH, NAME_PATTERN, build_path, slugify, unique_slug
from app.db.models.category import Category
from app.db.repositories.category_repository import CategoryRepository
from app.events import CategoryEvent, CategoryEventType, EventPublisher, get_event_publisher
from app.schemas.category import CategoryInDB, CategoryPage, CategoryStats
from app.services.cache_service import CacheService, get_cache_service

logger = get_logger(__name__)

MAX_PAGE_SIZE = 100
SYSTEM_ACTOR = "system"


class CategoryService:
    """
    Service for hierarchical category management.

    Every mutating call runs in a single transaction: node fields, parent
    counters and descendant path rewrites commit together or not at all.
    Cache eviction and event publication happen only after the commit.
    """

    def __init__(
        self,
        db_session: Session,
        cache: Optional[CacheService] = None,
        publisher: Optional[EventPublisher] = None,
        max_depth: Optional[int] = None,
    ):
        self.db_session = db_session
        self.category_repo = CategoryRepository(db_session)
        self.cache = cache if cache is not None else get_cache_service()
        self.publisher = publisher if publisher is not None else get_event_publisher()
        self.max_depth = max_depth or settings.CATEGORY_MAX_DEPTH

    @property
    def max_level(self) -> int:
        """Deepest level a category may sit at (root is level 0)"""
        return self.max_depth - 1

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_category(
        self,
        name: str,
        description: Optional[str] = None,
        parent_id: Optional[int] = None,
        image_url: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        *,
        actor: str,
    ) -> CategoryInDB:
        """Create a new category, as a root or under an existing parent"""
        logger.debug(f"Creating category '{name}' with parent {parent_id}")

        with self._transaction():
            name = self._validate_name(name)

            parent = None
            if parent_id is not None:
                parent = self._require(parent_id, for_update=True, label="Parent category")
                self._check_depth(parent)

            if self.category_repo.exists_by_name_and_parent(name, parent_id):
                raise DuplicateNameError(
                    f"Category with name '{name}' already exists at this level",
                    {"name": name, "parent_id": parent_id},
                )

            slug = self._generate_slug(name, parent_id)
            now = _utcnow()
            category = Category(
                name=name,
                slug=slug,
                description=description,
                parent_id=parent_id,
                image_url=image_url,
                metadata_=metadata or {},
                level=parent.level + 1 if parent else 0,
                path=build_path(parent.path if parent else None, slug),
                active=True,
                deleted=False,
                children_count=0,
                product_count=0,
                created_at=now,
                created_by=actor,
                updated_at=now,
                updated_by=actor,
            )
            self.category_repo.add(category)

            if parent is not None:
                self.category_repo.adjust_children_count(parent.id, 1)

        result = CategoryInDB.model_validate(category)
        self.cache.invalidate_all()
        self._publish(CategoryEventType.CREATED, result, actor)

        logger.info(f"Created category '{result.name}' with ID {result.id} at {result.path}")
        return result

    def update_category(
        self,
        category_id: int,
        name: Optional[str] = None,
        description: Optional[str] = None,
        image_url: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        *,
        actor: str,
    ) -> CategoryInDB:
        """
        Partially update a category.

        A rename regenerates the slug, and since the slug is a path segment the
        paths of the whole subtree are rewritten in the same transaction.
        """
        logger.debug(f"Updating category {category_id}")

        with self._transaction():
            category = self._require(category_id, for_update=True)
            changes: Dict[str, Dict[str, Any]] = {}

            if name is not None:
                name = self._validate_name(name)
                if name != category.name:
                    if self.category_repo.exists_by_name_and_parent(
                        name, category.parent_id, exclude_id=category.id
                    ):
                        raise DuplicateNameError(
                            f"Category with name '{name}' already exists at this level",
                            {"name": name, "parent_id": category.parent_id},
                        )
                    changes["name"] = {"before": category.name, "after": name}
                    category.name = name

                    slug = self._generate_slug(name, category.parent_id, exclude_id=category.id)
                    if slug != category.slug:
                        changes["slug"] = {"before": category.slug, "after": slug}
                        category.slug = slug
                        parent = (
                            self._require(category.parent_id)
                            if category.parent_id is not None
                            else None
                        )
                        old_path = category.path
                        self._rewrite_subtree(
                            category,
                            self.category_repo.get_descendants(category.id),
                            build_path(parent.path if parent else None, slug),
                            category.level,
                            actor,
                        )
                        changes["path"] = {"before": old_path, "after": category.path}

            for field, value in (
                ("description", description),
                ("image_url", image_url),
                ("metadata_", metadata),
            ):
                if value is None:
                    continue
                current = getattr(category, field)
                if value != current:
                    changes[field.rstrip("_")] = {"before": current, "after": value}
                    setattr(category, field, value)

            category.updated_by = actor
            category.updated_at = _utcnow()
            self.category_repo.flush()

        result = CategoryInDB.model_validate(category)
        self.cache.invalidate_all()
        self._publish(CategoryEventType.UPDATED, result, actor, {"changes": changes})

        logger.info(f"Updated category '{result.name}' with ID {result.id}")
        return result

    def move_category(
        self, category_id: int, new_parent_id: Optional[int], *, actor: str
    ) -> CategoryInDB:
        """Move a category (and its subtree) under a new parent, or to root level when None"""
        logger.debug(f"Moving category {category_id} to new parent {new_parent_id}")

        with self._transaction():
            category = self._require(category_id, for_update=True)

            new_parent = None
            if new_parent_id is not None:
                if new_parent_id == category_id:
                    raise InvalidMoveError(
                        "Cannot move category to itself", {"category_id": category_id}
                    )
                new_parent = self._require(
                    new_parent_id, for_update=True, label="New parent category"
                )

            descendants = self.category_repo.get_descendants(category.id)
            if new_parent is not None:
                if any(descendant.id == new_parent.id for descendant in descendants):
                    raise InvalidMoveError(
                        "Cannot move category to its own descendant",
                        {"category_id": category_id, "new_parent_id": new_parent_id},
                    )
                self._check_depth(new_parent)

            new_level = new_parent.level + 1 if new_parent else 0
            subtree_height = self._subtree_height(category, descendants)
            if new_level + subtree_height > self.max_level:
                raise DepthExceededError(
                    "Maximum category depth exceeded by moved subtree",
                    {"max_depth": self.max_depth, "subtree_height": subtree_height},
                )

            if self.category_repo.exists_by_name_and_parent(
                category.name, new_parent_id, exclude_id=category.id
            ):
                raise DuplicateNameError(
                    "Category with same name already exists at destination",
                    {"name": category.name, "parent_id": new_parent_id},
                )

            if self.category_repo.exists_by_slug_and_parent(
                category.slug, new_parent_id, exclude_id=category.id
            ):
                category.slug = self._generate_slug(
                    category.name, new_parent_id, exclude_id=category.id
                )

            old_parent_id = category.parent_id
            category.parent_id = new_parent_id
            self._rewrite_subtree(
                category,
                descendants,
                build_path(new_parent.path if new_parent else None, category.slug),
                new_level,
                actor,
            )

            if old_parent_id is not None:
                self.category_repo.adjust_children_count(old_parent_id, -1)
            if new_parent_id is not None:
                self.category_repo.adjust_children_count(new_parent_id, 1)

        result = CategoryInDB.model_validate(category)
        self.cache.invalidate_all()
        self._publish(
            CategoryEventType.MOVED,
            result,
            actor,
            {"oldParentId": old_parent_id, "newParentId": new_parent_id},
        )

        logger.info(
            f"Moved category {category_id} from parent {old_parent_id} to parent "
            f"{new_parent_id} ({len(descendants)} descendants rewritten)"
        )
        return result

    def set_active(self, category_id: int, active: bool, *, actor: str) -> CategoryInDB:
        """
        Activate or deactivate a category.

        Deactivation is refused while any direct child or linked product is
        active, and cascades active=false to direct children only.
        """
        logger.debug(f"Updating category {category_id} status to {active}")

        with self._transaction():
            category = self._require(category_id, for_update=True)

            if not active:
                if self.category_repo.count_children(category.id, active_only=True) > 0:
                    raise HasActiveChildrenError(
                        "Cannot deactivate category with active children",
                        {"category_id": category_id},
                    )
                if self.category_repo.count_products(category.id, active_only=True) > 0:
                    raise HasActiveProductsError(
                        "Cannot deactivate category with active products",
                        {"category_id": category_id},
                    )

            previous = category.active
            category.active = active
            category.updated_by = actor
            category.updated_at = _utcnow()
            self.category_repo.flush()

            if not active:
                cascaded = self.category_repo.deactivate_children(category.id, actor)
                logger.debug(f"Deactivated {cascaded} child categories of {category_id}")

        result = CategoryInDB.model_validate(category)
        self.cache.invalidate_all()
        self._publish(
            CategoryEventType.STATUS_CHANGED,
            result,
            actor,
            {"active": active, "previousActive": previous},
        )

        logger.info(f"Updated category {category_id} status to {active}")
        return result

    def delete_category(self, category_id: int, *, actor: str) -> None:
        """Soft-delete a category that has no children and no products"""
        logger.debug(f"Deleting category {category_id}")

        with self._transaction():
            category = self._require(category_id, for_update=True)

            if self.category_repo.count_children(category.id) > 0:
                raise HasChildrenError(
                    "Cannot delete category with children", {"category_id": category_id}
                )
            if self.category_repo.count_products(category.id) > 0:
                raise HasProductsError(
                    "Cannot delete category with products", {"category_id": category_id}
                )

            category.deleted = True
            category.updated_by = actor
            category.updated_at = _utcnow()
            self.category_repo.flush()

            if category.parent_id is not None:
                self.category_repo.adjust_children_count(category.parent_id, -1)

        result = CategoryInDB.model_validate(category)
        self.cache.invalidate_all()
        self._publish(CategoryEventType.DELETED, result, actor)

        logger.info(f"Deleted category '{result.name}' with ID {category_id}")

    # ------------------------------------------------------------------
    # Administrative recovery
    # ------------------------------------------------------------------

    def rebuild_hierarchy(self, full: bool = False, actor: str = SYSTEM_ACTOR) -> int:
        """
        Recompute materialized hierarchy columns.

        By default only root categories are reset (level 0, path "/<slug>").
        With full=True every non-deleted node's level and path are recomputed
        from its parent chain and the denormalized counters are reconciled.

        Returns:
            Number of categories whose hierarchy columns changed
        """
        logger.debug(f"Rebuilding category hierarchy (full={full})")

        with self._transaction():
            nodes = self.category_repo.list_all_live()
            by_parent: Dict[Optional[int], List[Category]] = defaultdict(list)
            for node in nodes:
                by_parent[node.parent_id].append(node)

            changed = 0
            pending: List[Tuple[Category, Optional[Category]]] = [
                (root, None) for root in by_parent.get(None, [])
            ]
            while pending:
                node, parent = pending.pop()
                level = parent.level + 1 if parent else 0
                path = build_path(parent.path if parent else None, node.slug)
                if (node.level, node.path) != (level, path):
                    node.level = level
                    node.path = path
                    node.updated_by = actor
                    node.updated_at = _utcnow()
                    changed += 1
                if full:
                    pending.extend((child, node) for child in by_parent.get(node.id, []))

            self.category_repo.flush()
            if full:
                self._reconcile_counters(nodes)

        self.cache.invalidate_all()
        logger.info(f"Rebuilt category hierarchy (full={full}), {changed} categories changed")
        return changed

    def reconcile_counters(self) -> int:
        """
        Recompute children_count and product_count from the authoritative rows.

        Returns:
            Number of categories whose counters were corrected
        """
        logger.debug("Reconciling category counters")

        with self._transaction():
            corrected = self._reconcile_counters(self.category_repo.list_all_live())

        if corrected:
            self.cache.invalidate_all()
        logger.info(f"Reconciled category counters, {corrected} categories corrected")
        return corrected

    # ------------------------------------------------------------------
    # Reads (cache-aside)
    # ------------------------------------------------------------------

    def get_category(self, category_id: int) -> CategoryInDB:
        """Get category by ID"""
        return self._cached_one(
            self.cache.key("id", category_id), lambda: self._require(category_id)
        )

    def get_by_slug(self, slug: str) -> CategoryInDB:
        """Get category by slug"""
        def load():
            category = self.category_repo.get_by_slug(slug)
            if category is None:
                raise CategoryNotFoundError(f"Category not found with slug: {slug}", {"slug": slug})
            return category

        return self._cached_one(self.cache.key("slug", slug), load)

    def get_by_path(self, path: str) -> CategoryInDB:
        """Get category by its full path, e.g. /grains/rice"""
        def load():
            category = self.category_repo.get_by_path(path)
            if category is None:
                raise CategoryNotFoundError(f"Category not found with path: {path}", {"path": path})
            return category

        return self._cached_one(self.cache.key("path", path), load)

    def get_root_categories(self) -> List[CategoryInDB]:
        """Get all root categories"""
        return self._cached_list(self.cache.key("roots"), self.category_repo.list_roots)

    def get_child_categories(self, parent_id: int) -> List[CategoryInDB]:
        """Get direct children of a category"""
        def load():
            self._require(parent_id)
            return self.category_repo.list_children(parent_id)

        return self._cached_list(self.cache.key("children", parent_id), load)

    def get_category_hierarchy(self, category_id: int) -> List[CategoryInDB]:
        """Get a category followed by all of its descendants, shallowest first"""
        def load():
            category = self._require(category_id)
            return [category] + self.category_repo.get_descendants(category_id)

        return self._cached_list(self.cache.key("hierarchy", category_id), load)

    def get_breadcrumbs(self, category_id: int) -> List[str]:
        """Get category names from the root down to this category"""
        key = self.cache.key("breadcrumbs", category_id)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        category = self._require(category_id)
        breadcrumbs = [a.name for a in self.category_repo.get_ancestors(category)]
        breadcrumbs.append(category.name)
        self.cache.set(key, breadcrumbs)
        return breadcrumbs

    def get_categories_by_level(self, level: int) -> List[CategoryInDB]:
        """Get categories at a given depth"""
        return self._cached_list(
            self.cache.key("level", level), lambda: self.category_repo.list_by_level(level)
        )

    def get_leaf_categories(self) -> List[CategoryInDB]:
        """Get active categories without children"""
        return self._cached_list(self.cache.key("leaves"), self.category_repo.list_leaves)

    def get_popular_categories(self, limit: int = 10) -> List[CategoryInDB]:
        """Get active categories with the most products"""
        if limit < 1:
            raise ValidationFailedError("Limit must be at least 1", {"limit": limit})
        return self._cached_list(
            self.cache.key("popular", limit), lambda: self.category_repo.list_popular(limit)
        )

    def list_categories(self, page: int = 0, size: int = 20) -> CategoryPage:
        """List all non-deleted categories with pagination"""
        self._validate_page(page, size)
        return self._page(
            self.category_repo.list_page(page * size, size),
            self.category_repo.count(),
            page,
            size,
        )

    def list_active_categories(self, page: int = 0, size: int = 20) -> CategoryPage:
        """List active categories with pagination"""
        self._validate_page(page, size)
        key = self.cache.key("active", page, size)
        cached = self.cache.get(key)
        if cached is not None:
            return CategoryPage.model_validate(cached)

        result = self._page(
            self.category_repo.list_page(page * size, size, active_only=True),
            self.category_repo.count(active_only=True),
            page,
            size,
        )
        self.cache.set(key, result.model_dump(mode="json"))
        return result

    def search_categories(self, query: str, page: int = 0, size: int = 20) -> CategoryPage:
        """Case-insensitive substring search over active category names"""
        if query is None or not query.strip():
            raise ValidationFailedError("Search query is required")
        self._validate_page(page, size)
        return self._page(
            self.category_repo.search_by_name(query, page * size, size),
            self.category_repo.count_search(query),
            page,
            size,
        )

    def get_category_stats(self, category_id: int) -> CategoryStats:
        """Get product statistics for a category"""
        key = self.cache.key("stats", category_id)
        cached = self.cache.get(key)
        if cached is not None:
            return CategoryStats.model_validate(cached)

        self._require(category_id)
        stats = CategoryStats(
            category_id=category_id, **self.category_repo.get_product_stats(category_id)
        )
        self.cache.set(key, stats.model_dump(mode="json"))
        return stats

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @contextmanager
    def _transaction(self):
        try:
            yield
            self.db_session.commit()
        except Exception:
            self.db_session.rollback()
            raise

    def _require(
        self, category_id: int, for_update: bool = False, label: str = "Category"
    ) -> Category:
        category = self.category_repo.get_by_id(category_id, for_update=for_update)
        if category is None:
            raise CategoryNotFoundError(
                f"{label} not found: {category_id}", {"category_id": category_id}
            )
        return category

    def _check_depth(self, parent: Category) -> None:
        if parent.level >= self.max_level:
            raise DepthExceededError(
                "Maximum category depth exceeded",
                {"max_depth": self.max_depth, "parent_level": parent.level},
            )

    @staticmethod
    def _validate_name(name: Optional[str]) -> str:
        if name is None or not name.strip():
            raise ValidationFailedError("Category name is required")
        name = name.strip()
        if len(name) > NAME_MAX_LENGTH:
            raise ValidationFailedError(
                f"Category name cannot exceed {NAME_MAX_LENGTH} characters"
            )
        if not NAME_PATTERN.match(name):
            raise ValidationFailedError(
                "Category name contains invalid characters", {"name": name}
            )
        return name

    @staticmethod
    def _validate_page(page: int, size: int) -> None:
        if page < 0:
            raise ValidationFailedError("Page index cannot be negative", {"page": page})
        if size < 1 or size > MAX_PAGE_SIZE:
            raise ValidationFailedError(
                f"Page size must be between 1 and {MAX_PAGE_SIZE}", {"size": size}
            )

    def _generate_slug(
        self, name: str, parent_id: Optional[int], exclude_id: Optional[int] = None
    ) -> str:
        # Names made only of symbols slugify to ""
        base_slug = slugify(name) or "category"
        return unique_slug(
            base_slug,
            lambda slug: self.category_repo.exists_by_slug_and_parent(
                slug, parent_id, exclude_id=exclude_id
            ),
        )

    @staticmethod
    def _subtree_height(root: Category, descendants: List[Category]) -> int:
        """Number of levels below root, walking parent links rather than stored levels"""
        by_parent: Dict[int, List[Category]] = defaultdict(list)
        for node in descendants:
            by_parent[node.parent_id].append(node)

        height = 0
        pending = [(root, 0)]
        while pending:
            node, depth = pending.pop()
            height = max(height, depth)
            pending.extend((child, depth + 1) for child in by_parent.get(node.id, []))
        return height

    def _rewrite_subtree(
        self,
        root: Category,
        descendants: List[Category],
        new_path: str,
        new_level: int,
        actor: str,
    ) -> None:
        """Set root's path/level and shift every descendant below it"""
        now = _utcnow()
        by_parent: Dict[int, List[Category]] = defaultdict(list)
        for node in descendants:
            by_parent[node.parent_id].append(node)

        root.path = new_path
        root.level = new_level
        root.updated_by = actor
        root.updated_at = now

        pending = [root]
        while pending:
            node = pending.pop()
            for child in by_parent.get(node.id, []):
                child.level = node.level + 1
                child.path = build_path(node.path, child.slug)
                child.updated_by = actor
                child.updated_at = now
                pending.append(child)

        self.category_repo.flush()

    def _reconcile_counters(self, nodes: List[Category]) -> int:
        children = self.category_repo.count_children_by_parent()
        products = self.category_repo.count_products_by_category()

        corrected = 0
        for node in nodes:
            expected = (children.get(node.id, 0), products.get(node.id, 0))
            if (node.children_count, node.product_count) != expected:
                logger.warning(
                    f"Counter drift on category {node.id}: "
                    f"children {node.children_count}->{expected[0]}, "
                    f"products {node.product_count}->{expected[1]}"
                )
                node.children_count, node.product_count = expected
                corrected += 1

        self.category_repo.flush()
        return corrected

    def _cached_one(self, key: str, load: Callable[[], Category]) -> CategoryInDB:
        cached = self.cache.get(key)
        if cached is not None:
            return CategoryInDB.model_validate(cached)

        result = CategoryInDB.model_validate(load())
        self.cache.set(key, result.model_dump(mode="json"))
        return result

    def _cached_list(self, key: str, load: Callable[[], List[Category]]) -> List[CategoryInDB]:
        cached = self.cache.get(key)
        if cached is not None:
            return [CategoryInDB.model_validate(item) for item in cached]

        result = [CategoryInDB.model_validate(category) for category in load()]
        self.cache.set(key, [item.model_dump(mode="json") for item in result])
        return result

    @staticmethod
    def _page(
        categories: List[Category], total: int, page: int, size: int
    ) -> CategoryPage:
        return CategoryPage(
            items=[CategoryInDB.model_validate(category) for category in categories],
            page=page,
            size=size,
            total=total,
            total_pages=math.ceil(total / size) if size else 0,
        )

    def _publish(
        self,
        event_type: CategoryEventType,
        category: CategoryInDB,
        actor: str,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        event = CategoryEvent(
            event_type=event_type,
            category_id=category.id,
            category_name=category.name,
            parent_id=category.parent_id,
            level=category.level,
            actor=actor,
            extra=extra or {},
        )
        self.publisher.publish_safely(event)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)
