# app/db/repositories/category_repository.py
from typing import Any, Dict, List, Optional
from sqlalchemy import case, exists, func, update
from sqlalchemy.orm import Session, aliased
from app.db.models.category import Category
from app.db.models.product import Product

ACTIVE_PRODUCT_STATUS = "ACTIVE"
INACTIVE_PRODUCT_STATUS = "INACTIVE"


class CategoryRepository:
    """
    Repository for the categories table.

    Mutating methods only flush; the calling service owns the transaction and
    decides when to commit or roll back.
    """

    def __init__(self, db_session: Session):
        self.db_session = db_session

    def _live(self):
        return self.db_session.query(Category).filter(Category.deleted.is_(False))

    @staticmethod
    def _roots_first():
        # False sorts before True on both PostgreSQL and SQLite
        return Category.parent_id.isnot(None)

    # Lookups

    def get_by_id(self, category_id: int, for_update: bool = False) -> Optional[Category]:
        """Get a non-deleted category by ID"""
        query = self._live().filter(Category.id == category_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def get_by_slug(self, slug: str) -> Optional[Category]:
        """Get a category by slug; slugs repeat across parents so the shallowest wins"""
        return (
            self._live()
            .filter(Category.slug == slug)
            .order_by(Category.level, Category.id)
            .first()
        )

    def get_by_path(self, path: str) -> Optional[Category]:
        """Get a category by its full materialized path"""
        return self._live().filter(Category.path == path).first()

    def exists_by_name_and_parent(
        self, name: str, parent_id: Optional[int], exclude_id: Optional[int] = None
    ) -> bool:
        query = self._live().filter(Category.name == name, self._parent_clause(parent_id))
        if exclude_id is not None:
            query = query.filter(Category.id != exclude_id)
        return self.db_session.query(query.exists()).scalar()

    def exists_by_slug_and_parent(
        self, slug: str, parent_id: Optional[int], exclude_id: Optional[int] = None
    ) -> bool:
        query = self._live().filter(Category.slug == slug, self._parent_clause(parent_id))
        if exclude_id is not None:
            query = query.filter(Category.id != exclude_id)
        return self.db_session.query(query.exists()).scalar()

    @staticmethod
    def _parent_clause(parent_id: Optional[int]):
        if parent_id is None:
            return Category.parent_id.is_(None)
        return Category.parent_id == parent_id

    # Listings

    def list_roots(self) -> List[Category]:
        return (
            self._live()
            .filter(Category.parent_id.is_(None))
            .order_by(Category.sort_order, Category.name)
            .all()
        )

    def list_children(self, parent_id: int, active_only: bool = False) -> List[Category]:
        query = self._live().filter(Category.parent_id == parent_id)
        if active_only:
            query = query.filter(Category.active.is_(True))
        return query.order_by(Category.sort_order, Category.name).all()

    def list_by_level(self, level: int) -> List[Category]:
        return (
            self._live()
            .filter(Category.level == level)
            .order_by(Category.sort_order, Category.name)
            .all()
        )

    def list_leaves(self) -> List[Category]:
        """Active categories without any non-deleted child"""
        child = aliased(Category)
        has_children = exists().where(
            child.parent_id == Category.id, child.deleted.is_(False)
        )
        return (
            self._live()
            .filter(Category.active.is_(True), ~has_children)
            .order_by(Category.name)
            .all()
        )

    def list_popular(self, limit: int) -> List[Category]:
        """Active categories ordered by their live non-deleted product count"""
        product_total = func.count(Product.id)
        rows = (
            self.db_session.query(Category, product_total)
            .outerjoin(
                Product,
                (Product.category_id == Category.id) & (Product.deleted.is_(False)),
            )
            .filter(Category.deleted.is_(False), Category.active.is_(True))
            .group_by(Category.id)
            .order_by(product_total.desc(), Category.name)
            .limit(limit)
            .all()
        )
        return [category for category, _ in rows]

    def list_page(self, offset: int, limit: int, active_only: bool = False) -> List[Category]:
        query = self._live()
        if active_only:
            query = query.filter(Category.active.is_(True))
        return (
            query.order_by(self._roots_first(), Category.sort_order, Category.name, Category.id)
            .offset(offset)
            .limit(limit)
            .all()
        )

    def count(self, active_only: bool = False) -> int:
        query = self.db_session.query(func.count(Category.id)).filter(Category.deleted.is_(False))
        if active_only:
            query = query.filter(Category.active.is_(True))
        return query.scalar() or 0

    def search_by_name(self, query_text: str, offset: int, limit: int) -> List[Category]:
        return (
            self._search_query(query_text)
            .order_by(Category.name, Category.id)
            .offset(offset)
            .limit(limit)
            .all()
        )

    def count_search(self, query_text: str) -> int:
        return self._search_query(query_text).count()

    def _search_query(self, query_text: str):
        term = query_text.strip().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        return self._live().filter(
            Category.active.is_(True), Category.name.ilike(f"%{term}%", escape="\\")
        )

    # Hierarchy traversal

    def get_descendants(self, category_id: int) -> List[Category]:
        """All non-deleted descendants of a category, shallowest first"""
        descendants = (
            self.db_session.query(Category.id)
            .filter(Category.parent_id == category_id, Category.deleted.is_(False))
            .cte(name="descendants", recursive=True)
        )
        parent_alias = aliased(descendants, name="d")
        child_alias = aliased(Category, name="c")
        descendants = descendants.union_all(
            self.db_session.query(child_alias.id).filter(
                child_alias.parent_id == parent_alias.c.id,
                child_alias.deleted.is_(False),
            )
        )
        return (
            self.db_session.query(Category)
            .join(descendants, Category.id == descendants.c.id)
            .order_by(Category.level, Category.name, Category.id)
            .all()
        )

    def get_ancestors(self, category: Category) -> List[Category]:
        """Ancestors of a category ordered from its root down to its parent"""
        ancestors = []
        parent_id = category.parent_id
        while parent_id is not None:
            parent = self.db_session.get(Category, parent_id)
            if parent is None:
                break
            ancestors.append(parent)
            parent_id = parent.parent_id
        ancestors.reverse()
        return ancestors

    # Counts

    def count_children(self, category_id: int, active_only: bool = False) -> int:
        query = self.db_session.query(func.count(Category.id)).filter(
            Category.parent_id == category_id, Category.deleted.is_(False)
        )
        if active_only:
            query = query.filter(Category.active.is_(True))
        return query.scalar() or 0

    def count_products(self, category_id: int, active_only: bool = False) -> int:
        query = self.db_session.query(func.count(Product.id)).filter(
            Product.category_id == category_id, Product.deleted.is_(False)
        )
        if active_only:
            query = query.filter(Product.status == ACTIVE_PRODUCT_STATUS)
        return query.scalar() or 0

    def get_product_stats(self, category_id: int) -> Dict[str, Any]:
        row = (
            self.db_session.query(
                func.count(case((Product.status == ACTIVE_PRODUCT_STATUS, 1))),
                func.count(case((Product.status == INACTIVE_PRODUCT_STATUS, 1))),
                func.count(Product.id),
                func.avg(Product.price),
            )
            .filter(Product.category_id == category_id, Product.deleted.is_(False))
            .one()
        )
        active, inactive, total, avg_price = row
        return {
            "active_products": active or 0,
            "inactive_products": inactive or 0,
            "total_products": total or 0,
            "avg_price": float(avg_price) if avg_price is not None else None,
        }

    # Mutations (flush only)

    def add(self, category: Category) -> Category:
        self.db_session.add(category)
        self.db_session.flush()
        return category

    def adjust_children_count(self, category_id: int, delta: int) -> None:
        self.db_session.execute(
            update(Category)
            .where(Category.id == category_id)
            .values(children_count=Category.children_count + delta)
            .execution_options(synchronize_session="fetch")
        )

    def deactivate_children(self, parent_id: int, updated_by: str) -> int:
        result = self.db_session.execute(
            update(Category)
            .where(Category.parent_id == parent_id, Category.deleted.is_(False))
            .values(active=False, updated_by=updated_by, updated_at=func.now())
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    def count_products_by_category(self) -> Dict[int, int]:
        rows = (
            self.db_session.query(Product.category_id, func.count(Product.id))
            .filter(Product.deleted.is_(False))
            .group_by(Product.category_id)
            .all()
        )
        return {category_id: total for category_id, total in rows}

    def count_children_by_parent(self) -> Dict[int, int]:
        rows = (
            self.db_session.query(Category.parent_id, func.count(Category.id))
            .filter(Category.parent_id.isnot(None), Category.deleted.is_(False))
            .group_by(Category.parent_id)
            .all()
        )
        return {parent_id: total for parent_id, total in rows}

    def list_all_live(self) -> List[Category]:
        return self._live().order_by(Category.level, Category.id).all()

    def flush(self) -> None:
        self.db_session.flush()
