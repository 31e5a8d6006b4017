# app/db/models/category.py
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from app.db.base import Base


class Category(Base):
    """
    Category model representing a node in the ProcGrid product category forest.

    ``level`` and ``path`` are materialized from the ``parent_id`` chain and are
    kept consistent by CategoryService on every structural mutation.
    """

    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    parent_id = Column(Integer, ForeignKey("categories.id"), nullable=True, index=True)
    name = Column(String(100), nullable=False)
    slug = Column(String(120), nullable=False, index=True)
    description = Column(Text)
    image_url = Column(String)
    sort_order = Column(Integer, nullable=False, default=0)

    # Hierarchy
    level = Column(Integer, nullable=False, default=0)
    path = Column(String, nullable=False, index=True)

    # Status and denormalized counters
    active = Column(Boolean, nullable=False, default=True)
    deleted = Column(Boolean, nullable=False, default=False)
    children_count = Column(Integer, nullable=False, default=0)
    product_count = Column(Integer, nullable=False, default=0)

    # "metadata" is reserved on declarative classes
    metadata_ = Column("metadata", JSON().with_variant(JSONB, "postgresql"), default=dict)

    # Audit
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    created_by = Column(String)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
    updated_by = Column(String)

    __table_args__ = (
        Index("idx_categories_parent_name", "parent_id", "name"),
        Index("idx_categories_parent_slug", "parent_id", "slug"),
    )

    def __repr__(self):
        return f"<Category(id={self.id}, path='{self.path}')>"
