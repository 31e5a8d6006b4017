# app/schemas/category.py
from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional
from datetime import datetime


class CategoryCreate(BaseModel):
    """Schema for creating a new Category"""
    name: str = Field(..., description="Display name, unique among siblings")
    description: Optional[str] = Field(None, max_length=1000, description="Optional description of the category")
    parent_id: Optional[int] = Field(None, description="Parent category ID, omitted for root categories")
    image_url: Optional[str] = Field(None, description="Category image URL")
    metadata: Optional[Dict[str, Any]] = Field(None, description="Free-form extension fields")


class CategoryUpdate(BaseModel):
    """Schema for updating a Category (all fields optional)"""
    name: Optional[str] = None
    description: Optional[str] = Field(None, max_length=1000)
    image_url: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class CategoryMove(BaseModel):
    """Schema for moving a Category under a new parent (null moves it to root)"""
    new_parent_id: Optional[int] = None


class CategoryStatusUpdate(BaseModel):
    """Schema for activating or deactivating a Category"""
    active: bool


class CategoryInDB(BaseModel):
    """Schema for Category as stored in DB (includes DB fields)"""
    id: int
    parent_id: Optional[int] = None
    name: str
    slug: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    sort_order: int = 0
    level: int
    path: str
    active: bool
    deleted: bool = False
    children_count: int = 0
    product_count: int = 0
    # ORM attribute is metadata_, cached payloads use metadata
    metadata: Optional[Dict[str, Any]] = Field(
        None, validation_alias=AliasChoices("metadata_", "metadata")
    )
    created_at: Optional[datetime] = None
    created_by: Optional[str] = None
    updated_at: Optional[datetime] = None
    updated_by: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class CategoryResponse(CategoryInDB):
    """Schema for API responses"""
    pass


class CategoryPage(BaseModel):
    """One page of categories (0-based page index)"""
    items: List[CategoryInDB]
    page: int
    size: int
    total: int
    total_pages: int


class CategoryStats(BaseModel):
    """Aggregate product statistics for one category"""
    category_id: int
    active_products: int = 0
    inactive_products: int = 0
    total_products: int = 0
    avg_price: Optional[float] = None
