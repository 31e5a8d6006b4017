# app/schemas/__init__.py
from app.schemas.category import (
    CategoryCreate,
    CategoryUpdate,
    CategoryMove,
    CategoryStatusUpdate,
    CategoryInDB,
    CategoryResponse,
    CategoryPage,
    CategoryStats,
)
