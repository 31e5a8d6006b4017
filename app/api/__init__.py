# Category tree routers
from .routes.categories import categories_router

category_routers = [
    ("categories", categories_router),
]

__all__ = ["category_routers"]
