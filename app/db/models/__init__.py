# app/db/models/__init__.py
from app.db.models.category import Category
from app.db.models.product import Product
