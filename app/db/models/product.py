# app/db/models/product.py
from sqlalchemy import Boolean, Column, ForeignKey, Integer, Numeric, String, Text
from app.db.base import Base


class Product(Base):
    """
    Read-only view of the products table owned by the product service.

    The category service only reads ``category_id``, ``status``, ``price`` and
    ``deleted`` to enforce deactivation/deletion guards and compute statistics.
    """

    __tablename__ = "products"

    id = Column(Integer, primary_key=True, autoincrement=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(Text)
    price = Column(Numeric(12, 2))
    status = Column(String(20), nullable=False, default="ACTIVE")
    deleted = Column(Boolean, nullable=False, default=False)

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', status='{self.status}')>"
