"""create_categories_and_products

Revision ID: 3c1f9a7e2b40
Revises:
Create Date: 2026-10-19 09:12:31.402117

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB


# revision identifiers, used by Alembic.
revision: str = '3c1f9a7e2b40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the category forest table and the products table it guards against."""
    op.create_table(
        'categories',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('parent_id', sa.Integer(), sa.ForeignKey('categories.id'), nullable=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('slug', sa.String(120), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('image_url', sa.String(), nullable=True),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('level', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('path', sa.String(), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('deleted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('children_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('product_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('metadata', JSONB(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('created_by', sa.String(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_by', sa.String(), nullable=True),
    )
    op.create_index('ix_categories_parent_id', 'categories', ['parent_id'])
    op.create_index('ix_categories_slug', 'categories', ['slug'])
    op.create_index('ix_categories_path', 'categories', ['path'])
    op.create_index('idx_categories_parent_name', 'categories', ['parent_id', 'name'])
    op.create_index('idx_categories_parent_slug', 'categories', ['parent_id', 'slug'])

    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('category_id', sa.Integer(), sa.ForeignKey('categories.id'), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price', sa.Numeric(12, 2), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='ACTIVE'),
        sa.Column('deleted', sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_index('ix_products_category_id', 'products', ['category_id'])


def downgrade() -> None:
    """Drop products and categories."""
    op.drop_index('ix_products_category_id', table_name='products')
    op.drop_table('products')
    op.drop_index('idx_categories_parent_slug', table_name='categories')
    op.drop_index('idx_categories_parent_name', table_name='categories')
    op.drop_index('ix_categories_path', table_name='categories')
    op.drop_index('ix_categories_slug', table_name='categories')
    op.drop_index('ix_categories_parent_id', table_name='categories')
    op.drop_table('categories')
