"""Initial schema - products and reference data

Revision ID: 001
Revises:
Create Date: 2026-10-17 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

LIFECYCLE_CHECK = (
    "(is_deleted AND deleted_at IS NOT NULL) OR (NOT is_deleted AND deleted_at IS NULL)"
)


def audit_columns() -> list:
    """Columns shared by every table (id, audit trail, soft delete)."""
    return [
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('created_by', sa.String(length=100), nullable=False, server_default=''),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_by', sa.String(length=100), nullable=True),
        sa.Column('is_deleted', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('deleted_by', sa.String(length=100), nullable=True),
    ]


def upgrade() -> None:
    # Create product_types table
    op.create_table(
        'product_types',
        *audit_columns(),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('description', sa.String(length=500), nullable=True),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('id', name='pk_product_types'),
        sa.CheckConstraint(LIFECYCLE_CHECK, name='ck_product_types_lifecycle'),
    )

    # Create brands table
    op.create_table(
        'brands',
        *audit_columns(),
        sa.Column('product_type_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('description', sa.String(length=500), nullable=True),
        sa.Column('logo_url', sa.String(length=500), nullable=True),
        sa.Column('website', sa.String(length=200), nullable=True),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(
            ['product_type_id'], ['product_types.id'],
            name='fk_brands_product_type_id_product_types', ondelete='RESTRICT'
        ),
        sa.PrimaryKeyConstraint('id', name='pk_brands'),
        sa.CheckConstraint(LIFECYCLE_CHECK, name='ck_brands_lifecycle'),
    )
    op.create_index('idx_brands_product_type', 'brands', ['product_type_id'])

    # Create models table
    op.create_table(
        'models',
        *audit_columns(),
        sa.Column('product_type_id', sa.Integer(), nullable=False),
        sa.Column('brand_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('description', sa.String(length=500), nullable=True),
        sa.Column('model_reference', sa.String(length=100), nullable=True),
        sa.Column('release_year', sa.Integer(), nullable=True),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(
            ['product_type_id'], ['product_types.id'],
            name='fk_models_product_type_id_product_types', ondelete='RESTRICT'
        ),
        sa.ForeignKeyConstraint(
            ['brand_id'], ['brands.id'],
            name='fk_models_brand_id_brands', ondelete='RESTRICT'
        ),
        sa.PrimaryKeyConstraint('id', name='pk_models'),
        sa.CheckConstraint(LIFECYCLE_CHECK, name='ck_models_lifecycle'),
    )
    op.create_index('idx_models_brand', 'models', ['brand_id'])
    op.create_index('idx_models_product_type', 'models', ['product_type_id'])

    # Create colors table
    op.create_table(
        'colors',
        *audit_columns(),
        sa.Column('name', sa.String(length=50), nullable=False),
        sa.Column('hex_code', sa.String(length=7), nullable=True),
        sa.Column('description', sa.String(length=200), nullable=True),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('id', name='pk_colors'),
        sa.CheckConstraint(LIFECYCLE_CHECK, name='ck_colors_lifecycle'),
    )

    # Create conditions table
    op.create_table(
        'conditions',
        *audit_columns(),
        sa.Column('name', sa.String(length=50), nullable=False),
        sa.Column('description', sa.String(length=200), nullable=True),
        sa.Column('quality_percentage', sa.Integer(), nullable=False, server_default='100'),
        sa.Column('grade', sa.String(length=10), nullable=True),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('id', name='pk_conditions'),
        sa.CheckConstraint(LIFECYCLE_CHECK, name='ck_conditions_lifecycle'),
        sa.CheckConstraint(
            'quality_percentage >= 0 AND quality_percentage <= 100',
            name='ck_conditions_quality_percentage_range'
        ),
    )

    # Create products table
    op.create_table(
        'products',
        *audit_columns(),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(length=100), nullable=False),
        sa.Column('brand', sa.String(length=100), nullable=False),
        sa.Column('model', sa.String(length=100), nullable=False),
        sa.Column('condition', sa.String(length=50), nullable=False),
        sa.Column('condition_grade', sa.String(length=10), nullable=True),
        sa.Column('storage', sa.String(length=50), nullable=True),
        sa.Column('color', sa.String(length=50), nullable=True),
        sa.Column('memory', sa.String(length=50), nullable=True),
        sa.Column('processor', sa.String(length=100), nullable=True),
        sa.Column('screen_size', sa.String(length=50), nullable=True),
        sa.Column('purchase_price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('transport_cost', sa.Numeric(precision=12, scale=2), nullable=False, server_default='0'),
        sa.Column('other_costs', sa.Numeric(precision=12, scale=2), nullable=False, server_default='0'),
        sa.Column('selling_price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('total_cost_price', sa.Numeric(precision=12, scale=2), nullable=False, server_default='0'),
        sa.Column('margin', sa.Numeric(precision=12, scale=2), nullable=False, server_default='0'),
        sa.Column('margin_percentage', sa.Numeric(precision=18, scale=2), nullable=False, server_default='0'),
        sa.Column('stock', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('min_stock_level', sa.Integer(), nullable=False, server_default='5'),
        sa.Column('supplier_name', sa.String(length=200), nullable=False),
        sa.Column('supplier_city', sa.String(length=100), nullable=False),
        sa.Column('purchase_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('arrival_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('import_batch', sa.String(length=100), nullable=False),
        sa.Column('invoice_number', sa.String(length=100), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='Available'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('warranty_info', sa.String(length=500), nullable=True),
        sa.Column('image_url', sa.String(length=500), nullable=True),
        sa.Column('images_urls', sa.JSON(), nullable=True),
        sa.Column('documents_urls', sa.JSON(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id', name='pk_products'),
        sa.CheckConstraint(LIFECYCLE_CHECK, name='ck_products_lifecycle'),
        sa.CheckConstraint('stock >= 0', name='ck_products_stock_non_negative'),
        sa.CheckConstraint('min_stock_level >= 0', name='ck_products_min_stock_level_non_negative'),
        sa.CheckConstraint(
            "status IN ('Available', 'Reserved', 'Sold', 'Damaged')",
            name='ck_products_status'
        ),
    )
    op.create_index('idx_products_category', 'products', ['category'])
    op.create_index('idx_products_brand', 'products', ['brand'])
    op.create_index('idx_products_supplier', 'products', ['supplier_name'])
    op.create_index('idx_products_batch', 'products', ['import_batch'])
    op.create_index('idx_products_status', 'products', ['status'])
    op.create_index('idx_products_low_stock', 'products', ['stock', 'min_stock_level'])


def downgrade() -> None:
    op.drop_table('products')
    op.drop_table('conditions')
    op.drop_table('colors')
    op.drop_table('models')
    op.drop_table('brands')
    op.drop_table('product_types')
