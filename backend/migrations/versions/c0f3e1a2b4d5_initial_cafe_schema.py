"""initial cafe schema

Revision ID: c0f3e1a2b4d5
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the complete cafe POS schema:
- users, session_tokens: staff accounts and bearer sessions
- categories, products, dining_tables: menu and floor
- inventory_items, recipe_links: raw materials and per-product usage
- orders, order_lines, inventory_deduction_log: sales and consumption audit
- daily_aggregates, daily_closures: per-day totals and cash reconciliation

Money columns are integer minor units (1000 per major unit); raw-material
quantities are BIGINT counts of ten-thousandths (0.25 l is stored as 2500).
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'c0f3e1a2b4d5'
down_revision = None
branch_labels = None
depends_on = None


def _created_at():
    return sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                     server_default=sa.text('CURRENT_TIMESTAMP'))


def upgrade():
    # ============================================================================
    # users / session_tokens
    # ============================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=255), nullable=False),
        _created_at(),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_session_tokens_user_id', 'session_tokens', ['user_id'])
    op.create_index('ix_session_tokens_token_hash', 'session_tokens', ['token_hash'], unique=True)
    op.create_index('ix_session_tokens_expires_at', 'session_tokens', ['expires_at'])
    op.create_index('ix_session_tokens_is_revoked', 'session_tokens', ['is_revoked'])
    op.create_index('ix_session_tokens_user_active', 'session_tokens', ['user_id', 'is_revoked'])

    # ============================================================================
    # menu and floor
    # ============================================================================
    op.create_table(
        'categories',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('category_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price_minor', sa.Integer(), nullable=False),
        sa.Column('cost_minor', sa.Integer(), nullable=True),
        sa.Column('image_url', sa.String(length=512), nullable=True),
        sa.Column('is_available', sa.Boolean(), nullable=False, server_default='1'),
        _created_at(),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['category_id'], ['categories.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_products_category_id', 'products', ['category_id'])
    op.create_index('ix_products_category_name', 'products', ['category_id', 'name'])

    op.create_table(
        'dining_tables',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )

    # ============================================================================
    # raw materials and recipes
    # ============================================================================
    op.create_table(
        'inventory_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('unit_cost_minor', sa.Integer(), nullable=True),
        sa.Column('min_quantity', sa.BigInteger(), nullable=False, server_default='0'),
        _created_at(),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint('quantity >= 0', name='ck_inventory_items_quantity_non_negative'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_inventory_items_name', 'inventory_items', ['name'])

    op.create_table(
        'recipe_links',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('inventory_item_id', sa.Integer(), nullable=False),
        sa.Column('quantity_per_order', sa.BigInteger(), nullable=False,
                  server_default='10000'),
        _created_at(),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['inventory_item_id'], ['inventory_items.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('product_id', 'inventory_item_id', name='uq_recipe_links_product_item'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_recipe_links_product_id', 'recipe_links', ['product_id'])
    op.create_index('ix_recipe_links_inventory_item_id', 'recipe_links', ['inventory_item_id'])

    # ============================================================================
    # orders and consumption audit
    # ============================================================================
    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_number', sa.String(length=64), nullable=False),
        sa.Column('cashier_id', sa.Integer(), nullable=False),
        sa.Column('subtotal_minor', sa.Integer(), nullable=False),
        sa.Column('discount_amount_minor', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('tax_amount_minor', sa.Integer(), nullable=False),
        sa.Column('total_amount_minor', sa.Integer(), nullable=False),
        sa.Column('payment_method', sa.String(length=16), nullable=False, server_default='cash'),
        sa.Column('table_id', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='completed'),
        sa.Column('business_date', sa.Date(), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(['cashier_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['table_id'], ['dining_tables.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_number'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_orders_cashier_id', 'orders', ['cashier_id'])
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_business_date', 'orders', ['business_date'])
    op.create_index('ix_orders_table_created', 'orders', ['table_id', 'created_at'])

    op.create_table(
        'order_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price_minor', sa.Integer(), nullable=False),
        sa.Column('subtotal_minor', sa.Integer(), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_order_lines_order_id', 'order_lines', ['order_id'])
    op.create_index('ix_order_lines_product_id', 'order_lines', ['product_id'])

    # Append-only; names are snapshots so item/product ids carry no FK
    op.create_table(
        'inventory_deduction_log',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('order_line_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('inventory_item_id', sa.Integer(), nullable=False),
        sa.Column('inventory_item_name', sa.String(length=255), nullable=False),
        sa.Column('quantity_deducted', sa.BigInteger(), nullable=False),
        sa.Column('unit_selling_price_minor', sa.Integer(), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['order_line_id'], ['order_lines.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_inventory_deduction_log_order_id', 'inventory_deduction_log', ['order_id'])
    op.create_index('ix_inventory_deduction_log_order_line_id', 'inventory_deduction_log', ['order_line_id'])
    op.create_index('ix_inventory_deduction_log_created_at', 'inventory_deduction_log', ['created_at'])
    op.create_index('ix_deduction_log_item_created', 'inventory_deduction_log',
                    ['inventory_item_id', 'created_at'])

    # ============================================================================
    # per-day totals
    # ============================================================================
    op.create_table(
        'daily_aggregates',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('report_date', sa.Date(), nullable=False),
        sa.Column('total_orders', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_sales_minor', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_tax_minor', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_discount_minor', sa.Integer(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('report_date'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'daily_closures',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('closure_date', sa.Date(), nullable=False),
        sa.Column('closed_by_user_id', sa.Integer(), nullable=False),
        sa.Column('cashier_name', sa.String(length=255), nullable=False),
        sa.Column('total_orders', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_sales_minor', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_tax_minor', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_discount_minor', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('cash_sales_minor', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('card_sales_minor', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('opening_balance_minor', sa.Integer(), nullable=True),
        sa.Column('closing_balance_minor', sa.Integer(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('closed_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['closed_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('closure_date'),
        sqlite_autoincrement=True
    )


def downgrade():
    """Drop all tables (destructive operation)."""
    op.drop_table('daily_closures')
    op.drop_table('daily_aggregates')
    op.drop_table('inventory_deduction_log')
    op.drop_table('order_lines')
    op.drop_table('orders')
    op.drop_table('recipe_links')
    op.drop_table('inventory_items')
    op.drop_table('dining_tables')
    op.drop_table('products')
    op.drop_table('categories')
    op.drop_table('session_tokens')
    op.drop_table('users')
