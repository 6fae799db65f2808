"""initial stockroom schema

Revision ID: c3f1a9d2b7e4
Revises:
Create Date: 2026-10-18 00:00:00.000000

Creates the complete stockroom schema:
- users, session_tokens: operator accounts and bearer sessions
- categories, warehouses, products: catalog
- stock_entries: one row per (product, warehouse) with quantity invariants
- sales_transactions: append-only sale records
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'c3f1a9d2b7e4'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False, server_default='staff'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('username'),
        sa.UniqueConstraint('email'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_users_username', 'users', ['username'])

    op.create_table(
        'session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_session_tokens_user_id', 'session_tokens', ['user_id'])
    op.create_index('ix_session_tokens_token_hash', 'session_tokens', ['token_hash'], unique=True)
    op.create_index('ix_session_tokens_expires_at', 'session_tokens', ['expires_at'])
    op.create_index('ix_session_tokens_is_revoked', 'session_tokens', ['is_revoked'])
    op.create_index('ix_session_tokens_user_active', 'session_tokens', ['user_id', 'is_revoked'])

    # ============================================================================
    # Catalog
    # ============================================================================
    op.create_table(
        'categories',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'warehouses',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('location', sa.String(length=255), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('purchase_price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('retail_price_cents', sa.Integer(), nullable=True),
        sa.Column('wholesale_price_cents', sa.Integer(), nullable=True),
        sa.Column('unit', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('category_id', sa.Integer(), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint('purchase_price_cents >= 0', name='ck_products_purchase_price_nonneg'),
        sa.CheckConstraint('retail_price_cents IS NULL OR retail_price_cents >= 0',
                           name='ck_products_retail_price_nonneg'),
        sa.CheckConstraint('wholesale_price_cents IS NULL OR wholesale_price_cents >= 0',
                           name='ck_products_wholesale_price_nonneg'),
        sa.CheckConstraint('unit >= 1', name='ck_products_unit_positive'),
        sa.ForeignKeyConstraint(['category_id'], ['categories.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_products_name', 'products', ['name'])
    op.create_index('ix_products_category_id', 'products', ['category_id'])

    # ============================================================================
    # stock_entries: quantities per (product, warehouse)
    # ============================================================================
    # Uniqueness and the reserved/on-hand bounds are enforced here as well as
    # by the conditional writes in stock_ledger_service.
    op.create_table(
        'stock_entries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('warehouse_id', sa.Integer(), nullable=False),
        sa.Column('quantity_on_hand', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('quantity_reserved', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_counted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint('quantity_on_hand >= 0', name='ck_stock_entries_on_hand_nonneg'),
        sa.CheckConstraint('quantity_reserved >= 0', name='ck_stock_entries_reserved_nonneg'),
        sa.CheckConstraint('quantity_reserved <= quantity_on_hand',
                           name='ck_stock_entries_reserved_within_on_hand'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['warehouse_id'], ['warehouses.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('product_id', 'warehouse_id', name='uq_stock_entries_product_warehouse'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_stock_entries_product_id', 'stock_entries', ['product_id'])
    op.create_index('ix_stock_entries_warehouse', 'stock_entries', ['warehouse_id'])
    op.create_index('ix_stock_entries_updated_at', 'stock_entries', ['updated_at'])

    # ============================================================================
    # sales_transactions: append-only
    # ============================================================================
    op.create_table(
        'sales_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('warehouse_id', sa.Integer(), nullable=True),
        sa.Column('transaction_type', sa.String(length=16), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False),
        sa.Column('total_amount_cents', sa.Integer(), nullable=False),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('quantity > 0', name='ck_sales_transactions_quantity_positive'),
        sa.CheckConstraint('unit_price_cents >= 0', name='ck_sales_transactions_unit_price_nonneg'),
        sa.CheckConstraint("transaction_type IN ('retail', 'wholesale')",
                           name='ck_sales_transactions_type'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['warehouse_id'], ['warehouses.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['users.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sales_transactions_product_id', 'sales_transactions', ['product_id'])
    op.create_index('ix_sales_transactions_warehouse_id', 'sales_transactions', ['warehouse_id'])
    op.create_index('ix_sales_transactions_created_at', 'sales_transactions', ['created_at'])
    op.create_index('ix_sales_transactions_product_type', 'sales_transactions',
                    ['product_id', 'transaction_type'])


def downgrade():
    """Drop all tables (destructive operation)."""
    op.drop_table('sales_transactions')
    op.drop_table('stock_entries')
    op.drop_table('products')
    op.drop_table('warehouses')
    op.drop_table('categories')
    op.drop_table('session_tokens')
    op.drop_table('users')
