"""stockline initial schema

Revision ID: sl0001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the complete stockline schema:
- catalog: categories, variants, colors, sizes, size_stock, barcode_groups
- stores: stores, store_inventory, store_tax_settings
- customers
- sales: invoices, invoice_items, sales_transactions
- returns: returns, return_items, exchange_items
- inventory_movements: append-only audit of both stock pools
- document_sequences: per-store invoice/return numbering
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'sl0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(updated: bool = True):
    cols = [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
    ]
    if updated:
        cols.append(
            sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                      server_default=sa.text('CURRENT_TIMESTAMP'))
        )
    return cols


def upgrade():
    # ============================================================================
    # Catalog
    # ============================================================================
    op.create_table(
        'categories',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'variants',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('category_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=160), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['category_id'], ['categories.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('category_id', 'name', name='uq_variants_category_name'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_variants_category_id', 'variants', ['category_id'])

    op.create_table(
        'colors',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('variant_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=80), nullable=False),
        sa.Column('hex', sa.String(length=7), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['variant_id'], ['variants.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('variant_id', 'name', name='uq_colors_variant_name'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_colors_variant_id', 'colors', ['variant_id'])

    op.create_table(
        'sizes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=10), nullable=False),
        sa.Column('name', sa.String(length=50), nullable=False),
        sa.Column('sort_order', sa.Integer(), nullable=False),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sizes_sort_order', 'sizes', ['sort_order'])

    op.create_table(
        'size_stock',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('variant_id', sa.Integer(), nullable=False),
        sa.Column('color_id', sa.Integer(), nullable=False),
        sa.Column('size_id', sa.Integer(), nullable=False),
        sa.Column('barcode', sa.String(length=64), nullable=False),
        sa.Column('price_cents', sa.Integer(), nullable=False),
        sa.Column('warehouse_stock', sa.Integer(), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['variant_id'], ['variants.id']),
        sa.ForeignKeyConstraint(['color_id'], ['colors.id']),
        sa.ForeignKeyConstraint(['size_id'], ['sizes.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('variant_id', 'color_id', 'size_id', name='uq_size_stock_variant_color_size'),
        sa.CheckConstraint('warehouse_stock >= 0', name='ck_size_stock_warehouse_nonneg'),
        sa.CheckConstraint('price_cents >= 0', name='ck_size_stock_price_nonneg'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_size_stock_barcode', 'size_stock', ['barcode'], unique=True)
    op.create_index('ix_size_stock_variant_id', 'size_stock', ['variant_id'])
    op.create_index('ix_size_stock_color_id', 'size_stock', ['color_id'])
    op.create_index('ix_size_stock_size_id', 'size_stock', ['size_id'])

    op.create_table(
        'barcode_groups',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('variant_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('barcode', sa.String(length=64), nullable=False),
        sa.Column('price_cents', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['variant_id'], ['variants.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_barcode_groups_barcode', 'barcode_groups', ['barcode'], unique=True)
    op.create_index('ix_barcode_groups_variant_id', 'barcode_groups', ['variant_id'])

    op.create_table(
        'barcode_group_sizes',
        sa.Column('barcode_group_id', sa.Integer(), nullable=False),
        sa.Column('size_id', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['barcode_group_id'], ['barcode_groups.id']),
        sa.ForeignKeyConstraint(['size_id'], ['sizes.id']),
        sa.PrimaryKeyConstraint('barcode_group_id', 'size_id'),
    )

    # ============================================================================
    # Stores
    # ============================================================================
    op.create_table(
        'stores',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('location', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_stores_is_active', 'stores', ['is_active'])

    op.create_table(
        'store_inventory',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('size_stock_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.ForeignKeyConstraint(['size_stock_id'], ['size_stock.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('store_id', 'size_stock_id', name='uq_store_inventory_store_unit'),
        sa.CheckConstraint('quantity >= 0', name='ck_store_inventory_quantity_nonneg'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_store_inventory_store_id', 'store_inventory', ['store_id'])
    op.create_index('ix_store_inventory_size_stock_id', 'store_inventory', ['size_stock_id'])

    op.create_table(
        'store_tax_settings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('gst_rate_bps', sa.Integer(), nullable=False),
        sa.Column('gst_number', sa.String(length=32), nullable=True),
        sa.Column('is_gst_enabled', sa.Boolean(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('store_id'),
        sqlite_autoincrement=True
    )

    # ============================================================================
    # Customers and sales
    # ============================================================================
    op.create_table(
        'customers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(length=160), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_customers_phone', 'customers', ['phone'], unique=True)

    op.create_table(
        'invoices',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_number', sa.String(length=64), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('customer_name', sa.String(length=160), nullable=True),
        sa.Column('customer_phone', sa.String(length=32), nullable=True),
        sa.Column('customer_email', sa.String(length=255), nullable=True),
        sa.Column('subtotal_cents', sa.Integer(), nullable=False),
        sa.Column('discount_type', sa.String(length=16), nullable=False),
        sa.Column('discount_value', sa.Integer(), nullable=False),
        sa.Column('discount_amount_cents', sa.Integer(), nullable=False),
        sa.Column('gst_rate_bps', sa.Integer(), nullable=False),
        sa.Column('gst_amount_cents', sa.Integer(), nullable=False),
        sa.Column('total_cents', sa.Integer(), nullable=False),
        sa.Column('payment_method', sa.String(length=32), nullable=False),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_invoices_invoice_number', 'invoices', ['invoice_number'], unique=True)
    op.create_index('ix_invoices_store_id', 'invoices', ['store_id'])
    op.create_index('ix_invoices_customer_id', 'invoices', ['customer_id'])
    op.create_index('ix_invoices_created_at', 'invoices', ['created_at'])
    op.create_index('ix_invoices_store_created', 'invoices', ['store_id', 'created_at'])

    op.create_table(
        'invoice_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_id', sa.Integer(), nullable=False),
        sa.Column('size_stock_id', sa.Integer(), nullable=False),
        sa.Column('product_category', sa.String(length=120), nullable=False),
        sa.Column('product_name', sa.String(length=160), nullable=False),
        sa.Column('product_color', sa.String(length=80), nullable=False),
        sa.Column('product_size', sa.String(length=50), nullable=False),
        sa.Column('barcode', sa.String(length=64), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False),
        sa.Column('line_total_cents', sa.Integer(), nullable=False),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id']),
        sa.ForeignKeyConstraint(['size_stock_id'], ['size_stock.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_invoice_items_invoice_id', 'invoice_items', ['invoice_id'])
    op.create_index('ix_invoice_items_size_stock_id', 'invoice_items', ['size_stock_id'])

    op.create_table(
        'sales_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('invoice_id', sa.Integer(), nullable=True),
        sa.Column('size_stock_id', sa.Integer(), nullable=True),
        sa.Column('barcode_group_id', sa.Integer(), nullable=True),
        sa.Column('barcode', sa.String(length=64), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('price_cents', sa.Integer(), nullable=False),
        sa.Column('subtotal_cents', sa.Integer(), nullable=False),
        sa.Column('discount_type', sa.String(length=16), nullable=False),
        sa.Column('discount_value', sa.Integer(), nullable=False),
        sa.Column('discount_amount_cents', sa.Integer(), nullable=True),
        sa.Column('gst_rate_bps', sa.Integer(), nullable=False),
        sa.Column('gst_amount_cents', sa.Integer(), nullable=True),
        sa.Column('final_amount_cents', sa.Integer(), nullable=False),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id']),
        sa.ForeignKeyConstraint(['size_stock_id'], ['size_stock.id']),
        sa.ForeignKeyConstraint(['barcode_group_id'], ['barcode_groups.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sales_transactions_store_id', 'sales_transactions', ['store_id'])
    op.create_index('ix_sales_transactions_invoice_id', 'sales_transactions', ['invoice_id'])
    op.create_index('ix_sales_transactions_size_stock_id', 'sales_transactions', ['size_stock_id'])
    op.create_index('ix_sales_transactions_barcode_group_id', 'sales_transactions', ['barcode_group_id'])
    op.create_index('ix_sales_transactions_created_at', 'sales_transactions', ['created_at'])
    op.create_index('ix_sales_txns_store_created', 'sales_transactions', ['store_id', 'created_at'])

    # ============================================================================
    # Returns and exchanges
    # ============================================================================
    op.create_table(
        'returns',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('document_number', sa.String(length=64), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('original_invoice_id', sa.Integer(), nullable=False),
        sa.Column('return_type', sa.String(length=16), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('total_refund_cents', sa.Integer(), nullable=False),
        sa.Column('total_exchange_cents', sa.Integer(), nullable=False),
        sa.Column('net_amount_cents', sa.Integer(), nullable=False),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id']),
        sa.ForeignKeyConstraint(['original_invoice_id'], ['invoices.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('document_number'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_returns_store_id', 'returns', ['store_id'])
    op.create_index('ix_returns_customer_id', 'returns', ['customer_id'])
    op.create_index('ix_returns_original_invoice_id', 'returns', ['original_invoice_id'])
    op.create_index('ix_returns_created_at', 'returns', ['created_at'])
    op.create_index('ix_returns_store_created', 'returns', ['store_id', 'created_at'])

    op.create_table(
        'return_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('return_id', sa.Integer(), nullable=False),
        sa.Column('invoice_item_id', sa.Integer(), nullable=False),
        sa.Column('size_stock_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('original_price_cents', sa.Integer(), nullable=False),
        sa.Column('refund_amount_cents', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['return_id'], ['returns.id']),
        sa.ForeignKeyConstraint(['invoice_item_id'], ['invoice_items.id']),
        sa.ForeignKeyConstraint(['size_stock_id'], ['size_stock.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_return_items_return_id', 'return_items', ['return_id'])
    op.create_index('ix_return_items_invoice_item_id', 'return_items', ['invoice_item_id'])

    op.create_table(
        'exchange_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('return_id', sa.Integer(), nullable=False),
        sa.Column('size_stock_id', sa.Integer(), nullable=False),
        sa.Column('barcode', sa.String(length=64), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('price_cents', sa.Integer(), nullable=False),
        sa.Column('line_total_cents', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['return_id'], ['returns.id']),
        sa.ForeignKeyConstraint(['size_stock_id'], ['size_stock.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_exchange_items_return_id', 'exchange_items', ['return_id'])

    # ============================================================================
    # Movement log and numbering
    # ============================================================================
    op.create_table(
        'inventory_movements',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('size_stock_id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=True),
        sa.Column('pool', sa.String(length=16), nullable=False),
        sa.Column('movement_type', sa.String(length=16), nullable=False),
        sa.Column('quantity_delta', sa.Integer(), nullable=False),
        sa.Column('balance_after', sa.Integer(), nullable=False),
        sa.Column('invoice_id', sa.Integer(), nullable=True),
        sa.Column('return_id', sa.Integer(), nullable=True),
        sa.Column('note', sa.String(length=255), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['size_stock_id'], ['size_stock.id']),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id']),
        sa.ForeignKeyConstraint(['return_id'], ['returns.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_inventory_movements_size_stock_id', 'inventory_movements', ['size_stock_id'])
    op.create_index('ix_inventory_movements_store_id', 'inventory_movements', ['store_id'])
    op.create_index('ix_inventory_movements_movement_type', 'inventory_movements', ['movement_type'])
    op.create_index('ix_inventory_movements_invoice_id', 'inventory_movements', ['invoice_id'])
    op.create_index('ix_inventory_movements_return_id', 'inventory_movements', ['return_id'])
    op.create_index('ix_inventory_movements_occurred_at', 'inventory_movements', ['occurred_at'])
    op.create_index('ix_inv_movements_unit_occurred', 'inventory_movements', ['size_stock_id', 'occurred_at'])
    op.create_index('ix_inv_movements_store_occurred', 'inventory_movements', ['store_id', 'occurred_at'])

    op.create_table(
        'document_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('document_type', sa.String(length=32), nullable=False),
        sa.Column('next_number', sa.Integer(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('store_id', 'document_type', name='uq_doc_sequences_store_type'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_document_sequences_store_id', 'document_sequences', ['store_id'])
    op.create_index('ix_document_sequences_document_type', 'document_sequences', ['document_type'])


def downgrade():
    for table in (
        'document_sequences',
        'inventory_movements',
        'exchange_items',
        'return_items',
        'returns',
        'sales_transactions',
        'invoice_items',
        'invoices',
        'customers',
        'store_tax_settings',
        'store_inventory',
        'stores',
        'barcode_group_sizes',
        'barcode_groups',
        'size_stock',
        'sizes',
        'colors',
        'variants',
        'categories',
    ):
        op.drop_table(table)
