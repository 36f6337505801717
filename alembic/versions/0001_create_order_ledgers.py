"""Create pending/history order ledgers and ingestion run tracking

Revision ID: 0001_create_order_ledgers
Revises:
Create Date: 2026-10-19

Both ledgers share one column layout. Natural-key columns are NOT NULL
with '' defaults so the unique constraints can serve as ON CONFLICT targets.
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_create_order_ledgers'
down_revision = None
branch_labels = None
depends_on = None

PENDING_KEY = ['po_number', 'product_code', 'so_number', 'size', 'line_item_number']
HISTORY_KEY = PENDING_KEY + ['invoice_number']


def _text(name, length):
    return sa.Column(name, sa.String(length), nullable=False, server_default='')


def _number(name):
    return sa.Column(name, sa.Float(), nullable=False, server_default='0')


def _order_columns():
    return [
        sa.Column('id', sa.BigInteger().with_variant(sa.Integer(), 'sqlite'), primary_key=True),
        _text('po_number', 100),
        _text('so_number', 100),
        _text('order_number', 100),
        _text('line_item_number', 50),
        _text('product_code', 100),
        _text('part_number', 100),
        _text('size', 50),
        _text('drawing_number', 100),
        _text('customer_name', 255),
        _text('customer_code', 100),
        _number('quantity'),
        _number('dispatch_quantity'),
        _number('pending_quantity'),
        _number('gross_weight'),
        _number('charge_weight'),
        _number('rate'),
        _text('so_date', 50),
        _text('order_date', 50),
        _text('dispatch_date', 50),
        _text('expected_delivery_date', 50),
        _text('pack_slip_date', 50),
        _text('invoice_date', 50),
        _text('invoice_number', 100),
        _text('truck_number', 100),
        _text('transport', 255),
        _text('department_remark', 500),
        _text('so_special_remark', 500),
        _text('die_indent', 255),
        _text('status', 20),
        _text('source', 255),
        sa.Column('raw', sa.JSON(), nullable=True, comment='Verbatim source row, audit only'),
        sa.Column('created_at', sa.TIMESTAMP(), server_default=sa.func.now(), nullable=True),
        sa.Column('updated_at', sa.TIMESTAMP(), server_default=sa.func.now(), nullable=True),
    ]


def _single_column_indexes(table):
    for column in ('po_number', 'so_number', 'product_code', 'customer_name'):
        op.create_index(f'ix_{table}_{column}', table, [column])


def upgrade():
    op.create_table(
        'tbl_pending_orders',
        *_order_columns(),
        sa.UniqueConstraint(*PENDING_KEY, name='uq_pending_orders_natural_key'),
    )
    _single_column_indexes('tbl_pending_orders')
    op.create_index('idx_pending_orders_reconcile', 'tbl_pending_orders', ['po_number', 'product_code', 'size'])
    op.create_index('idx_pending_orders_expected_delivery', 'tbl_pending_orders', ['expected_delivery_date'])

    op.create_table(
        'tbl_orders',
        *_order_columns(),
        sa.UniqueConstraint(*HISTORY_KEY, name='uq_orders_natural_key'),
    )
    _single_column_indexes('tbl_orders')
    op.create_index('idx_orders_reconcile', 'tbl_orders', ['po_number', 'product_code', 'size'])
    op.create_index('idx_orders_dispatch_date', 'tbl_orders', ['dispatch_date'])
    op.create_index('idx_orders_invoice_number', 'tbl_orders', ['invoice_number'])

    op.create_table(
        'tbl_ingestion_runs',
        sa.Column('id', sa.BigInteger().with_variant(sa.Integer(), 'sqlite'), primary_key=True),
        sa.Column('file_name', sa.String(255), nullable=True),
        sa.Column('ledger', sa.String(20), nullable=False),
        sa.Column('source', sa.String(255), nullable=True),
        sa.Column('status', sa.Integer(), nullable=False, comment='0=pending, 1=processing, 2=completed, 3=failed, 4=cancelled'),
        sa.Column('batch_size', sa.Integer(), nullable=True),
        sa.Column('batches', sa.Integer(), nullable=True),
        sa.Column('rows_written', sa.BigInteger(), nullable=True),
        sa.Column('reconciled', sa.BigInteger(), nullable=True),
        sa.Column('decremented', sa.BigInteger(), nullable=True),
        sa.Column('unmatched', sa.BigInteger(), nullable=True),
        sa.Column('reconcile_failed', sa.BigInteger(), nullable=True),
        sa.Column('started_at', sa.TIMESTAMP(), nullable=True),
        sa.Column('completed_at', sa.TIMESTAMP(), nullable=True),
        sa.Column('processing_time_seconds', sa.Integer(), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(), server_default=sa.func.now(), nullable=True),
        sa.Column('updated_at', sa.TIMESTAMP(), server_default=sa.func.now(), nullable=True),
    )


def downgrade():
    op.drop_table('tbl_ingestion_runs')
    op.drop_table('tbl_orders')
    op.drop_table('tbl_pending_orders')
