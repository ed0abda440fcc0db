"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 00:00:00.000000

Esquema completo del punto de venta:
- operators, books, price_lines, stock_lines, customers
- cash_sessions con índice único parcial: una sola caja OPEN
- cash_movements, sales, sale_lines
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001'
down_revision = None
branch_labels = None
depends_on = None


stock_condition = sa.Enum('NEW', 'DISCOUNTED', name='stockcondition')
cash_session_status = sa.Enum('OPEN', 'CLOSED', name='cashsessionstatus')
movement_type = sa.Enum('DEPOSIT', 'WITHDRAWAL', name='movementtype')
tender_type = sa.Enum('CASH', 'CREDIT', 'DEBIT', 'PIX', 'OTHER', name='tendertype')


def _base_columns():
    """id + created_at/updated_at de BaseMixin"""
    return [
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def _money(name, nullable=False, precision=12):
    return sa.Column(name, sa.Numeric(precision, 2), nullable=nullable)


def upgrade():
    op.create_table(
        'operators',
        *_base_columns(),
        sa.Column('username', sa.String(length=50), nullable=False),
        sa.Column('name', sa.String(length=150), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_operators_id', 'operators', ['id'])
    op.create_index('ix_operators_username', 'operators', ['username'], unique=True)

    # ===== CATÁLOGO Y STOCK =====
    op.create_table(
        'books',
        *_base_columns(),
        sa.Column('isbn', sa.String(length=13), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('author', sa.String(length=255), nullable=False),
        sa.Column('publisher', sa.String(length=255), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_books_id', 'books', ['id'])
    op.create_index('ix_books_isbn', 'books', ['isbn'], unique=True)
    op.create_index('ix_books_title', 'books', ['title'])

    op.create_table(
        'price_lines',
        *_base_columns(),
        sa.Column('book_id', sa.Integer(), nullable=False),
        sa.Column('condition', stock_condition, nullable=False),
        _money('unit_price', precision=10),
        sa.ForeignKeyConstraint(['book_id'], ['books.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('book_id', 'condition', name='uq_price_line_book_condition'),
        sa.CheckConstraint('unit_price >= 0', name='ck_price_line_non_negative'),
    )
    op.create_index('ix_price_lines_id', 'price_lines', ['id'])
    op.create_index('ix_price_lines_book_id', 'price_lines', ['book_id'])

    op.create_table(
        'stock_lines',
        *_base_columns(),
        sa.Column('book_id', sa.Integer(), nullable=False),
        sa.Column('condition', stock_condition, nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['book_id'], ['books.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('book_id', 'condition', name='uq_stock_line_book_condition'),
        sa.CheckConstraint('quantity >= 0', name='ck_stock_line_non_negative'),
    )
    op.create_index('ix_stock_lines_id', 'stock_lines', ['id'])
    op.create_index('ix_stock_lines_book_id', 'stock_lines', ['book_id'])

    op.create_table(
        'customers',
        *_base_columns(),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('cpf', sa.String(length=11), nullable=False),
        sa.Column('email', sa.String(length=100), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_customers_id', 'customers', ['id'])
    op.create_index('ix_customers_name', 'customers', ['name'])
    op.create_index('ix_customers_cpf', 'customers', ['cpf'], unique=True)

    # ===== CAJA =====
    op.create_table(
        'cash_sessions',
        *_base_columns(),
        sa.Column('status', cash_session_status, nullable=False),
        _money('opening_float'),
        _money('registered_cash'),
        _money('registered_credit'),
        _money('registered_debit'),
        _money('registered_pix'),
        _money('registered_other'),
        _money('final_cash_count', nullable=True),
        _money('conferred_credit', nullable=True),
        _money('conferred_debit', nullable=True),
        _money('conferred_pix', nullable=True),
        _money('conferred_other', nullable=True),
        sa.Column('opened_by', sa.Integer(), nullable=False),
        sa.Column('closed_by', sa.Integer(), nullable=True),
        sa.Column('opened_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('closed_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['opened_by'], ['operators.id']),
        sa.ForeignKeyConstraint(['closed_by'], ['operators.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('opening_float >= 0', name='ck_cash_session_opening_float'),
    )
    op.create_index('ix_cash_sessions_id', 'cash_sessions', ['id'])
    op.create_index('ix_cash_sessions_status', 'cash_sessions', ['status'])
    op.create_index(
        'uq_cash_session_single_open',
        'cash_sessions',
        ['status'],
        unique=True,
        postgresql_where=sa.text("status = 'OPEN'"),
        sqlite_where=sa.text("status = 'OPEN'"),
    )

    op.create_table(
        'cash_movements',
        *_base_columns(),
        sa.Column('cash_session_id', sa.Integer(), nullable=False),
        sa.Column('type', movement_type, nullable=False),
        _money('amount'),
        sa.Column('reason', sa.String(length=255), nullable=False),
        sa.Column('created_by', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['cash_session_id'], ['cash_sessions.id']),
        sa.ForeignKeyConstraint(['created_by'], ['operators.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('amount > 0', name='ck_cash_movement_positive'),
    )
    op.create_index('ix_cash_movements_id', 'cash_movements', ['id'])
    op.create_index('ix_cash_movements_cash_session_id', 'cash_movements', ['cash_session_id'])
    op.create_index('ix_cash_movements_type', 'cash_movements', ['type'])

    # ===== VENTAS =====
    op.create_table(
        'sales',
        *_base_columns(),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('tender_type', tender_type, nullable=False),
        _money('total'),
        sa.Column('created_by', sa.Integer(), nullable=False),
        sa.Column('cash_session_id', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['created_by'], ['operators.id']),
        sa.ForeignKeyConstraint(['cash_session_id'], ['cash_sessions.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_sales_id', 'sales', ['id'])
    op.create_index('ix_sales_customer_id', 'sales', ['customer_id'])
    op.create_index('ix_sales_tender_type', 'sales', ['tender_type'])
    op.create_index('ix_sales_cash_session_id', 'sales', ['cash_session_id'])

    op.create_table(
        'sale_lines',
        *_base_columns(),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('book_id', sa.Integer(), nullable=False),
        sa.Column('condition', stock_condition, nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        _money('unit_price', precision=10),
        sa.Column('discount_percent', sa.Numeric(5, 2), nullable=False),
        _money('line_total'),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['book_id'], ['books.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('quantity > 0', name='ck_sale_line_quantity'),
        sa.CheckConstraint(
            'discount_percent >= 0 AND discount_percent <= 100', name='ck_sale_line_discount'
        ),
    )
    op.create_index('ix_sale_lines_id', 'sale_lines', ['id'])
    op.create_index('ix_sale_lines_sale_id', 'sale_lines', ['sale_id'])
    op.create_index('ix_sale_lines_book_id', 'sale_lines', ['book_id'])


def downgrade():
    """Eliminar todo el esquema (destructivo)"""
    op.drop_table('sale_lines')
    op.drop_table('sales')
    op.drop_table('cash_movements')
    op.drop_index('uq_cash_session_single_open', table_name='cash_sessions')
    op.drop_table('cash_sessions')
    op.drop_table('customers')
    op.drop_table('stock_lines')
    op.drop_table('price_lines')
    op.drop_table('books')
    op.drop_table('operators')

    bind = op.get_bind()
    for enum_type in (tender_type, movement_type, cash_session_status, stock_condition):
        enum_type.drop(bind, checkfirst=True)
