"""initial_schema

Revision ID: 3f1a9c2d7e10
Revises:
Create Date: 2026-10-19 09:12:44.118203+00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '3f1a9c2d7e10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # 1. users (no FKs)
    op.create_table('users',
    sa.Column('pk', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('email', sa.String(length=255), nullable=False),
    sa.Column('name', sa.String(length=200), nullable=False),
    sa.Column('company', sa.String(length=200), nullable=True),
    sa.Column('country', sa.String(length=100), nullable=True),
    sa.Column('phone', sa.String(length=30), nullable=True),
    sa.Column('user_type', sa.String(length=20), nullable=False),
    sa.Column('profile_completed', sa.Boolean(), nullable=False),
    sa.Column('verification_status', sa.String(length=20), nullable=False),
    sa.Column('version_id', sa.Integer(), nullable=False),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.Column('updated_at', sa.DateTime(), nullable=False),
    sa.CheckConstraint("user_type IN ('buyer','supplier','admin')", name='chk_user_type'),
    sa.CheckConstraint("verification_status IN ('pending','verified','rejected')", name='chk_user_verification'),
    sa.PrimaryKeyConstraint('pk'),
    sa.UniqueConstraint('id'),
    sa.UniqueConstraint('email')
    )
    op.create_index('idx_users_email', 'users', ['email'], unique=False)
    op.create_index('idx_users_type', 'users', ['user_type'], unique=False)

    # 2. suppliers (profile id == user id)
    op.create_table('suppliers',
    sa.Column('pk', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('company_name', sa.String(length=200), nullable=False),
    sa.Column('country', sa.String(length=100), nullable=True),
    sa.Column('product_categories', sa.JSON(), nullable=False),
    sa.Column('certifications', sa.JSON(), nullable=False),
    sa.Column('years_in_business', sa.Integer(), nullable=False),
    sa.Column('verification_status', sa.String(length=20), nullable=False),
    sa.Column('verified_at', sa.DateTime(), nullable=True),
    sa.Column('version_id', sa.Integer(), nullable=False),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.Column('updated_at', sa.DateTime(), nullable=False),
    sa.CheckConstraint('years_in_business >= 0', name='chk_supplier_years'),
    sa.CheckConstraint("verification_status IN ('pending','verified','rejected')", name='chk_supplier_verification'),
    sa.ForeignKeyConstraint(['id'], ['users.id'], ),
    sa.PrimaryKeyConstraint('pk'),
    sa.UniqueConstraint('id')
    )
    op.create_index('idx_suppliers_status', 'suppliers', ['verification_status'], unique=False)

    # 3. rfqs (FK to users)
    op.create_table('rfqs',
    sa.Column('pk', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('buyer_id', sa.String(length=36), nullable=False),
    sa.Column('title', sa.String(length=300), nullable=False),
    sa.Column('category', sa.String(length=100), nullable=False),
    sa.Column('description', sa.Text(), nullable=True),
    sa.Column('quantity', sa.Integer(), nullable=False),
    sa.Column('unit', sa.String(length=30), nullable=False),
    sa.Column('target_price_cents', sa.BigInteger(), nullable=False),
    sa.Column('max_price_cents', sa.BigInteger(), nullable=True),
    sa.Column('delivery_timeline', sa.String(length=100), nullable=True),
    sa.Column('shipping_terms', sa.String(length=100), nullable=True),
    sa.Column('status', sa.String(length=20), nullable=False),
    sa.Column('matched_suppliers', sa.JSON(), nullable=False),
    sa.Column('quotations_count', sa.Integer(), nullable=False),
    sa.Column('expires_at', sa.DateTime(), nullable=False),
    sa.Column('approved_at', sa.DateTime(), nullable=True),
    sa.Column('closed_at', sa.DateTime(), nullable=True),
    sa.Column('close_reason', sa.String(length=20), nullable=True),
    sa.Column('awarded_quotation_id', sa.String(length=36), nullable=True),
    sa.Column('version_id', sa.Integer(), nullable=False),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.Column('updated_at', sa.DateTime(), nullable=False),
    sa.CheckConstraint("status IN ('pending_approval','approved','matched','quoted','closed','rejected')", name='chk_rfq_status'),
    sa.CheckConstraint('quantity > 0', name='chk_rfq_quantity'),
    sa.CheckConstraint('target_price_cents > 0', name='chk_rfq_target_price'),
    sa.CheckConstraint('max_price_cents IS NULL OR max_price_cents >= target_price_cents', name='chk_rfq_max_price'),
    sa.CheckConstraint('quotations_count >= 0', name='chk_rfq_quotations_count'),
    sa.ForeignKeyConstraint(['buyer_id'], ['users.id'], ),
    sa.PrimaryKeyConstraint('pk'),
    sa.UniqueConstraint('id')
    )
    op.create_index('idx_rfqs_buyer', 'rfqs', ['buyer_id'], unique=False)
    op.create_index('idx_rfqs_status', 'rfqs', ['status'], unique=False)
    op.create_index('idx_rfqs_category', 'rfqs', ['category'], unique=False)
    op.create_index('idx_rfqs_expires', 'rfqs', ['expires_at'], unique=False)

    # 4. quotations (FK to rfqs + suppliers)
    op.create_table('quotations',
    sa.Column('pk', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('rfq_id', sa.String(length=36), nullable=False),
    sa.Column('supplier_id', sa.String(length=36), nullable=False),
    sa.Column('quoted_price_cents', sa.BigInteger(), nullable=False),
    sa.Column('moq', sa.Integer(), nullable=False),
    sa.Column('total_value_cents', sa.BigInteger(), nullable=False),
    sa.Column('lead_time', sa.String(length=100), nullable=True),
    sa.Column('payment_terms', sa.String(length=200), nullable=True),
    sa.Column('shipping_terms', sa.String(length=100), nullable=True),
    sa.Column('validity_days', sa.Integer(), nullable=False),
    sa.Column('quality_guarantee', sa.Boolean(), nullable=False),
    sa.Column('sample_available', sa.Boolean(), nullable=False),
    sa.Column('notes', sa.Text(), nullable=True),
    sa.Column('status', sa.String(length=20), nullable=False),
    sa.Column('submitted_at', sa.DateTime(), nullable=False),
    sa.Column('reviewed_at', sa.DateTime(), nullable=True),
    sa.Column('decided_at', sa.DateTime(), nullable=True),
    sa.Column('version_id', sa.Integer(), nullable=False),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.Column('updated_at', sa.DateTime(), nullable=False),
    sa.CheckConstraint("status IN ('pending_review','approved','rejected','sent_to_buyer','accepted')", name='chk_quotation_status'),
    sa.CheckConstraint('quoted_price_cents > 0', name='chk_quotation_price'),
    sa.CheckConstraint('moq > 0', name='chk_quotation_moq'),
    sa.CheckConstraint('validity_days > 0', name='chk_quotation_validity'),
    sa.CheckConstraint('total_value_cents = quoted_price_cents * moq', name='chk_quotation_total_value'),
    sa.ForeignKeyConstraint(['rfq_id'], ['rfqs.id'], ),
    sa.ForeignKeyConstraint(['supplier_id'], ['suppliers.id'], ),
    sa.PrimaryKeyConstraint('pk'),
    sa.UniqueConstraint('id')
    )
    op.create_index('idx_quotations_rfq', 'quotations', ['rfq_id'], unique=False)
    op.create_index('idx_quotations_supplier', 'quotations', ['supplier_id'], unique=False)
    op.create_index('idx_quotations_status', 'quotations', ['status'], unique=False)
    op.create_index(
        'uq_quotations_active_supplier', 'quotations', ['rfq_id', 'supplier_id'], unique=True,
        sqlite_where=sa.text("status != 'rejected'"),
        postgresql_where=sa.text("status != 'rejected'"),
    )

    # 5. orders (one per quotation)
    op.create_table('orders',
    sa.Column('pk', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('rfq_id', sa.String(length=36), nullable=False),
    sa.Column('quotation_id', sa.String(length=36), nullable=False),
    sa.Column('buyer_id', sa.String(length=36), nullable=False),
    sa.Column('supplier_id', sa.String(length=36), nullable=False),
    sa.Column('order_value_cents', sa.BigInteger(), nullable=False),
    sa.Column('quantity', sa.Integer(), nullable=False),
    sa.Column('unit_price_cents', sa.BigInteger(), nullable=False),
    sa.Column('payment_terms', sa.String(length=200), nullable=True),
    sa.Column('delivery_terms', sa.String(length=100), nullable=True),
    sa.Column('status', sa.String(length=20), nullable=False),
    sa.Column('expected_delivery', sa.DateTime(), nullable=False),
    sa.Column('payment_received_cents', sa.BigInteger(), nullable=False),
    sa.Column('payment_pending_cents', sa.BigInteger(), nullable=False),
    sa.Column('tracking_number', sa.String(length=100), nullable=True),
    sa.Column('version_id', sa.Integer(), nullable=False),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.Column('updated_at', sa.DateTime(), nullable=False),
    sa.CheckConstraint("status IN ('confirmed','in_production','shipped','delivered','completed','cancelled')", name='chk_order_status'),
    sa.CheckConstraint('order_value_cents > 0', name='chk_order_value'),
    sa.CheckConstraint('payment_received_cents + payment_pending_cents = order_value_cents', name='chk_order_payment_split'),
    sa.ForeignKeyConstraint(['rfq_id'], ['rfqs.id'], ),
    sa.ForeignKeyConstraint(['quotation_id'], ['quotations.id'], ),
    sa.ForeignKeyConstraint(['buyer_id'], ['users.id'], ),
    sa.ForeignKeyConstraint(['supplier_id'], ['suppliers.id'], ),
    sa.PrimaryKeyConstraint('pk'),
    sa.UniqueConstraint('id'),
    sa.UniqueConstraint('quotation_id')
    )
    op.create_index('idx_orders_buyer', 'orders', ['buyer_id'], unique=False)
    op.create_index('idx_orders_supplier', 'orders', ['supplier_id'], unique=False)
    op.create_index('idx_orders_status', 'orders', ['status'], unique=False)

    # 6. sample_requests
    op.create_table('sample_requests',
    sa.Column('pk', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('rfq_id', sa.String(length=36), nullable=False),
    sa.Column('quotation_id', sa.String(length=36), nullable=False),
    sa.Column('buyer_id', sa.String(length=36), nullable=False),
    sa.Column('supplier_id', sa.String(length=36), nullable=False),
    sa.Column('delivery_address', sa.Text(), nullable=True),
    sa.Column('courier_service', sa.String(length=100), nullable=True),
    sa.Column('tracking_number', sa.String(length=100), nullable=True),
    sa.Column('status', sa.String(length=30), nullable=False),
    sa.Column('approved_at', sa.DateTime(), nullable=True),
    sa.Column('shipped_at', sa.DateTime(), nullable=True),
    sa.Column('delivered_at', sa.DateTime(), nullable=True),
    sa.Column('version_id', sa.Integer(), nullable=False),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.Column('updated_at', sa.DateTime(), nullable=False),
    sa.CheckConstraint("status IN ('requested','approved_by_admin','shipped_by_supplier','delivered','rejected')", name='chk_sample_status'),
    sa.ForeignKeyConstraint(['rfq_id'], ['rfqs.id'], ),
    sa.ForeignKeyConstraint(['quotation_id'], ['quotations.id'], ),
    sa.ForeignKeyConstraint(['buyer_id'], ['users.id'], ),
    sa.ForeignKeyConstraint(['supplier_id'], ['suppliers.id'], ),
    sa.PrimaryKeyConstraint('pk'),
    sa.UniqueConstraint('id')
    )
    op.create_index('idx_samples_quotation', 'sample_requests', ['quotation_id'], unique=False)
    op.create_index('idx_samples_buyer', 'sample_requests', ['buyer_id'], unique=False)
    op.create_index('idx_samples_supplier', 'sample_requests', ['supplier_id'], unique=False)

    # 7. audit_logs (append-only, no FKs)
    op.create_table('audit_logs',
    sa.Column('pk', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('actor_id', sa.String(length=36), nullable=True),
    sa.Column('entity_type', sa.String(length=50), nullable=False),
    sa.Column('entity_id', sa.String(length=36), nullable=False),
    sa.Column('action', sa.String(length=50), nullable=False),
    sa.Column('before_status', sa.String(length=30), nullable=True),
    sa.Column('after_status', sa.String(length=30), nullable=False),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.PrimaryKeyConstraint('pk'),
    sa.UniqueConstraint('id')
    )
    op.create_index('idx_audit_entity', 'audit_logs', ['entity_type', 'entity_id'], unique=False)
    op.create_index('idx_audit_created', 'audit_logs', ['created_at'], unique=False)


def downgrade() -> None:
    op.drop_index('idx_audit_created', table_name='audit_logs')
    op.drop_index('idx_audit_entity', table_name='audit_logs')
    op.drop_table('audit_logs')
    op.drop_index('idx_samples_supplier', table_name='sample_requests')
    op.drop_index('idx_samples_buyer', table_name='sample_requests')
    op.drop_index('idx_samples_quotation', table_name='sample_requests')
    op.drop_table('sample_requests')
    op.drop_index('idx_orders_status', table_name='orders')
    op.drop_index('idx_orders_supplier', table_name='orders')
    op.drop_index('idx_orders_buyer', table_name='orders')
    op.drop_table('orders')
    op.drop_index('uq_quotations_active_supplier', table_name='quotations')
    op.drop_index('idx_quotations_status', table_name='quotations')
    op.drop_index('idx_quotations_supplier', table_name='quotations')
    op.drop_index('idx_quotations_rfq', table_name='quotations')
    op.drop_table('quotations')
    op.drop_index('idx_rfqs_expires', table_name='rfqs')
    op.drop_index('idx_rfqs_category', table_name='rfqs')
    op.drop_index('idx_rfqs_status', table_name='rfqs')
    op.drop_index('idx_rfqs_buyer', table_name='rfqs')
    op.drop_table('rfqs')
    op.drop_index('idx_suppliers_status', table_name='suppliers')
    op.drop_table('suppliers')
    op.drop_index('idx_users_type', table_name='users')
    op.drop_index('idx_users_email', table_name='users')
    op.drop_table('users')
