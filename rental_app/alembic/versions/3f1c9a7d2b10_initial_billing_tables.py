"""initial billing tables

Revision ID: 3f1c9a7d2b10
Revises:
Create Date: 2026-10-17 09:12:44.381205

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '3f1c9a7d2b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

PAYMENT_TYPE = sa.Enum('RENT', 'DEPOSIT', 'UTILITY', 'OTHER', name='paymenttype', native_enum=False)
DELIVERY_METHOD = sa.Enum('APP', 'SMS', 'EMAIL', 'WHATSAPP', 'BOTH', name='deliverymethod', native_enum=False)


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('phone_number', sa.String(length=20), nullable=True),
        sa.Column('role', sa.Enum('TENANT', 'PROPERTY_OWNER', 'ADMIN', name='userrole', native_enum=False), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
    )

    op.create_table(
        'properties',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('owner_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('unit_types', sa.JSON(), nullable=False),
        sa.Column('status', sa.Enum('AVAILABLE', 'OCCUPIED', 'UNDER_MAINTENANCE', name='propertystatus', native_enum=False), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['owner_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_properties_owner_id'), 'properties', ['owner_id'], unique=False)

    op.create_table(
        'tenants',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('property_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('owner_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('phone', sa.String(length=20), nullable=True),
        sa.Column('delivery_method', DELIVERY_METHOD, nullable=True),
        sa.Column('unit_type', sa.String(length=80), nullable=True),
        sa.Column('house_number', sa.String(length=40), nullable=True),
        sa.Column('price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('deposit', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('lease_start_date', sa.Date(), nullable=True),
        sa.Column('lease_end_date', sa.Date(), nullable=True),
        sa.Column('total_rent_paid', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('total_deposit_paid', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('total_utility_paid', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('wallet_balance', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('payment_status', sa.Enum('OVERDUE', 'UP_TO_DATE', name='paymentstatuslabel', native_enum=False), nullable=False),
        sa.Column('status_updated_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['owner_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['property_id'], ['properties.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint(
            'lease_end_date IS NULL OR lease_start_date IS NULL '
            'OR lease_end_date > lease_start_date',
            name='ck_tenants_lease_dates',
        ),
    )
    op.create_index(op.f('ix_tenants_name'), 'tenants', ['name'], unique=False)
    op.create_index(op.f('ix_tenants_owner_id'), 'tenants', ['owner_id'], unique=False)
    op.create_index(op.f('ix_tenants_payment_status'), 'tenants', ['payment_status'], unique=False)
    op.create_index(op.f('ix_tenants_property_id'), 'tenants', ['property_id'], unique=False)
    op.create_index(op.f('ix_tenants_user_id'), 'tenants', ['user_id'], unique=False)

    op.create_table(
        'invoices',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('owner_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('property_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('unit_type', sa.String(length=80), nullable=True),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('payment_type', PAYMENT_TYPE, nullable=False),
        sa.Column('status', sa.Enum('PENDING', 'COMPLETED', 'FAILED', name='invoicestatus', native_enum=False), nullable=False),
        sa.Column('reference', sa.String(length=120), nullable=False),
        sa.Column('transaction_request_id', sa.String(length=120), nullable=True),
        sa.Column('provider_receipt', sa.String(length=120), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['owner_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['property_id'], ['properties.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('reference'),
        sa.UniqueConstraint('transaction_request_id'),
    )
    op.create_index('ix_invoices_user_status', 'invoices', ['user_id', 'status'], unique=False)
    op.create_index(op.f('ix_invoices_owner_id'), 'invoices', ['owner_id'], unique=False)

    op.create_table(
        'payments',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('property_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('invoice_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('type', PAYMENT_TYPE, nullable=False),
        sa.Column('status', sa.Enum('PENDING', 'COMPLETED', 'FAILED', 'CANCELLED', name='paymentstatus', native_enum=False), nullable=False),
        sa.Column('transaction_id', sa.String(length=120), nullable=True),
        sa.Column('reference', sa.String(length=120), nullable=True),
        sa.Column('phone_number', sa.String(length=20), nullable=True),
        sa.Column('payment_date', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['property_id'], ['properties.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_payments_tenant_status', 'payments', ['tenant_id', 'status'], unique=False)
    op.create_index(op.f('ix_payments_property_id'), 'payments', ['property_id'], unique=False)
    op.create_index(op.f('ix_payments_invoice_id'), 'payments', ['invoice_id'], unique=False)
    op.create_index(op.f('ix_payments_transaction_id'), 'payments', ['transaction_id'], unique=False)

    op.create_table(
        'notifications',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('owner_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('tenant_name', sa.String(length=120), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('type', sa.Enum('PAYMENT', 'MAINTENANCE', 'TENANT', 'OTHER', name='notificationtype', native_enum=False), nullable=False),
        sa.Column('delivery_method', DELIVERY_METHOD, nullable=False),
        sa.Column('delivery_status', sa.Enum('PENDING', 'SUCCESS', 'FAILED', name='deliverystatus', native_enum=False), nullable=False),
        sa.Column('error_details', sa.Text(), nullable=True),
        sa.Column('dues', sa.JSON(), nullable=True),
        sa.Column('status', sa.Enum('UNREAD', 'READ', name='notificationreadstatus', native_enum=False), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['owner_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_notifications_owner_created', 'notifications', ['owner_id', 'created_at'], unique=False)
    op.create_index(op.f('ix_notifications_tenant_id'), 'notifications', ['tenant_id'], unique=False)

    op.create_table(
        'payment_status_logs',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('transaction_request_id', sa.String(length=120), nullable=False),
        sa.Column('status', sa.String(length=40), nullable=False),
        sa.Column('result_desc', sa.Text(), nullable=True),
        sa.Column('checked_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_payment_status_logs_transaction_request_id'), 'payment_status_logs', ['transaction_request_id'], unique=False)


def downgrade():
    op.drop_index(op.f('ix_payment_status_logs_transaction_request_id'), table_name='payment_status_logs')
    op.drop_table('payment_status_logs')
    op.drop_index(op.f('ix_notifications_tenant_id'), table_name='notifications')
    op.drop_index('ix_notifications_owner_created', table_name='notifications')
    op.drop_table('notifications')
    op.drop_index(op.f('ix_payments_transaction_id'), table_name='payments')
    op.drop_index(op.f('ix_payments_invoice_id'), table_name='payments')
    op.drop_index(op.f('ix_payments_property_id'), table_name='payments')
    op.drop_index('ix_payments_tenant_status', table_name='payments')
    op.drop_table('payments')
    op.drop_index(op.f('ix_invoices_owner_id'), table_name='invoices')
    op.drop_index('ix_invoices_user_status', table_name='invoices')
    op.drop_table('invoices')
    op.drop_index(op.f('ix_tenants_user_id'), table_name='tenants')
    op.drop_index(op.f('ix_tenants_property_id'), table_name='tenants')
    op.drop_index(op.f('ix_tenants_payment_status'), table_name='tenants')
    op.drop_index(op.f('ix_tenants_owner_id'), table_name='tenants')
    op.drop_index(op.f('ix_tenants_name'), table_name='tenants')
    op.drop_table('tenants')
    op.drop_index(op.f('ix_properties_owner_id'), table_name='properties')
    op.drop_table('properties')
    op.drop_table('users')
