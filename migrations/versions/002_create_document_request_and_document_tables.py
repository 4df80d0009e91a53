"""Create document request, status history and document tables

Revision ID: 002
Revises: 001
Create Date: 2026-09-14 09:30:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '002'
down_revision = '001'
branch_labels = None
depends_on = None

request_status = postgresql.ENUM(
    'draft', 'pending', 'sent', 'received', 'verifying', 'completed', 'expired',
    name='request_status', create_type=False,
)
validation_status = postgresql.ENUM(
    'pending', 'verified', 'needs_review', 'rejected',
    name='validation_status', create_type=False,
)


def upgrade():
    request_status.create(op.get_bind(), checkfirst=True)
    validation_status.create(op.get_bind(), checkfirst=True)

    op.create_table(
        'document_request',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('org_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('employee_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('recipient_email', sa.Text(), nullable=False),
        sa.Column('subject', sa.Text(), nullable=False),
        sa.Column('requested_document_type', sa.Text(), nullable=True),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('expected_count', sa.Integer(), server_default=sa.text('1'), nullable=False),
        sa.Column('status', request_status, server_default=sa.text("'pending'"), nullable=False),
        sa.Column('document_count', sa.Integer(), server_default=sa.text('0'), nullable=False),
        sa.Column('last_status_change_at', sa.TIMESTAMP(), nullable=True),
        sa.Column('last_status_changed_by', sa.Text(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(), server_default=sa.text("(NOW() AT TIME ZONE 'utc')"), nullable=False),
        sa.ForeignKeyConstraint(['org_id'], ['org.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['employee_id'], ['employee.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_document_request_org_recipient_status', 'document_request', ['org_id', 'recipient_email', 'status'])
    op.create_index('ix_document_request_org_due', 'document_request', ['org_id', 'due_date'])

    # Append-only lifecycle log
    op.create_table(
        'request_status_history',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('org_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('request_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('old_status', sa.Text(), nullable=True),
        sa.Column('new_status', sa.Text(), nullable=False),
        sa.Column('actor', sa.Text(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('metadata_json', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(), server_default=sa.text("(NOW() AT TIME ZONE 'utc')"), nullable=False),
        sa.ForeignKeyConstraint(['org_id'], ['org.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['request_id'], ['document_request.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_request_status_history_request_created', 'request_status_history', ['request_id', 'created_at'])

    op.create_table(
        'document',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('org_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('request_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('routing_rule_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('storage_target_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('storage_provider', sa.Text(), nullable=False),
        sa.Column('storage_path', sa.Text(), nullable=False),
        sa.Column('file_name', sa.Text(), nullable=False),
        sa.Column('mime_type', sa.Text(), nullable=False),
        sa.Column('size_bytes', sa.BigInteger(), nullable=False),
        sa.Column('sha256', sa.Text(), nullable=False),
        sa.Column('sender_email', sa.Text(), nullable=True),
        sa.Column('subject', sa.Text(), nullable=True),
        sa.Column('validation_status', validation_status, server_default=sa.text("'pending'"), nullable=False),
        sa.Column('received_at', sa.TIMESTAMP(), server_default=sa.text("(NOW() AT TIME ZONE 'utc')"), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(), server_default=sa.text("(NOW() AT TIME ZONE 'utc')"), nullable=False),
        sa.ForeignKeyConstraint(['org_id'], ['org.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['request_id'], ['document_request.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['routing_rule_id'], ['routing_rule.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['storage_target_id'], ['storage_target.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_document_org_id', 'document', ['org_id'])
    op.create_index('ix_document_org_sha256', 'document', ['org_id', 'sha256'])
    op.create_index('ix_document_request_id', 'document', ['request_id'])


def downgrade():
    op.drop_index('ix_document_request_id', table_name='document')
    op.drop_index('ix_document_org_sha256', table_name='document')
    op.drop_index('ix_document_org_id', table_name='document')
    op.drop_table('document')
    op.drop_index('ix_request_status_history_request_created', table_name='request_status_history')
    op.drop_table('request_status_history')
    op.drop_index('ix_document_request_org_due', table_name='document_request')
    op.drop_index('ix_document_request_org_recipient_status', table_name='document_request')
    op.drop_table('document_request')
    validation_status.drop(op.get_bind(), checkfirst=True)
    request_status.drop(op.get_bind(), checkfirst=True)
