"""Create validation result, queue, dead-letter, execution and reminder tables

Revision ID: 003
Revises: 002
Create Date: 2026-09-14 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '003'
down_revision = '002'
branch_labels = None
depends_on = None

verdict = postgresql.ENUM('verified', 'needs_review', 'rejected', name='verdict', create_type=False)
expiry_status = postgresql.ENUM('valid', 'expiring_soon', 'expired', 'unknown', name='expiry_status', create_type=False)
job_status = postgresql.ENUM(
    'queued', 'processing', 'succeeded', 'failed', 'dead_lettered',
    name='validation_job_status', create_type=False,
)
execution_trigger = postgresql.ENUM('system', 'manual', 'queue', name='execution_trigger', create_type=False)
execution_status = postgresql.ENUM('running', 'completed', 'failed', 'timeout', name='execution_status', create_type=False)

ENUMS = (verdict, expiry_status, job_status, execution_trigger, execution_status)


def upgrade():
    for enum_type in ENUMS:
        enum_type.create(op.get_bind(), checkfirst=True)

    op.create_table(
        'validation_result',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('org_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('document_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('document_type', sa.Text(), nullable=False),
        sa.Column('type_confidence', sa.Float(), nullable=False),
        sa.Column('issuing_country', sa.Text(), nullable=True),
        sa.Column('document_number', sa.Text(), nullable=True),
        sa.Column('owner_confidence', sa.Float(), nullable=False),
        sa.Column('name_match_score', sa.Float(), nullable=True),
        sa.Column('dob_match', sa.Boolean(), nullable=True),
        sa.Column('matched_employee_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('owner_match_method', sa.Text(), nullable=True),
        sa.Column('expiry_date', sa.Date(), nullable=True),
        sa.Column('issue_date', sa.Date(), nullable=True),
        sa.Column('expiry_status', expiry_status, server_default=sa.text("'unknown'"), nullable=False),
        sa.Column('days_until_expiry', sa.Integer(), nullable=True),
        sa.Column('authenticity_score', sa.Float(), nullable=False),
        sa.Column('is_duplicate', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('duplicate_of_ids', postgresql.JSONB(astext_type=sa.Text()), server_default=sa.text("'[]'::jsonb"), nullable=False),
        sa.Column('compliance_score', sa.Float(), nullable=False),
        sa.Column('verdict', verdict, nullable=False),
        sa.Column('review_priority', sa.Text(), server_default=sa.text("'low'"), nullable=False),
        sa.Column('critical_issues', postgresql.JSONB(astext_type=sa.Text()), server_default=sa.text("'[]'::jsonb"), nullable=False),
        sa.Column('warnings', postgresql.JSONB(astext_type=sa.Text()), server_default=sa.text("'[]'::jsonb"), nullable=False),
        sa.Column('model', sa.Text(), nullable=True),
        sa.Column('prompt_version', sa.Text(), nullable=True),
        sa.Column('validated_at', sa.TIMESTAMP(), server_default=sa.text("(NOW() AT TIME ZONE 'utc')"), nullable=False),
        sa.ForeignKeyConstraint(['org_id'], ['org.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['document_id'], ['document.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['matched_employee_id'], ['employee.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('document_id', name='uq_validation_result_document'),
    )

    op.create_table(
        'validation_job',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('org_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('document_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('attempt', sa.Integer(), server_default=sa.text('0'), nullable=False),
        sa.Column('max_attempts', sa.Integer(), server_default=sa.text('6'), nullable=False),
        sa.Column('status', job_status, server_default=sa.text("'queued'"), nullable=False),
        sa.Column('trigger', sa.Text(), server_default=sa.text("'system'"), nullable=False),
        sa.Column('triggered_by', sa.Text(), nullable=True),
        sa.Column('next_attempt_at', sa.TIMESTAMP(), server_default=sa.text("(NOW() AT TIME ZONE 'utc')"), nullable=False),
        sa.Column('claimed_at', sa.TIMESTAMP(), nullable=True),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('last_error_details', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(), server_default=sa.text("(NOW() AT TIME ZONE 'utc')"), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(), server_default=sa.text("(NOW() AT TIME ZONE 'utc')"), nullable=False),
        sa.ForeignKeyConstraint(['org_id'], ['org.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['document_id'], ['document.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_validation_job_status_next_attempt', 'validation_job', ['status', 'next_attempt_at'])
    op.create_index('ix_validation_job_document', 'validation_job', ['document_id'])

    op.create_table(
        'validation_dead_letter',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('org_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('job_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('document_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('final_attempt', sa.Integer(), nullable=False),
        sa.Column('final_error', sa.Text(), nullable=True),
        sa.Column('final_error_details', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('resolved_at', sa.TIMESTAMP(), nullable=True),
        sa.Column('resolved_by', sa.Text(), nullable=True),
        sa.Column('resolution_notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(), server_default=sa.text("(NOW() AT TIME ZONE 'utc')"), nullable=False),
        sa.ForeignKeyConstraint(['org_id'], ['org.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['job_id'], ['validation_job.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['document_id'], ['document.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('job_id', name='uq_validation_dead_letter_job'),
    )
    op.create_index('ix_validation_dead_letter_org_resolved', 'validation_dead_letter', ['org_id', 'resolved_at'])

    op.create_table(
        'validation_execution',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('org_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('document_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('job_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('trigger', execution_trigger, nullable=False),
        sa.Column('triggered_by', sa.Text(), nullable=True),
        sa.Column('attempt', sa.Integer(), nullable=True),
        sa.Column('status', execution_status, server_default=sa.text("'running'"), nullable=False),
        sa.Column('started_at', sa.TIMESTAMP(), server_default=sa.text("(NOW() AT TIME ZONE 'utc')"), nullable=False),
        sa.Column('finished_at', sa.TIMESTAMP(), nullable=True),
        sa.Column('duration_ms', sa.Integer(), nullable=True),
        sa.Column('model', sa.Text(), nullable=True),
        sa.Column('prompt_version', sa.Text(), nullable=True),
        sa.Column('tokens_in', sa.Integer(), nullable=True),
        sa.Column('tokens_out', sa.Integer(), nullable=True),
        sa.Column('cost_micros', sa.Integer(), nullable=True),
        sa.Column('verdict', sa.Text(), nullable=True),
        sa.Column('error_summary', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['org_id'], ['org.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['document_id'], ['document.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['job_id'], ['validation_job.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    # Serves the manual-trigger rate limit window count
    op.create_index(
        'ix_validation_execution_document_trigger_started',
        'validation_execution',
        ['document_id', 'trigger', 'started_at'],
    )
    op.create_index('ix_validation_execution_job', 'validation_execution', ['job_id'])

    op.create_table(
        'renewal_reminder',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('org_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('document_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('employee_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('expiry_date', sa.Date(), nullable=False),
        sa.Column('reminder_date', sa.Date(), nullable=False),
        sa.Column('reminder_type', sa.Text(), nullable=False),
        sa.Column('sent', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('sent_at', sa.TIMESTAMP(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(), server_default=sa.text("(NOW() AT TIME ZONE 'utc')"), nullable=False),
        sa.ForeignKeyConstraint(['org_id'], ['org.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['document_id'], ['document.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['employee_id'], ['employee.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('document_id', 'reminder_date', name='uq_renewal_reminder_document_date'),
    )
    op.create_index('ix_renewal_reminder_due', 'renewal_reminder', ['sent', 'reminder_date'])


def downgrade():
    op.drop_index('ix_renewal_reminder_due', table_name='renewal_reminder')
    op.drop_table('renewal_reminder')
    op.drop_index('ix_validation_execution_job', table_name='validation_execution')
    op.drop_index('ix_validation_execution_document_trigger_started', table_name='validation_execution')
    op.drop_table('validation_execution')
    op.drop_index('ix_validation_dead_letter_org_resolved', table_name='validation_dead_letter')
    op.drop_table('validation_dead_letter')
    op.drop_index('ix_validation_job_document', table_name='validation_job')
    op.drop_index('ix_validation_job_status_next_attempt', table_name='validation_job')
    op.drop_table('validation_job')
    op.drop_table('validation_result')
    for enum_type in reversed(ENUMS):
        enum_type.drop(op.get_bind(), checkfirst=True)
