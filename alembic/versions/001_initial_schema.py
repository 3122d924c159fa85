"""Initial schema for license catalog and import sessions

Revision ID: 001_initial_schema
Revises: 
Create Date: 2026-10-18

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Create categories table
    op.create_table(
        'categories',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False,
                  comment='Display name, unique case-insensitively'),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'),
                  nullable=False, comment='Creation timestamp'),
        sa.PrimaryKeyConstraint('id'),
        comment='License categories'
    )
    op.create_index('idx_categories_name', 'categories', ['name'])

    # Create licenses table
    op.create_table(
        'licenses',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('vendor', sa.String(length=200), nullable=True),
        sa.Column('category_id', sa.Uuid(), nullable=True),
        sa.Column('seats_purchased', sa.Integer(), nullable=True),
        sa.Column('seats_assigned', sa.Integer(), nullable=True),
        sa.Column('expires_on', sa.Date(), nullable=True, comment='Expiry date (UTC calendar date)'),
        sa.Column('status', sa.String(length=20), server_default='Unknown', nullable=False,
                  comment='Computed expiry status'),
        sa.Column('use_custom_thresholds', sa.Boolean(), server_default=sa.false(), nullable=False,
                  comment='True if the threshold overrides below apply'),
        sa.Column('critical_threshold_days', sa.Integer(), nullable=True),
        sa.Column('warning_threshold_days', sa.Integer(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True,
                  comment='Set only when an existing license is modified'),
        sa.CheckConstraint("status IN ('Unknown', 'Good', 'Warning', 'Critical', 'Expired')",
                           name='licenses_status_check'),
        sa.ForeignKeyConstraint(['category_id'], ['categories.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        comment='Licensed products tracked in the portfolio'
    )
    op.create_index('idx_licenses_name', 'licenses', ['name'])
    op.create_index('idx_licenses_category_id', 'licenses', ['category_id'])
    op.create_index('idx_licenses_expires_on', 'licenses', ['expires_on'])

    # Create audit_log table
    op.create_table(
        'audit_log',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('occurred_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('actor_user_id', sa.String(length=255), server_default='', nullable=False),
        sa.Column('actor_email', sa.String(length=255), server_default='', nullable=False),
        sa.Column('action', sa.String(length=100), nullable=False,
                  comment='e.g. License.Created, Import.Committed'),
        sa.Column('entity_type', sa.String(length=100), nullable=False),
        sa.Column('entity_id', sa.String(length=100), nullable=False),
        sa.Column('summary', sa.Text(), server_default='', nullable=False),
        sa.Column('correlation_id', sa.String(length=100), nullable=True),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        comment='Append-only audit trail'
    )
    op.create_index('idx_audit_log_occurred_at', 'audit_log', ['occurred_at'])
    op.create_index('idx_audit_log_entity', 'audit_log', ['entity_type', 'entity_id'])

    # Create import_sessions table
    op.create_table(
        'import_sessions',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'),
                  nullable=False, comment='Session creation timestamp'),
        sa.Column('created_by_user_id', sa.String(length=255), server_default='', nullable=False,
                  comment='Actor that uploaded the file'),
        sa.Column('status', sa.String(length=20), server_default='Pending', nullable=False,
                  comment='Pending, Committed or Cancelled'),
        sa.Column('original_filename', sa.String(length=255), nullable=False,
                  comment='Caller-supplied filename (display only)'),
        sa.Column('stored_filename', sa.String(length=255), nullable=False,
                  comment='Opaque generated name of the stored upload'),
        sa.Column('total_rows', sa.Integer(), server_default='0', nullable=False),
        sa.Column('valid_rows', sa.Integer(), server_default='0', nullable=False),
        sa.Column('invalid_rows', sa.Integer(), server_default='0', nullable=False),
        sa.Column('new_licenses', sa.Integer(), server_default='0', nullable=False),
        sa.Column('updated_licenses', sa.Integer(), server_default='0', nullable=False),
        sa.Column('new_categories', sa.Integer(), server_default='0', nullable=False),
        sa.Column('completed_at', sa.DateTime(), nullable=True, comment='Commit or cancel timestamp'),
        sa.CheckConstraint("status IN ('Pending', 'Committed', 'Cancelled')",
                           name='import_sessions_status_check'),
        sa.PrimaryKeyConstraint('id'),
        comment='Tracks CSV license import sessions'
    )
    op.create_index('idx_import_sessions_status', 'import_sessions', ['status'])
    op.create_index('idx_import_sessions_created_at', 'import_sessions', ['created_at'])

    # Create import_rows table
    op.create_table(
        'import_rows',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('session_id', sa.Uuid(), nullable=False),
        sa.Column('row_number', sa.Integer(), nullable=False, comment='1-based data row number in file order'),
        sa.Column('license_id_raw', sa.String(length=50), nullable=True,
                  comment='LicenseId as written in the file'),
        sa.Column('license_id', sa.Uuid(), nullable=True,
                  comment='LicenseId parsed from the file'),
        sa.Column('resolved_license_id', sa.Uuid(), nullable=True,
                  comment='License the row creates or updates, set by classification'),
        sa.Column('license_name', sa.String(length=200), server_default='', nullable=False),
        sa.Column('category_name', sa.String(length=200), server_default='', nullable=False),
        sa.Column('vendor', sa.String(length=200), nullable=True),
        sa.Column('seats_purchased', sa.Integer(), nullable=True),
        sa.Column('seats_assigned', sa.Integer(), nullable=True),
        sa.Column('expires_on', sa.Date(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('is_valid', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('action', sa.String(length=20), server_default='Invalid', nullable=False),
        sa.Column('error_message', sa.String(length=1000), nullable=True,
                  comment='Space-joined validation messages'),
        sa.CheckConstraint("action IN ('New', 'Update', 'Invalid')", name='import_rows_action_check'),
        sa.ForeignKeyConstraint(['session_id'], ['import_sessions.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('session_id', 'row_number', name='uq_import_rows_session_row'),
        comment='Candidate rows of an import session'
    )
    op.create_index('idx_import_rows_session_id', 'import_rows', ['session_id'])


def downgrade() -> None:
    op.drop_index('idx_import_rows_session_id', table_name='import_rows')
    op.drop_table('import_rows')

    op.drop_index('idx_import_sessions_created_at', table_name='import_sessions')
    op.drop_index('idx_import_sessions_status', table_name='import_sessions')
    op.drop_table('import_sessions')

    op.drop_index('idx_audit_log_entity', table_name='audit_log')
    op.drop_index('idx_audit_log_occurred_at', table_name='audit_log')
    op.drop_table('audit_log')

    op.drop_index('idx_licenses_expires_on', table_name='licenses')
    op.drop_index('idx_licenses_category_id', table_name='licenses')
    op.drop_index('idx_licenses_name', table_name='licenses')
    op.drop_table('licenses')

    op.drop_index('idx_categories_name', table_name='categories')
    op.drop_table('categories')
