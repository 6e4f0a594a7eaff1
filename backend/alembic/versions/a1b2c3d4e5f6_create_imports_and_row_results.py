"""create_imports_and_row_results

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-19 09:12:41.503118

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'a1b2c3d4e5f6'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'imports',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('organization_id', sa.String(64), nullable=False),
        sa.Column('entity_type', sa.String(20), nullable=False),
        sa.Column('file_name', sa.String(255), nullable=False),
        sa.Column('file_url', sa.Text(), nullable=False),
        sa.Column('file_size', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='PENDING'),
        sa.Column('total_rows', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('processed_rows', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('success_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('warning_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('error_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('created_by', sa.String(64), nullable=False),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint("entity_type IN ('CLIENT','TRANSACTION')", name='ck_imports_entity_type'),
        sa.CheckConstraint(
            "status IN ('PENDING','VALIDATING','PROCESSING','COMPLETED','FAILED')",
            name='ck_imports_status',
        ),
        sa.CheckConstraint(
            'total_rows >= 0 AND processed_rows >= 0 AND success_count >= 0 '
            'AND warning_count >= 0 AND error_count >= 0',
            name='ck_imports_counters_non_negative',
        ),
    )
    op.create_index('ix_imports_organization_id', 'imports', ['organization_id'])
    op.create_index('ix_imports_entity_type', 'imports', ['entity_type'])
    op.create_index('ix_imports_status', 'imports', ['status'])
    op.create_index('ix_imports_created_by', 'imports', ['created_by'])
    op.create_index('ix_imports_org_created_at', 'imports', ['organization_id', 'created_at'])

    op.create_table(
        'import_row_results',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('import_id', sa.Uuid(), nullable=False),
        sa.Column('row_number', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='PENDING'),
        sa.Column('raw_data', sa.Text(), nullable=False),
        sa.Column('entity_id', sa.String(64), nullable=True),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('errors', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['import_id'], ['imports.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('import_id', 'row_number', name='uq_import_row_results_import_row'),
        sa.CheckConstraint(
            "status IN ('PENDING','SUCCESS','WARNING','ERROR','SKIPPED')",
            name='ck_import_row_results_status',
        ),
        sa.CheckConstraint('row_number >= 1', name='ck_import_row_results_row_number'),
    )
    op.create_index('ix_import_row_results_import_id', 'import_row_results', ['import_id'])
    op.create_index('ix_import_row_results_status', 'import_row_results', ['status'])
    op.create_index(
        'ix_import_row_results_import_updated_at', 'import_row_results', ['import_id', 'updated_at']
    )


def downgrade() -> None:
    op.drop_index('ix_import_row_results_import_updated_at', table_name='import_row_results')
    op.drop_index('ix_import_row_results_status', table_name='import_row_results')
    op.drop_index('ix_import_row_results_import_id', table_name='import_row_results')
    op.drop_table('import_row_results')
    op.drop_index('ix_imports_org_created_at', table_name='imports')
    op.drop_index('ix_imports_created_by', table_name='imports')
    op.drop_index('ix_imports_status', table_name='imports')
    op.drop_index('ix_imports_entity_type', table_name='imports')
    op.drop_index('ix_imports_organization_id', table_name='imports')
    op.drop_table('imports')
