"""initial tables: departments, users, tenders, clashes, activity log

Revision ID: 0001
Revises: 
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001'
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table('common_departments',
        sa.Column('id', sa.String(20), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False, unique=True),
        sa.Column('code', sa.String(20), nullable=False, unique=True),
        sa.Column('is_deleted', sa.Boolean(), nullable=False, server_default=sa.false()),
    )

    op.create_table('users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('role', sa.String(16), nullable=False),
        sa.Column('department_id', sa.String(20),
                  sa.ForeignKey('common_departments.id', ondelete='SET NULL'), nullable=True),
        sa.Column('is_active_flag', sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_role', 'users', ['role'])

    op.create_table('tenders',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('tender_id', sa.String(32), nullable=False),
        sa.Column('department', sa.String(255), nullable=False),
        sa.Column('classification', sa.String(255), nullable=True),
        sa.Column('sanction_date', sa.Date(), nullable=True),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('completion_date', sa.Date(), nullable=False),
        sa.Column('updated_start_date', sa.Date(), nullable=True),
        sa.Column('updated_end_date', sa.Date(), nullable=True),
        sa.Column('sanction_amount', sa.Numeric(15, 2), nullable=True),
        sa.Column('total_duration_days', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(50), nullable=True),
        sa.Column('locality', sa.String(255), nullable=False),
        sa.Column('local_area', sa.String(255), nullable=True),
        sa.Column('zone', sa.String(255), nullable=True),
        sa.Column('city', sa.String(255), nullable=True),
        sa.Column('pincode', sa.String(10), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_tenders_tender_id', 'tenders', ['tender_id'], unique=True)
    op.create_index('ix_tenders_department', 'tenders', ['department'])
    op.create_index('ix_tenders_pincode', 'tenders', ['pincode'])
    op.create_index('ix_tenders_pincode_locality', 'tenders', ['pincode', 'locality'])

    op.create_table('clashes',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('clash_id', sa.String(32), nullable=False),
        sa.Column('locality', sa.String(255), nullable=False),
        sa.Column('is_resolved', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('resolved_at', sa.DateTime(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
    )
    op.create_index('ix_clashes_clash_id', 'clashes', ['clash_id'], unique=True)
    op.create_index('ix_clashes_locality', 'clashes', ['locality'])
    op.create_index('ix_clashes_locality_resolved', 'clashes', ['locality', 'is_resolved'])

    op.create_table('clash_departments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('clash_pk', sa.Integer(), sa.ForeignKey('clashes.id', ondelete='CASCADE'), nullable=False),
        sa.Column('department_id', sa.String(20),
                  sa.ForeignKey('common_departments.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('signed_off', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('signed_off_at', sa.DateTime(), nullable=True),
        sa.Column('proposed_start', sa.Date(), nullable=True),
        sa.Column('proposed_end', sa.Date(), nullable=True),
        sa.UniqueConstraint('clash_pk', 'department_id', name='uq_clash_department'),
    )
    op.create_index('ix_clash_departments_department_id', 'clash_departments', ['department_id'])

    op.create_table('clash_tenders',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('clash_pk', sa.Integer(), sa.ForeignKey('clashes.id', ondelete='CASCADE'), nullable=False),
        sa.Column('tender_id', sa.String(32), nullable=False),
        sa.Column('proposed_start', sa.Date(), nullable=True),
        sa.Column('proposed_end', sa.Date(), nullable=True),
        sa.UniqueConstraint('clash_pk', 'tender_id', name='uq_clash_tender'),
    )
    op.create_index('ix_clash_tenders_tender_id', 'clash_tenders', ['tender_id'])

    op.create_table('activity_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('activity_type', sa.String(32), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('department_id', sa.String(20), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_activity_logs_activity_type', 'activity_logs', ['activity_type'])

def downgrade():
    op.drop_index('ix_activity_logs_activity_type', table_name='activity_logs')
    op.drop_table('activity_logs')
    op.drop_index('ix_clash_tenders_tender_id', table_name='clash_tenders')
    op.drop_table('clash_tenders')
    op.drop_index('ix_clash_departments_department_id', table_name='clash_departments')
    op.drop_table('clash_departments')
    op.drop_index('ix_clashes_locality_resolved', table_name='clashes')
    op.drop_index('ix_clashes_locality', table_name='clashes')
    op.drop_index('ix_clashes_clash_id', table_name='clashes')
    op.drop_table('clashes')
    op.drop_index('ix_tenders_pincode_locality', table_name='tenders')
    op.drop_index('ix_tenders_pincode', table_name='tenders')
    op.drop_index('ix_tenders_department', table_name='tenders')
    op.drop_index('ix_tenders_tender_id', table_name='tenders')
    op.drop_table('tenders')
    op.drop_index('ix_users_role', table_name='users')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
    op.drop_table('common_departments')
