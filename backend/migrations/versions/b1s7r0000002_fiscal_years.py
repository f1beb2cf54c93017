"""fiscal years

Revision ID: b1s7r0000002
Revises: b1s7r0000001
Create Date: 2026-10-18 00:00:00.000000

Adds fiscal_years and fiscal_year_activities.
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'b1s7r0000002'
down_revision = 'b1s7r0000001'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'fiscal_years',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='open'),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('temporary_open', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('temporary_open_by_user_id', sa.Integer(), nullable=True),
        sa.Column('temporary_open_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('temporary_open_reason', sa.Text(), nullable=True),
        sa.Column('closed_by_user_id', sa.Integer(), nullable=True),
        sa.Column('closed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('closing_entry_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['temporary_open_by_user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['closed_by_user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['closing_entry_id'], ['journal_entries.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('year', name='uq_fiscal_years_year'),
        sa.CheckConstraint('start_date <= end_date', name='ck_fiscal_years_range'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'fiscal_year_activities',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('fiscal_year_id', sa.Integer(), nullable=False),
        sa.Column('action', sa.String(length=32), nullable=False),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['fiscal_year_id'], ['fiscal_years.id'], ),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('fiscal_year_activities', schema=None) as batch_op:
        batch_op.create_index('ix_fiscal_year_activities_year', ['fiscal_year_id'], unique=False)


def downgrade():
    op.drop_table('fiscal_year_activities')
    op.drop_table('fiscal_years')
