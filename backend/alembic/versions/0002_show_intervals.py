"""add show_intervals

Revision ID: 0002_show_intervals
Revises: 0001_initial_schema
Create Date: 2024-09-20

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = '0002_show_intervals'
down_revision: Union[str, Sequence[str], None] = '0001_initial_schema'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'show_intervals',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('show_id', sa.Integer(), nullable=False),
        sa.Column('start_minutes', sa.Integer(), nullable=False),
        sa.Column('duration_minutes', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['show_id'], ['shows.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_show_intervals_show_id'), 'show_intervals', ['show_id'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_show_intervals_show_id'), table_name='show_intervals')
    op.drop_table('show_intervals')
