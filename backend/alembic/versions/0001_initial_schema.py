"""initial schema: shows, show_dates, participants, shifts

Revision ID: 0001_initial_schema
Revises:
Create Date: 2024-09-02

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = '0001_initial_schema'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'shows',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name', name='uq_shows_name'),
    )

    op.create_table(
        'show_dates',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('show_id', sa.Integer(), nullable=False),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['show_id'], ['shows.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('show_id', 'start_time', name='uq_show_dates_show_start'),
        sa.CheckConstraint('end_time > start_time', name='ck_show_dates_end_after_start'),
    )
    op.create_index(op.f('ix_show_dates_show_id'), 'show_dates', ['show_id'], unique=False)
    op.create_index(op.f('ix_show_dates_start_time'), 'show_dates', ['start_time'], unique=False)

    op.create_table(
        'participants',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('email', sa.String(length=320), nullable=False),
        sa.Column('phone', sa.String(length=50), nullable=True),
        sa.Column('approved', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_participants_email'), 'participants', ['email'], unique=True)

    op.create_table(
        'shifts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('show_date_id', sa.Integer(), nullable=False),
        sa.Column('role', sa.String(length=100), nullable=False),
        sa.Column('arrive_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('depart_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('participant_id', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['show_date_id'], ['show_dates.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['participant_id'], ['participants.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('depart_time > arrive_time', name='ck_shifts_depart_after_arrive'),
    )
    op.create_index(op.f('ix_shifts_show_date_id'), 'shifts', ['show_date_id'], unique=False)
    op.create_index(op.f('ix_shifts_participant_id'), 'shifts', ['participant_id'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_shifts_participant_id'), table_name='shifts')
    op.drop_index(op.f('ix_shifts_show_date_id'), table_name='shifts')
    op.drop_table('shifts')
    op.drop_index(op.f('ix_participants_email'), table_name='participants')
    op.drop_table('participants')
    op.drop_index(op.f('ix_show_dates_start_time'), table_name='show_dates')
    op.drop_index(op.f('ix_show_dates_show_id'), table_name='show_dates')
    op.drop_table('show_dates')
    op.drop_table('shows')
