"""add sent_emails tracking

Revision ID: 0003_sent_emails
Revises: 0002_show_intervals
Create Date: 2024-10-07

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = '0003_sent_emails'
down_revision: Union[str, Sequence[str], None] = '0002_show_intervals'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'sent_emails',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('to_email', sa.String(length=320), nullable=False),
        sa.Column('to_participant_id', sa.Integer(), nullable=True),
        sa.Column('from_email', sa.String(length=320), nullable=False),
        sa.Column('subject', sa.String(length=300), nullable=False),
        sa.Column('email_type', sa.String(length=50), nullable=False),
        sa.Column('html_content', sa.Text(), nullable=False),
        sa.Column('provider_email_id', sa.String(length=100), nullable=True),
        sa.Column('delivery_status', sa.String(length=20), nullable=False, server_default='sent'),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['to_participant_id'], ['participants.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_sent_emails_to_participant_id'), 'sent_emails', ['to_participant_id'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_sent_emails_to_participant_id'), table_name='sent_emails')
    op.drop_table('sent_emails')
