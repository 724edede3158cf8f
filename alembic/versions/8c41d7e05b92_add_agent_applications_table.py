"""Add agent_applications table

Revision ID: 8c41d7e05b92
Revises: 3b7e1c9d2a40
Create Date: 2026-10-19 15:40:27.502913

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '8c41d7e05b92'
down_revision: Union[str, Sequence[str], None] = '3b7e1c9d2a40'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('agent_applications',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('full_name', sa.String(), nullable=False),
    sa.Column('email', sa.String(), nullable=False),
    sa.Column('phone', sa.String(), nullable=False),
    sa.Column('city', sa.String(), nullable=False),
    sa.Column('experience', sa.Text(), nullable=True),
    sa.Column('referral_code_used', sa.String(), nullable=True),
    sa.Column('parent_agent_id', sa.UUID(), nullable=True),
    sa.Column('agent_id', sa.UUID(), nullable=True),
    sa.Column('status', sa.Enum('PENDING', 'APPROVED', 'REJECTED', name='agentapplicationstatus'), nullable=False),
    sa.Column('rejection_reason', sa.Text(), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
    sa.ForeignKeyConstraint(['parent_agent_id'], ['agents.id'], ),
    sa.ForeignKeyConstraint(['agent_id'], ['agents.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_agent_applications_email'), 'agent_applications', ['email'], unique=False)
    op.create_index(op.f('ix_agent_applications_phone'), 'agent_applications', ['phone'], unique=False)
    op.create_index(op.f('ix_agent_applications_status'), 'agent_applications', ['status'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index(op.f('ix_agent_applications_status'), table_name='agent_applications')
    op.drop_index(op.f('ix_agent_applications_phone'), table_name='agent_applications')
    op.drop_index(op.f('ix_agent_applications_email'), table_name='agent_applications')
    op.drop_table('agent_applications')
    sa.Enum(name='agentapplicationstatus').drop(op.get_bind(), checkfirst=True)
