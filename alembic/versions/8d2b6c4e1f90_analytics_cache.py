"""analytics cache

Revision ID: 8d2b6c4e1f90
Revises: 3f1c0e9a7b21
Create Date: 2026-10-19 14:03:27.518402

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '8d2b6c4e1f90'
down_revision: Union[str, None] = '3f1c0e9a7b21'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'analytics_cache',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('cache_key', sa.String(), nullable=False),
        sa.Column('cache_type', sa.String(), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('month', sa.Integer(), nullable=False),
        sa.Column('data', sa.JSON(), nullable=False),
        sa.Column('calculated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_analytics_cache_cache_key', 'analytics_cache', ['cache_key'], unique=True)


def downgrade() -> None:
    op.drop_index('ix_analytics_cache_cache_key', table_name='analytics_cache')
    op.drop_table('analytics_cache')
