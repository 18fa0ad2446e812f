"""initial schema

Revision ID: 3f1c0e9a7b21
Revises: 
Create Date: 2026-10-19 09:12:41.204118

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c0e9a7b21'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('username', sa.String(), nullable=False, unique=True),
        sa.Column('email', sa.String(), nullable=False, unique=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('role', sa.String(length=7), nullable=False, server_default='member'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_users_email', 'users', ['email'])
    op.create_index('ix_users_role', 'users', ['role'])

    op.create_table(
        'user_managers',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('manager_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('user_id', 'manager_id', name='uq_user_manager'),
        sa.CheckConstraint('user_id != manager_id', name='ck_not_own_manager'),
    )
    op.create_index('ix_user_managers_user_id', 'user_managers', ['user_id'])
    op.create_index('ix_user_managers_manager_id', 'user_managers', ['manager_id'])

    op.create_table(
        'teams',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('month', sa.Integer(), nullable=False),
        sa.Column('day', sa.Integer(), nullable=True),
        sa.Column('hour', sa.Integer(), nullable=True),
        sa.Column('period_key', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('period_key', 'name', name='uq_team_period_name'),
    )
    op.create_index('ix_teams_period_key', 'teams', ['period_key'])

    op.create_table(
        'team_members',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('team_id', sa.Integer(), sa.ForeignKey('teams.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('period_key', sa.String(), nullable=False),
        sa.Column('joined_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('team_id', 'user_id', name='uq_team_member'),
        sa.UniqueConstraint('period_key', 'user_id', name='uq_member_period'),
    )
    op.create_index('ix_team_members_team_id', 'team_members', ['team_id'])
    op.create_index('ix_team_members_user_id', 'team_members', ['user_id'])

    op.create_table(
        'questions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('month', sa.Integer(), nullable=False),
        sa.Column('day', sa.Integer(), nullable=True),
        sa.Column('hour', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        'answers',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('rater_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('question_id', sa.Integer(), sa.ForeignKey('questions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('team_id', sa.Integer(), sa.ForeignKey('teams.id', ondelete='CASCADE'), nullable=False),
        sa.Column('subject_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=True),
        sa.Column('source', sa.String(length=7), nullable=True),
        sa.Column('score', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('rater_id', 'question_id', 'subject_id', 'source', name='uq_rating_tuple'),
        sa.CheckConstraint('score >= 1 AND score <= 5', name='ck_rating_score_range'),
    )
    op.create_index('ix_answers_rater_id', 'answers', ['rater_id'])
    op.create_index('ix_answers_question_id', 'answers', ['question_id'])
    op.create_index('ix_answers_team_id', 'answers', ['team_id'])
    op.create_index('ix_answers_subject_id', 'answers', ['subject_id'])
    op.create_index('ix_answers_source', 'answers', ['source'])

    op.create_table(
        'results_cache',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('period_key', sa.String(), nullable=False),
        sa.Column('team_id', sa.Integer(), sa.ForeignKey('teams.id', ondelete='CASCADE'), nullable=False),
        sa.Column('total_score', sa.Float(), nullable=False, server_default='0'),
        sa.Column('answer_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('question_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('calculated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('period_key', 'team_id', name='uq_snapshot_period_team'),
    )
    op.create_index('ix_results_cache_period_key', 'results_cache', ['period_key'])


def downgrade() -> None:
    op.drop_table('results_cache')
    op.drop_table('answers')
    op.drop_table('questions')
    op.drop_table('team_members')
    op.drop_table('teams')
    op.drop_table('user_managers')
    op.drop_table('users')
