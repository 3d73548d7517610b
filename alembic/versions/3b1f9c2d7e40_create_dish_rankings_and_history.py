"""create dish_rankings and ranking_history

Revision ID: 3b1f9c2d7e40
Revises: 
Create Date: 2026-10-17 10:02:11.418230

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3b1f9c2d7e40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

TASTE_STATUSES = ('ACCEPTABLE', 'SECOND_CHANCE', 'DISSATISFIED')
CHANGE_TYPES = ('CREATE', 'UPDATE', 'DEMOTION', 'DELETION')


def upgrade() -> None:
    # 랭킹
    op.create_table(
        'dish_rankings',
        sa.Column('ranking_id', sa.String(), primary_key=True),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('restaurant_id', sa.String(), nullable=False),
        sa.Column('dish_type', sa.String(), nullable=False),
        sa.Column('dish_id', sa.String(), nullable=False),
        sa.Column('rank', sa.Integer(), nullable=True),
        sa.Column('taste_status', sa.Enum(*TASTE_STATUSES, name='tastestatus', native_enum=False, length=20), nullable=True),
        sa.Column('notes', sa.Text(), nullable=False),
        sa.Column('photo_urls', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint('rank IS NULL OR (rank >= 1 AND rank <= 5)', name='ck_dish_rankings_rank_range'),
        sa.CheckConstraint('(rank IS NULL) <> (taste_status IS NULL)', name='ck_dish_rankings_rank_xor_status'),
    )
    op.create_index('ix_dish_rankings_dish_id', 'dish_rankings', ['dish_id'])
    op.create_index('idx_dish_rankings_scope', 'dish_rankings', ['user_id', 'restaurant_id', 'dish_type'])
    # 스코프당 1위 하나 (부분 유니크 인덱스)
    op.create_index(
        'uq_dish_rankings_scope_top', 'dish_rankings', ['user_id', 'restaurant_id', 'dish_type'],
        unique=True,
        sqlite_where=sa.text('rank = 1'),
        postgresql_where=sa.text('rank = 1'),
    )

    # 이력 (FK 없음)
    op.create_table(
        'ranking_history',
        sa.Column('history_id', sa.String(), primary_key=True),
        sa.Column('ranking_id', sa.String(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('dish_id', sa.String(), nullable=False),
        sa.Column('restaurant_id', sa.String(), nullable=False),
        sa.Column('dish_type', sa.String(), nullable=False),
        sa.Column('change_type', sa.Enum(*CHANGE_TYPES, name='historychangetype', native_enum=False, length=20), nullable=False),
        sa.Column('previous_rank', sa.Integer(), nullable=True),
        sa.Column('new_rank', sa.Integer(), nullable=True),
        sa.Column('previous_taste_status', sa.Enum(*TASTE_STATUSES, name='tastestatus', native_enum=False, length=20), nullable=True),
        sa.Column('new_taste_status', sa.Enum(*TASTE_STATUSES, name='tastestatus', native_enum=False, length=20), nullable=True),
        sa.Column('notes', sa.Text(), nullable=False),
        sa.Column('photo_urls', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_ranking_history_ranking_id', 'ranking_history', ['ranking_id'])
    op.create_index('ix_ranking_history_user_id', 'ranking_history', ['user_id'])
    op.create_index('ix_ranking_history_dish_id', 'ranking_history', ['dish_id'])


def downgrade() -> None:
    # 역순 삭제
    op.drop_index('ix_ranking_history_dish_id', table_name='ranking_history')
    op.drop_index('ix_ranking_history_user_id', table_name='ranking_history')
    op.drop_index('ix_ranking_history_ranking_id', table_name='ranking_history')
    op.drop_table('ranking_history')
    op.drop_index('uq_dish_rankings_scope_top', table_name='dish_rankings')
    op.drop_index('idx_dish_rankings_scope', table_name='dish_rankings')
    op.drop_index('ix_dish_rankings_dish_id', table_name='dish_rankings')
    op.drop_table('dish_rankings')
