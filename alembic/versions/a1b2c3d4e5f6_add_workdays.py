"""add_workdays

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-19 09:00:00.000000

근무일 테이블 생성: workdays (사용자별 일일 근무 상태 + 감사 이벤트).
Add the workdays table: one row per user per organizational day.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID


# revision identifiers, used by Alembic.
revision: str = 'a1b2c3d4e5f6'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # workdays — 근무 기록 (one record per user per day key)
    op.create_table(
        'workdays',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('date_key', sa.String(10), nullable=False),
        sa.Column('status', sa.String(20), server_default='NOT_STARTED', nullable=False),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('ended_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('pause_started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('lunch_started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('total_pause_minutes', sa.Integer(), server_default='0', nullable=False),
        sa.Column('total_lunch_minutes', sa.Integer(), server_default='0', nullable=False),
        sa.Column('events', JSONB(), server_default=sa.text("'[]'::jsonb"), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        # 열린 구간은 최대 하나 — at most one open interval
        sa.CheckConstraint(
            'pause_started_at IS NULL OR lunch_started_at IS NULL',
            name='ck_workday_single_open_interval',
        ),
    )

    # 유니크 제약 — Unique constraint: 동일 사용자+날짜 중복 방지
    # Prevent duplicate workday for same user on same day
    op.create_unique_constraint(
        'uq_workday_user_date',
        'workdays',
        ['user_id', 'date_key'],
    )

    # 날짜별 일괄 조회 인덱스 — Bulk status lookups filter by day key
    op.create_index('ix_workdays_date_key', 'workdays', ['date_key'])


def downgrade() -> None:
    op.drop_index('ix_workdays_date_key', table_name='workdays')
    op.drop_constraint('uq_workday_user_date', 'workdays', type_='unique')
    op.drop_table('workdays')
