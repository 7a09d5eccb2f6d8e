"""근무일 관련 SQLAlchemy ORM 모델 및 열거형 정의.

Workday SQLAlchemy ORM model and enum definitions.

Tables:
    - workdays: 사용자별 일일 근무 기록 (One workday record per user per day)
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, CheckConstraint, Index, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from workday_api.database import Base, UTCDateTime


# 사용자 식별자 최대 길이 — user_id column width
USER_ID_MAX_LENGTH = 64


class WorkdayStatus(str, enum.Enum):
    """근무 상태 — Workday status.

    NOT_STARTED is virtual: it is what a day without a record reports.
    """

    NOT_STARTED = "NOT_STARTED"
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    LUNCH = "LUNCH"
    ENDED = "ENDED"


class WorkdayEventType(str, enum.Enum):
    """감사 이벤트 유형 — Audit event types stored in ``workdays.events``."""

    START = "START"
    PAUSE = "PAUSE"
    LUNCH = "LUNCH"
    RESUME = "RESUME"
    END = "END"
    RECONNECT = "RECONNECT"
    RESET = "RESET"


class WorkdayAction(str, enum.Enum):
    """운영자 동작 — Operator actions handled by the transition table."""

    START = "start"
    SET_ACTIVE = "set_active"
    PAUSE = "pause"
    LUNCH = "lunch"
    END = "end"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Workday(Base):
    """일일 근무 기록 모델.

    Daily workday record — one row per user per organizational calendar day.
    ``events`` is the append-only audit log and the source of truth; the
    remaining state columns are a cached projection rewritten from the log on
    every accepted transition.

    Status flow: NOT_STARTED -> ACTIVE <-> PAUSED/LUNCH -> ENDED -> ACTIVE

    Attributes:
        id: 고유 식별자 UUID (Unique identifier)
        user_id: 사용자 식별자 (Opaque id from the identity provider)
        date_key: 근무 날짜 키 YYYY-MM-DD (Organizational day key)
        status: 현재 상태 (Status after the last accepted transition)
        started_at: 최초 출근 시각 (First clock-in, never overwritten)
        ended_at: 마지막 퇴근 시각 (Most recent clock-out)
        pause_started_at: 열린 휴식 구간 시작 (Open pause start)
        lunch_started_at: 열린 점심 구간 시작 (Open lunch start)
        total_pause_minutes: 누적 휴식 시간(분) (Closed pause minutes)
        total_lunch_minutes: 누적 점심 시간(분) (Closed lunch minutes)
        events: 감사 로그 [{type, at}] (Audit log, ISO-8601 instants)
        version: 낙관적 동시성 버전 (Compare-and-set counter)

    Constraints:
        uq_workday_user_date: 동일 사용자+날짜 중복 불가
            (One workday record per user per day)
    """

    __tablename__ = "workdays"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(String(USER_ID_MAX_LENGTH), nullable=False)
    date_key: Mapped[str] = mapped_column(String(10), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=WorkdayStatus.NOT_STARTED.value)
    started_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    ended_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    # 열린 구간 — at most one of these is set
    pause_started_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    lunch_started_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    total_pause_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_lunch_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # 감사 로그 — reassigned (never mutated in place) so the change is detected
    events: Mapped[list[dict]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=list
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "date_key", name="uq_workday_user_date"),
        CheckConstraint(
            "pause_started_at IS NULL OR lunch_started_at IS NULL",
            name="ck_workday_single_open_interval",
        ),
        Index("ix_workdays_date_key", "date_key"),
    )

    __mapper_args__ = {"version_id_col": version}
