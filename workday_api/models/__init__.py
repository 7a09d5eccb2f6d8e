"""SQLAlchemy ORM 모델 패키지 — 모든 도메인 모델의 중앙 임포트 지점.

SQLAlchemy ORM models package — Central import point for all domain models.
Importing from this package ensures all models are registered with the
SQLAlchemy metadata, which is required for Alembic migrations and test
schema creation.

Modules:
    workday: 일일 근무 기록 (Daily workday records, statuses, event types)
"""

from workday_api.models.workday import Workday, WorkdayAction, WorkdayEventType, WorkdayStatus

__all__ = [
    "Workday",
    "WorkdayAction",
    "WorkdayEventType",
    "WorkdayStatus",
]
