"""근무일 관련 Pydantic 요청/응답 스키마 정의.

Workday Pydantic request/response schema definitions.
The wire format is camelCase (``userId``, ``totalPauseMinutes`` ...); Python
code uses the snake_case field names.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from workday_api.models.workday import WorkdayEventType, WorkdayStatus
from workday_api.services.workday_projection import WorkdayProjection


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class WorkdayEventResponse(_CamelModel):
    """감사 이벤트 응답 — Audit event."""

    type: WorkdayEventType
    at: datetime  # UTC aware


class WorkdayResponse(_CamelModel):
    """근무일 응답 스키마.

    Workday projection returned from the API.

    Attributes:
        user_id: 사용자 식별자 (User identifier)
        date_key: 날짜 키 YYYY-MM-DD (Organizational day key)
        status: 현재 상태 (Current status)
        started_at: 최초 출근 시각 (First clock-in)
        ended_at: 마지막 퇴근 시각 (Most recent clock-out)
        pause_started_at: 열린 휴식 구간 시작 (Open pause start)
        lunch_started_at: 열린 점심 구간 시작 (Open lunch start)
        total_pause_minutes: 누적 휴식 시간(분) (Closed pause minutes)
        total_lunch_minutes: 누적 점심 시간(분) (Closed lunch minutes)
        events: 감사 로그 (Audit log)
    """

    user_id: str
    date_key: str
    status: WorkdayStatus
    started_at: datetime | None = None
    ended_at: datetime | None = None
    pause_started_at: datetime | None = None
    lunch_started_at: datetime | None = None
    total_pause_minutes: int = 0
    total_lunch_minutes: int = 0
    events: list[WorkdayEventResponse] = Field(default_factory=list)

    @classmethod
    def from_projection(
        cls,
        user_id: str,
        date_key: str,
        projection: WorkdayProjection,
    ) -> "WorkdayResponse":
        return cls(
            user_id=user_id,
            date_key=date_key,
            status=projection.status,
            started_at=projection.started_at,
            ended_at=projection.ended_at,
            pause_started_at=projection.pause_started_at,
            lunch_started_at=projection.lunch_started_at,
            total_pause_minutes=projection.total_pause_minutes,
            total_lunch_minutes=projection.total_lunch_minutes,
            events=[WorkdayEventResponse(type=e.type, at=e.at) for e in projection.events],
        )


class WorkdayStatusesRequest(_CamelModel):
    """여러 사용자 상태 조회 요청 — Bulk status request body ``{"userIds": [...]}``."""

    user_ids: list[str] = Field(default_factory=list)
