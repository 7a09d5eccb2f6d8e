"""근무일 이벤트 재생(프로젝션) 모듈.

Workday projection — replays the audit-event log into the derived view.

The event log is the source of truth. Everything the API shows (status,
first start, last end, the open interval and the pause/lunch accumulators)
is a pure function of it, computed here. The ORM columns on ``Workday`` are
a cache of this result.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Union

from workday_api.models.workday import Workday, WorkdayEventType, WorkdayStatus


@dataclass(frozen=True)
class WorkdayEvent:
    """감사 이벤트 — One audit log entry."""

    type: WorkdayEventType
    at: datetime

    def to_dict(self) -> dict:
        return {"type": self.type.value, "at": self.at.astimezone(timezone.utc).isoformat()}

    @classmethod
    def from_dict(cls, raw: dict) -> "WorkdayEvent":
        at = raw["at"]
        if isinstance(at, str):
            at = datetime.fromisoformat(at)
        if at.tzinfo is None:
            at = at.replace(tzinfo=timezone.utc)
        return cls(type=WorkdayEventType(raw["type"]), at=at.astimezone(timezone.utc))


@dataclass(frozen=True)
class PauseInterval:
    started_at: datetime


@dataclass(frozen=True)
class LunchInterval:
    started_at: datetime


# 열린 구간 — None | PauseInterval | LunchInterval
OpenInterval = Union[PauseInterval, LunchInterval, None]


@dataclass
class WorkdayProjection:
    """재생 결과 — Derived workday view."""

    status: WorkdayStatus = WorkdayStatus.NOT_STARTED
    started_at: datetime | None = None
    ended_at: datetime | None = None
    open_interval: OpenInterval = None
    total_pause_minutes: int = 0
    total_lunch_minutes: int = 0
    events: list[WorkdayEvent] = field(default_factory=list)

    @property
    def pause_started_at(self) -> datetime | None:
        if isinstance(self.open_interval, PauseInterval):
            return self.open_interval.started_at
        return None

    @property
    def lunch_started_at(self) -> datetime | None:
        if isinstance(self.open_interval, LunchInterval):
            return self.open_interval.started_at
        return None

    @property
    def last_event_at(self) -> datetime | None:
        return self.events[-1].at if self.events else None

    def close_open_interval(self, at: datetime) -> None:
        """열린 구간을 닫고 경과 분을 누적합니다 — Close and credit the open interval."""
        interval = self.open_interval
        if interval is None:
            return
        minutes = elapsed_minutes(interval.started_at, at)
        if isinstance(interval, PauseInterval):
            self.total_pause_minutes += minutes
        else:
            self.total_lunch_minutes += minutes
        self.open_interval = None


# 마지막 이벤트 유형 → 상태 (Terminal event type -> status)
STATUS_AFTER: dict[WorkdayEventType, WorkdayStatus] = {
    WorkdayEventType.START: WorkdayStatus.ACTIVE,
    WorkdayEventType.RESUME: WorkdayStatus.ACTIVE,
    WorkdayEventType.RESET: WorkdayStatus.ACTIVE,
    WorkdayEventType.RECONNECT: WorkdayStatus.ACTIVE,
    WorkdayEventType.PAUSE: WorkdayStatus.PAUSED,
    WorkdayEventType.LUNCH: WorkdayStatus.LUNCH,
    WorkdayEventType.END: WorkdayStatus.ENDED,
}


def elapsed_minutes(start: datetime, end: datetime) -> int:
    """두 시각 사이의 경과 분 (내림, 음수는 0).

    Whole minutes between two instants, floored. A negative span (clock skew)
    counts as zero.
    """
    seconds = (end - start).total_seconds()
    if seconds <= 0:
        return 0
    return int(seconds // 60)


def apply_event(projection: WorkdayProjection, event: WorkdayEvent) -> None:
    """단일 이벤트를 프로젝션에 적용합니다 — Fold one event into the projection."""
    at = event.at
    kind = event.type

    if kind is WorkdayEventType.START:
        if projection.started_at is None:
            projection.started_at = at
        projection.open_interval = None
    elif kind is WorkdayEventType.PAUSE:
        if not isinstance(projection.open_interval, PauseInterval):
            projection.close_open_interval(at)
            projection.open_interval = PauseInterval(at)
    elif kind is WorkdayEventType.LUNCH:
        if not isinstance(projection.open_interval, LunchInterval):
            projection.close_open_interval(at)
            projection.open_interval = LunchInterval(at)
    elif kind is WorkdayEventType.RESUME:
        projection.close_open_interval(at)
    elif kind is WorkdayEventType.RESET:
        projection.close_open_interval(at)
        if projection.started_at is None:
            projection.started_at = at
    elif kind is WorkdayEventType.RECONNECT:
        if projection.started_at is None:
            projection.started_at = at
    elif kind is WorkdayEventType.END:
        projection.ended_at = at
        projection.close_open_interval(at)

    projection.status = STATUS_AFTER[kind]
    projection.events.append(event)


def replay(events: Iterable[WorkdayEvent | dict]) -> WorkdayProjection:
    """이벤트 로그를 처음부터 재생합니다.

    Replay an event log, in stored order, from the empty state.

    Args:
        events: 저장 순서의 이벤트 (Events as ``WorkdayEvent`` or stored dicts)

    Returns:
        WorkdayProjection: 파생 상태 (Derived projection)
    """
    projection = WorkdayProjection()
    for raw in events:
        event = raw if isinstance(raw, WorkdayEvent) else WorkdayEvent.from_dict(raw)
        apply_event(projection, event)
    return projection


def project_record(record: Workday | None) -> WorkdayProjection:
    """레코드의 이벤트 로그를 재생합니다. 레코드가 없으면 NOT_STARTED."""
    if record is None:
        return WorkdayProjection()
    return replay(record.events or [])


def cached_fields(projection: WorkdayProjection) -> dict:
    """ORM 캐시 컬럼 값 — Column values that cache a projection."""
    return {
        "status": projection.status.value,
        "started_at": projection.started_at,
        "ended_at": projection.ended_at,
        "pause_started_at": projection.pause_started_at,
        "lunch_started_at": projection.lunch_started_at,
        "total_pause_minutes": projection.total_pause_minutes,
        "total_lunch_minutes": projection.total_lunch_minutes,
    }


def record_drift(record: Workday, projection: WorkdayProjection) -> list[str]:
    """저장된 캐시 컬럼과 재생 결과가 다른 필드 목록을 반환합니다.

    Return the cached columns whose stored value disagrees with the replay.
    An empty list means storage and projection agree.
    """
    return [
        name for name, expected in cached_fields(projection).items()
        if getattr(record, name) != expected
    ]
