"""근무일 서비스 — 근무 상태 전이 비즈니스 로직.

Workday Service — Business logic for the daily clock-in/out state machine.

Each action loads today's record (day key in the organizational zone),
checks the transition table, appends one audit event, rewrites the cached
projection columns and flushes, all inside a savepoint. Writes are
compare-and-set on ``workdays.version``; a lost race or a lost creation race
is retried against the fresh row, so a duplicate tap degrades into an
idempotent no-op instead of a second event.

Transitions:
    start:      NOT_STARTED -> ACTIVE (START) ; ENDED -> ACTIVE (RECONNECT)
    set_active: PAUSED/LUNCH -> ACTIVE (RESUME) ; ENDED -> ACTIVE (RECONNECT)
    pause:      ACTIVE/LUNCH -> PAUSED
    lunch:      ACTIVE/PAUSED -> LUNCH
    end:        ACTIVE/PAUSED/LUNCH -> ENDED
    reset:      any -> ACTIVE, outside the table
                (START from NOT_STARTED, RECONNECT from ENDED, RESET otherwise)
"""

import logging
from datetime import datetime
from typing import Callable, Iterable

from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from workday_api.config import settings
from workday_api.models.workday import (
    USER_ID_MAX_LENGTH,
    Workday,
    WorkdayAction,
    WorkdayEventType,
    WorkdayStatus,
)
from workday_api.repositories.workday_repository import workday_repository
from workday_api.schemas.workday import WorkdayResponse
from workday_api.services.workday_projection import (
    WorkdayEvent,
    WorkdayProjection,
    apply_event,
    cached_fields,
    project_record,
    record_drift,
)
from workday_api.utils.day_key import date_key_for, utc_now
from workday_api.utils.exceptions import (
    InvalidTransitionError,
    InvalidUserIdError,
    MissingUserError,
    StorageUnavailableError,
    WorkdayConflictError,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
Planner = Callable[[WorkdayStatus], WorkdayEventType | None]

S = WorkdayStatus
A = WorkdayAction
E = WorkdayEventType

# 전이 테이블 — (현재 상태, 동작) -> 기록할 이벤트, None이면 멱등 (no event)
# Pairs missing from the table are invalid transitions.
TRANSITIONS: dict[tuple[WorkdayStatus, WorkdayAction], WorkdayEventType | None] = {
    (S.NOT_STARTED, A.START): E.START,
    (S.ENDED, A.START): E.RECONNECT,
    (S.ACTIVE, A.START): None,
    (S.PAUSED, A.START): None,
    (S.LUNCH, A.START): None,

    (S.PAUSED, A.SET_ACTIVE): E.RESUME,
    (S.LUNCH, A.SET_ACTIVE): E.RESUME,
    (S.ENDED, A.SET_ACTIVE): E.RECONNECT,
    (S.ACTIVE, A.SET_ACTIVE): None,

    (S.ACTIVE, A.PAUSE): E.PAUSE,
    (S.LUNCH, A.PAUSE): E.PAUSE,
    (S.PAUSED, A.PAUSE): None,

    (S.ACTIVE, A.LUNCH): E.LUNCH,
    (S.PAUSED, A.LUNCH): E.LUNCH,
    (S.LUNCH, A.LUNCH): None,

    (S.ACTIVE, A.END): E.END,
    (S.PAUSED, A.END): E.END,
    (S.LUNCH, A.END): E.END,
    (S.ENDED, A.END): None,
}

# 거부 사유 메시지 — Rejection messages shown to the client
_REJECTIONS: dict[tuple[WorkdayStatus, WorkdayAction], str] = {
    (S.NOT_STARTED, A.SET_ACTIVE): "Cannot resume before starting the workday",
    (S.NOT_STARTED, A.PAUSE): "Cannot pause before starting the workday",
    (S.ENDED, A.PAUSE): "Workday has ended; reconnect before pausing",
    (S.NOT_STARTED, A.LUNCH): "Cannot take lunch before starting the workday",
    (S.ENDED, A.LUNCH): "Workday has ended; reconnect before taking lunch",
    (S.NOT_STARTED, A.END): "Cannot end a workday that has not started",
}


def plan_transition(status: WorkdayStatus, action: WorkdayAction) -> WorkdayEventType | None:
    """전이 테이블에서 기록할 이벤트를 결정합니다.

    Look up the event an action records from a status.

    Args:
        status: 현재 상태 (Current status)
        action: 요청 동작 (Requested action)

    Returns:
        WorkdayEventType | None: 기록할 이벤트, 멱등이면 None
                                 (Event to append, or None for an idempotent repeat)

    Raises:
        InvalidTransitionError: 허용되지 않는 전이 (Transition not allowed)
    """
    key = (status, action)
    if key not in TRANSITIONS:
        raise InvalidTransitionError(action.value, status.value, _REJECTIONS.get(key))
    return TRANSITIONS[key]


def plan_reset(status: WorkdayStatus) -> WorkdayEventType:
    """복구 동작의 이벤트를 결정합니다. 항상 성공합니다.

    Pick the event a reset records. A first arrival stays START and a return
    after ENDED stays RECONNECT; every other status records RESET.
    """
    if status is S.NOT_STARTED:
        return E.START
    if status is S.ENDED:
        return E.RECONNECT
    return E.RESET


def _require_user(user_id: str | None) -> str:
    if user_id is None or not str(user_id).strip():
        raise MissingUserError()
    user_id = str(user_id).strip()
    if len(user_id) > USER_ID_MAX_LENGTH:
        raise InvalidUserIdError(f"userId must be at most {USER_ID_MAX_LENGTH} characters")
    return user_id


def _normalize_user_ids(user_ids: Iterable[str] | None) -> list[str]:
    """공백 제거, 빈 값 제외, 순서 유지 중복 제거."""
    if not user_ids:
        return []
    cleaned = (str(x).strip() for x in user_ids if x is not None)
    return list(dict.fromkeys(x for x in cleaned if x))


class WorkdayService:
    """근무일 서비스.

    Workday state machine service.

    Args:
        clock: 현재 시각 함수 (Returns the current aware instant; injectable for tests)
        max_retries: 충돌 시 재시도 횟수 (Retries after a lost compare-and-set;
                     the first attempt is not counted)
    """

    def __init__(self, clock: Clock = utc_now, max_retries: int | None = None) -> None:
        self.clock: Clock = clock
        retries = settings.WORKDAY_WRITE_RETRIES if max_retries is None else max_retries
        self.max_retries: int = max(retries, 0)

    # === 조회 (Reads) ===

    async def get_today(self, db: AsyncSession, user_id: str) -> WorkdayResponse:
        """오늘 근무 기록을 조회합니다. 없으면 저장하지 않고 NOT_STARTED를 반환합니다.

        Get today's workday for a user. A missing record yields a transient
        NOT_STARTED projection; nothing is persisted.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            user_id: 사용자 식별자 (User identifier)

        Returns:
            WorkdayResponse: 오늘의 근무 프로젝션 (Today's projection)

        Raises:
            MissingUserError: 사용자 식별자 누락 (Blank user id)
            InvalidUserIdError: 사용자 식별자 길이 초과 (User id too long)
            StorageUnavailableError: 저장소 접근 불가 (Store unreachable)
        """
        user_id = _require_user(user_id)
        date_key = date_key_for(self.clock())
        try:
            record = await workday_repository.get_for_day(db, user_id, date_key)
        except (OperationalError, InterfaceError) as exc:
            logger.error("workday storage unavailable on read user=%s: %s", user_id, exc)
            raise StorageUnavailableError() from exc
        return self._respond(user_id, date_key, record)

    async def get_many_today(
        self,
        db: AsyncSession,
        user_ids: Iterable[str] | None,
    ) -> dict[str, WorkdayResponse]:
        """여러 사용자의 오늘 상태를 한 번의 쿼리로 조회합니다.

        Get today's workday for many users with a single query. Users without
        a record get a NOT_STARTED projection that is not persisted.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            user_ids: 사용자 식별자 목록 (User identifiers)

        Returns:
            dict[str, WorkdayResponse]: 사용자별 프로젝션 (Projection per user id)
        """
        ids = _normalize_user_ids(user_ids)
        if not ids:
            return {}

        date_key = date_key_for(self.clock())
        try:
            records = await workday_repository.get_many_for_day(db, ids, date_key)
        except (OperationalError, InterfaceError) as exc:
            logger.error("workday storage unavailable on bulk read (%d users): %s", len(ids), exc)
            raise StorageUnavailableError() from exc

        by_user: dict[str, Workday] = {r.user_id: r for r in records}
        return {uid: self._respond(uid, date_key, by_user.get(uid)) for uid in ids}

    # === 동작 (Actions) ===

    async def start(self, db: AsyncSession, user_id: str) -> WorkdayResponse:
        """출근 — Clock in, or reconnect after ENDED."""
        return await self._transition(db, user_id, A.START.value, lambda s: plan_transition(s, A.START))

    async def set_active(self, db: AsyncSession, user_id: str) -> WorkdayResponse:
        """업무 복귀 — Resume from pause/lunch, or reconnect after ENDED."""
        return await self._transition(db, user_id, A.SET_ACTIVE.value, lambda s: plan_transition(s, A.SET_ACTIVE))

    async def pause(self, db: AsyncSession, user_id: str) -> WorkdayResponse:
        """휴식 시작 — Open a pause interval."""
        return await self._transition(db, user_id, A.PAUSE.value, lambda s: plan_transition(s, A.PAUSE))

    async def lunch(self, db: AsyncSession, user_id: str) -> WorkdayResponse:
        """점심 시작 — Open a lunch interval."""
        return await self._transition(db, user_id, A.LUNCH.value, lambda s: plan_transition(s, A.LUNCH))

    async def end(self, db: AsyncSession, user_id: str) -> WorkdayResponse:
        """퇴근 — Clock out, closing any open interval."""
        return await self._transition(db, user_id, A.END.value, lambda s: plan_transition(s, A.END))

    async def reset(self, db: AsyncSession, user_id: str) -> WorkdayResponse:
        """복구 — Force ACTIVE from any status, closing any open interval.

        Recovery for a day left in a state that makes no operational sense.
        Bypasses the transition table and always records a RESET event.
        """
        return await self._transition(db, user_id, "reset", plan_reset)

    async def commit(self, db: AsyncSession) -> None:
        """변경 사항을 커밋합니다.

        Commit the request's session. A driver outage at commit time maps to
        ``StorageUnavailableError`` like any other storage access.

        Raises:
            StorageUnavailableError: 저장소 접근 불가 (Store unreachable)
        """
        try:
            await db.commit()
        except (OperationalError, InterfaceError) as exc:
            logger.error("workday storage unavailable on commit: %s", exc)
            raise StorageUnavailableError() from exc

    # === 내부 헬퍼 (Internal helpers) ===

    async def _transition(
        self,
        db: AsyncSession,
        user_id: str,
        action: str,
        planner: Planner,
    ) -> WorkdayResponse:
        """동작을 적용합니다. 동시성 충돌 시 최신 상태로 다시 시도합니다.

        Apply one action inside a savepoint, retrying on a lost creation race
        (``IntegrityError``) or a lost compare-and-set (``StaleDataError``).

        Raises:
            MissingUserError: 사용자 식별자 누락 (Blank user id)
            InvalidUserIdError: 사용자 식별자 길이 초과 (User id too long)
            InvalidTransitionError: 허용되지 않는 전이 (Not allowed from current status)
            WorkdayConflictError: 재시도 소진 (Retries exhausted)
            StorageUnavailableError: 저장소 접근 불가 (Store unreachable)
        """
        user_id = _require_user(user_id)

        attempts = self.max_retries + 1
        for attempt in range(1, attempts + 1):
            # 매 시도마다 시각/날짜 키를 새로 계산 — never reuse a stale day key
            now = self.clock()
            date_key = date_key_for(now)
            try:
                async with db.begin_nested():
                    return await self._apply(db, user_id, date_key, now, action, planner)
            except (IntegrityError, StaleDataError) as exc:
                logger.warning(
                    "workday write conflict user=%s day=%s action=%s attempt=%d/%d: %s",
                    user_id, date_key, action, attempt, attempts, type(exc).__name__,
                )
            except (OperationalError, InterfaceError) as exc:
                logger.error("workday storage unavailable user=%s action=%s: %s", user_id, action, exc)
                raise StorageUnavailableError() from exc

        raise WorkdayConflictError()

    async def _apply(
        self,
        db: AsyncSession,
        user_id: str,
        date_key: str,
        now: datetime,
        action: str,
        planner: Planner,
    ) -> WorkdayResponse:
        record: Workday | None = await workday_repository.get_for_day(db, user_id, date_key)
        projection: WorkdayProjection = project_record(record)

        event_type = planner(projection.status)
        if event_type is None:
            return WorkdayResponse.from_projection(user_id, date_key, projection)

        # 이벤트 시각은 역행하지 않음 — the log stays ordered under clock skew
        last_at = projection.last_event_at
        at = now if last_at is None or now >= last_at else last_at
        previous = projection.status
        apply_event(projection, WorkdayEvent(type=event_type, at=at))

        fields: dict = cached_fields(projection)
        fields["events"] = [e.to_dict() for e in projection.events]

        if record is None:
            await workday_repository.create(db, {"user_id": user_id, "date_key": date_key, **fields})
        else:
            await workday_repository.apply_fields(db, record, fields)

        logger.info(
            "workday %s user=%s day=%s %s -> %s (%s)",
            action, user_id, date_key, previous.value, projection.status.value, event_type.value,
        )
        return WorkdayResponse.from_projection(user_id, date_key, projection)

    def _respond(self, user_id: str, date_key: str, record: Workday | None) -> WorkdayResponse:
        projection = project_record(record)
        if record is not None:
            drift = record_drift(record, projection)
            if drift:
                logger.warning(
                    "workday cache drift user=%s day=%s fields=%s", user_id, date_key, ",".join(drift)
                )
        return WorkdayResponse.from_projection(user_id, date_key, projection)


# 싱글턴 인스턴스 — Singleton instance
workday_service: WorkdayService = WorkdayService()
