"""근무일 서비스 테스트.

Workday service tests — transitions against a real (SQLite) session:
lazy creation, interval accounting, idempotence, reconnection, recovery,
bulk lookups, and the concurrency/recovery paths.
"""

from datetime import datetime, timezone

import pytest
from sqlalchemy import func, select, text
from sqlalchemy.exc import OperationalError

from workday_api.config import settings
from workday_api.models.workday import USER_ID_MAX_LENGTH, Workday, WorkdayEventType, WorkdayStatus
from workday_api.repositories.workday_repository import workday_repository
from workday_api.services.workday_projection import record_drift, replay
from workday_api.services.workday_service import WorkdayService
from workday_api.utils.day_key import date_key_for
from workday_api.utils.exceptions import (
    InvalidTransitionError,
    InvalidUserIdError,
    MissingUserError,
    StorageUnavailableError,
    WorkdayConflictError,
)

USER = "user-1"


async def _count_records(db, user_id: str = USER) -> int:
    result = await db.execute(select(func.count()).select_from(Workday).where(Workday.user_id == user_id))
    return result.scalar() or 0


async def _load(db, clock, user_id: str = USER) -> Workday | None:
    return await workday_repository.get_for_day(db, user_id, date_key_for(clock()))


def _types(response) -> list[WorkdayEventType]:
    return [e.type for e in response.events]


# ===== Reads =====

class TestGetToday:
    """오늘 근무 조회 테스트."""

    async def test_fresh_user_is_not_started_and_nothing_persisted(self, db, service, clock):
        """기록 없는 사용자는 NOT_STARTED."""
        result = await service.get_today(db, USER)

        assert result.status == WorkdayStatus.NOT_STARTED
        assert result.events == []
        assert result.user_id == USER
        assert result.date_key == date_key_for(clock())
        assert result.started_at is None
        assert result.total_pause_minutes == 0
        assert await _count_records(db) == 0

    async def test_blank_user_is_rejected(self, db, service):
        with pytest.raises(MissingUserError):
            await service.get_today(db, "   ")

    async def test_storage_unavailable_on_read(self, db, service, monkeypatch):
        async def _down(*args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("connection refused"))

        monkeypatch.setattr(workday_repository, "get_for_day", _down)
        with pytest.raises(StorageUnavailableError) as exc_info:
            await service.get_today(db, USER)
        assert exc_info.value.status_code == 503


# ===== Transitions =====

class TestTransitions:
    """상태 전이 시나리오 테스트."""

    async def test_start_creates_record(self, db, service, clock):
        """출근 시 기록 생성."""
        t0 = clock()
        result = await service.start(db, USER)

        assert result.status == WorkdayStatus.ACTIVE
        assert result.started_at == t0
        assert [(e.type, e.at) for e in result.events] == [(WorkdayEventType.START, t0)]
        assert await _count_records(db) == 1

    async def test_pause_then_resume_credits_pause_minutes(self, db, service, clock):
        """휴식 15분 후 복귀."""
        await service.start(db, USER)
        clock.advance(minutes=10)
        paused = await service.pause(db, USER)
        assert paused.status == WorkdayStatus.PAUSED
        assert paused.pause_started_at == clock()

        clock.advance(minutes=15)
        result = await service.set_active(db, USER)

        assert result.status == WorkdayStatus.ACTIVE
        assert result.total_pause_minutes == 15
        assert result.pause_started_at is None
        assert _types(result)[-1] == WorkdayEventType.RESUME

    async def test_pause_to_lunch_closes_pause(self, db, service, clock):
        """휴식에서 바로 점심."""
        await service.start(db, USER)
        clock.advance(minutes=5)
        await service.pause(db, USER)
        clock.advance(minutes=15)
        lunch_at = clock()
        result = await service.lunch(db, USER)

        assert result.status == WorkdayStatus.LUNCH
        assert result.total_pause_minutes == 15
        assert result.pause_started_at is None
        assert result.lunch_started_at == lunch_at

    async def test_lunch_to_pause_closes_lunch(self, db, service, clock):
        await service.start(db, USER)
        await service.lunch(db, USER)
        clock.advance(minutes=42, seconds=59)
        result = await service.pause(db, USER)

        assert result.status == WorkdayStatus.PAUSED
        assert result.total_lunch_minutes == 42
        assert result.lunch_started_at is None
        assert result.pause_started_at == clock()

    async def test_end_closes_open_lunch(self, db, service, clock):
        await service.start(db, USER)
        clock.advance(minutes=60)
        await service.lunch(db, USER)
        clock.advance(minutes=30)
        result = await service.end(db, USER)

        assert result.status == WorkdayStatus.ENDED
        assert result.ended_at == clock()
        assert result.total_lunch_minutes == 30
        assert result.lunch_started_at is None

    async def test_start_after_end_reconnects(self, db, service, clock):
        """퇴근 후 재접속."""
        t0 = clock()
        await service.start(db, USER)
        clock.advance(minutes=120)
        await service.end(db, USER)
        clock.advance(minutes=30)
        t2 = clock()
        result = await service.start(db, USER)

        assert result.status == WorkdayStatus.ACTIVE
        assert result.started_at == t0
        assert result.events[-1].type == WorkdayEventType.RECONNECT
        assert result.events[-1].at == t2
        assert await _count_records(db) == 1

    async def test_set_active_after_end_reconnects(self, db, service, clock):
        await service.start(db, USER)
        await service.end(db, USER)
        clock.advance(minutes=1)
        result = await service.set_active(db, USER)

        assert result.status == WorkdayStatus.ACTIVE
        assert _types(result) == [WorkdayEventType.START, WorkdayEventType.END, WorkdayEventType.RECONNECT]

    async def test_reconnect_keeps_accumulated_minutes(self, db, service, clock):
        await service.start(db, USER)
        await service.pause(db, USER)
        clock.advance(minutes=7)
        await service.end(db, USER)
        clock.advance(minutes=3)
        result = await service.start(db, USER)

        assert result.total_pause_minutes == 7

    async def test_pause_before_start_fails_without_mutation(self, db, service):
        """출근 전 휴식은 거부, 저장 없음."""
        with pytest.raises(InvalidTransitionError) as exc_info:
            await service.pause(db, USER)

        assert exc_info.value.action == "pause"
        assert exc_info.value.current_status == "NOT_STARTED"
        assert exc_info.value.status_code == 400
        assert await _count_records(db) == 0

    @pytest.mark.parametrize("action", ["set_active", "pause", "lunch", "end"])
    async def test_actions_rejected_before_start(self, db, service, action):
        with pytest.raises(InvalidTransitionError):
            await getattr(service, action)(db, USER)
        assert await _count_records(db) == 0

    @pytest.mark.parametrize("action", ["pause", "lunch"])
    async def test_actions_rejected_after_end(self, db, service, action):
        await service.start(db, USER)
        await service.end(db, USER)
        before = await service.get_today(db, USER)

        with pytest.raises(InvalidTransitionError) as exc_info:
            await getattr(service, action)(db, USER)

        assert exc_info.value.current_status == "ENDED"
        assert await service.get_today(db, USER) == before

    async def test_round_trip_never_raises(self, db, service, clock):
        """start → pause → set_active → lunch → end → start."""
        for action in ("start", "pause", "set_active", "lunch", "end", "start"):
            clock.advance(minutes=10)
            await getattr(service, action)(db, USER)

        result = await service.get_today(db, USER)
        assert result.status == WorkdayStatus.ACTIVE
        assert result.total_pause_minutes == 10
        assert result.total_lunch_minutes == 10
        assert _types(result)[-1] == WorkdayEventType.RECONNECT
        assert await _count_records(db) == 1

    async def test_missing_user_rejected(self, db, service):
        with pytest.raises(MissingUserError):
            await service.start(db, "")


# ===== Idempotence =====

class TestIdempotence:
    """멱등 동작 테스트."""

    @pytest.mark.parametrize(
        "setup, repeat",
        [
            (["start"], "start"),
            (["start", "pause"], "start"),
            (["start", "lunch"], "start"),
            (["start"], "set_active"),
            (["start", "pause"], "pause"),
            (["start", "lunch"], "lunch"),
            (["start", "end"], "end"),
        ],
    )
    async def test_repeat_is_noop(self, db, service, clock, setup, repeat):
        for action in setup:
            clock.advance(minutes=1)
            await getattr(service, action)(db, USER)
        before = await service.get_today(db, USER)

        clock.advance(minutes=5)
        result = await getattr(service, repeat)(db, USER)

        assert result == before
        assert await service.get_today(db, USER) == before

    async def test_double_pause_keeps_first_pause_start(self, db, service, clock):
        await service.start(db, USER)
        clock.advance(minutes=2)
        first = await service.pause(db, USER)
        clock.advance(minutes=1)
        second = await service.pause(db, USER)

        assert second.pause_started_at == first.pause_started_at
        assert len(second.events) == 2


# ===== Reset =====

class TestReset:
    """복구(reset) 테스트."""

    async def test_reset_from_not_started_records_start(self, db, service, clock):
        """첫 출근 전 복구는 START로 기록."""
        result = await service.reset(db, USER)

        assert result.status == WorkdayStatus.ACTIVE
        assert result.started_at == clock()
        assert _types(result) == [WorkdayEventType.START]
        assert await _count_records(db) == 1

    async def test_reset_from_pause_closes_interval(self, db, service, clock):
        await service.start(db, USER)
        await service.pause(db, USER)
        clock.advance(minutes=20)
        result = await service.reset(db, USER)

        assert result.status == WorkdayStatus.ACTIVE
        assert result.total_pause_minutes == 20
        assert result.pause_started_at is None
        assert _types(result)[-1] == WorkdayEventType.RESET

    async def test_reset_from_ended_records_reconnect(self, db, service, clock):
        """퇴근 후 복구는 RECONNECT로 기록."""
        t0 = clock()
        await service.start(db, USER)
        await service.end(db, USER)
        clock.advance(minutes=5)
        result = await service.reset(db, USER)

        assert result.status == WorkdayStatus.ACTIVE
        assert result.started_at == t0
        assert _types(result) == [WorkdayEventType.START, WorkdayEventType.END, WorkdayEventType.RECONNECT]

    async def test_reset_from_active_is_audited(self, db, service):
        await service.start(db, USER)
        result = await service.reset(db, USER)

        assert result.status == WorkdayStatus.ACTIVE
        assert _types(result) == [WorkdayEventType.START, WorkdayEventType.RESET]


# ===== Storage agreement =====

class TestStoredProjection:
    """저장된 캐시 컬럼과 이벤트 재생 결과 일치 테스트."""

    async def test_stored_fields_match_replay(self, db, service, clock):
        for action in ("start", "pause", "lunch", "set_active", "pause", "end", "start", "lunch"):
            clock.advance(minutes=7, seconds=30)
            await getattr(service, action)(db, USER)
            await db.commit()

            record = await _load(db, clock)
            projection = replay(record.events)
            assert record_drift(record, projection) == []
            assert record.status == projection.status.value
            assert record.pause_started_at is None or record.lunch_started_at is None

    async def test_version_bumps_on_every_write(self, db, service, clock):
        await service.start(db, USER)
        first = (await _load(db, clock)).version
        await service.pause(db, USER)
        await service.pause(db, USER)

        assert (await _load(db, clock)).version == first + 1

    async def test_new_day_creates_new_record(self, db, service, clock):
        # 2026-03-10 23:59 Santiago -> 00:01 next day
        clock.set(datetime(2026, 3, 11, 2, 59, tzinfo=timezone.utc))
        first = await service.start(db, USER)
        await service.end(db, USER)

        clock.advance(minutes=2)
        second = await service.start(db, USER)

        assert first.date_key == "2026-03-10"
        assert second.date_key == "2026-03-11"
        assert _types(second) == [WorkdayEventType.START]
        assert await _count_records(db) == 2

    async def test_clock_going_backwards_keeps_log_ordered(self, db, service, clock):
        await service.start(db, USER)
        clock.advance(minutes=10)
        await service.pause(db, USER)
        clock.advance(minutes=-3)
        result = await service.set_active(db, USER)

        ats = [e.at for e in result.events]
        assert ats == sorted(ats)
        assert result.total_pause_minutes == 0


# ===== Bulk =====

class TestGetManyToday:
    """여러 사용자 상태 일괄 조회 테스트."""

    async def test_mixed_users(self, db, service):
        await service.start(db, "a")
        await service.start(db, "b")
        await service.pause(db, "b")

        result = await service.get_many_today(db, ["a", " b ", "c", "", "a"])

        assert list(result) == ["a", "b", "c"]
        assert result["a"].status == WorkdayStatus.ACTIVE
        assert result["b"].status == WorkdayStatus.PAUSED
        assert result["c"].status == WorkdayStatus.NOT_STARTED
        assert result["c"].events == []
        assert await _count_records(db, "c") == 0

    async def test_empty_input(self, db, service):
        assert await service.get_many_today(db, []) == {}
        assert await service.get_many_today(db, None) == {}

    async def test_single_query(self, db, service, monkeypatch):
        calls = []
        original = workday_repository.get_many_for_day

        async def _spy(db_, ids, date_key):
            calls.append(list(ids))
            return await original(db_, ids, date_key)

        monkeypatch.setattr(workday_repository, "get_many_for_day", _spy)
        await service.get_many_today(db, [f"u{i}" for i in range(25)])

        assert len(calls) == 1
        assert len(calls[0]) == 25


# ===== Concurrency =====

class TestConcurrency:
    """동시성 충돌 복구 테스트."""

    async def test_creation_race_retries_as_update(self, db, service, monkeypatch):
        """다른 요청이 먼저 기록을 만든 경우: unique constraint hit, retried."""
        await service.start(db, USER)

        original = workday_repository.get_for_day
        calls = {"n": 0}

        async def _stale_read(db_, user_id, date_key):
            calls["n"] += 1
            if calls["n"] == 1:
                return None
            return await original(db_, user_id, date_key)

        monkeypatch.setattr(workday_repository, "get_for_day", _stale_read)
        result = await service.start(db, USER)

        assert calls["n"] == 2
        assert result.status == WorkdayStatus.ACTIVE
        assert _types(result) == [WorkdayEventType.START]
        assert await _count_records(db) == 1

    async def test_lost_compare_and_set_is_retried(self, db, service, clock, monkeypatch):
        await service.start(db, USER)

        original = workday_repository.get_for_day
        calls = {"n": 0}

        async def _racing_read(db_, user_id, date_key):
            record = await original(db_, user_id, date_key)
            calls["n"] += 1
            if calls["n"] == 1:
                # 다른 작성자가 먼저 갱신 (another writer bumps the version)
                await db_.execute(
                    text("UPDATE workdays SET version = version + 1 WHERE user_id = :u AND date_key = :d"),
                    {"u": user_id, "d": date_key},
                )
            return record

        monkeypatch.setattr(workday_repository, "get_for_day", _racing_read)
        clock.advance(minutes=3)
        result = await service.pause(db, USER)

        assert calls["n"] == 2
        assert result.status == WorkdayStatus.PAUSED
        assert _types(result) == [WorkdayEventType.START, WorkdayEventType.PAUSE]

    @pytest.mark.parametrize("retries", [0, 1, 3])
    async def test_conflict_after_retries(self, db, clock, monkeypatch, retries):
        """첫 시도 + 재시도 횟수만큼 시도한 뒤 409."""
        service = WorkdayService(clock=clock, max_retries=retries)
        await service.start(db, USER)

        original = workday_repository.get_for_day
        calls = {"n": 0}

        async def _always_racing(db_, user_id, date_key):
            calls["n"] += 1
            record = await original(db_, user_id, date_key)
            await db_.execute(
                text("UPDATE workdays SET version = version + 1 WHERE user_id = :u AND date_key = :d"),
                {"u": user_id, "d": date_key},
            )
            return record

        monkeypatch.setattr(workday_repository, "get_for_day", _always_racing)
        with pytest.raises(WorkdayConflictError) as exc_info:
            await service.pause(db, USER)
        assert exc_info.value.status_code == 409
        assert calls["n"] == retries + 1

        monkeypatch.setattr(workday_repository, "get_for_day", original)
        assert (await service.get_today(db, USER)).status == WorkdayStatus.ACTIVE

    async def test_storage_unavailable_on_write(self, db, service, monkeypatch):
        async def _down(*args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("connection refused"))

        monkeypatch.setattr(workday_repository, "get_for_day", _down)
        with pytest.raises(StorageUnavailableError):
            await service.start(db, USER)

    async def test_zero_retries_still_writes(self, db, clock):
        service = WorkdayService(clock=clock, max_retries=0)
        result = await service.start(db, USER)

        assert result.status == WorkdayStatus.ACTIVE
        assert await _count_records(db) == 1

    async def test_default_retries_come_from_settings(self, clock, monkeypatch):
        monkeypatch.setattr(settings, "WORKDAY_WRITE_RETRIES", 5)
        assert WorkdayService(clock=clock).max_retries == 5

    async def test_storage_unavailable_on_commit(self, db, service, monkeypatch):
        await service.start(db, USER)

        async def _commit_down():
            raise OperationalError("COMMIT", {}, Exception("server closed the connection"))

        monkeypatch.setattr(db, "commit", _commit_down)
        with pytest.raises(StorageUnavailableError):
            await service.commit(db)


# ===== User identifiers =====

class TestUserIds:
    """사용자 식별자 검증 테스트."""

    async def test_longest_user_id_is_stored(self, db, service):
        user_id = "u" * USER_ID_MAX_LENGTH
        result = await service.start(db, user_id)

        assert result.user_id == user_id
        assert await _count_records(db, user_id) == 1

    @pytest.mark.parametrize("action", ["get_today", "start", "reset"])
    async def test_overlong_user_id_is_rejected(self, db, service, action):
        user_id = "u" * (USER_ID_MAX_LENGTH + 1)
        with pytest.raises(InvalidUserIdError) as exc_info:
            await getattr(service, action)(db, user_id)

        assert exc_info.value.status_code == 400
        assert await _count_records(db, user_id) == 0
