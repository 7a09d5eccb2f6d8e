"""근무일 레포지토리 — 근무 기록 관련 DB 쿼리 담당.

Workday Repository — Handles all workday record database queries.
Records are keyed by ``(user_id, date_key)``; the unique constraint on that
pair is what makes lazy creation race-safe.
"""

from typing import Iterable, Sequence

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from workday_api.models.workday import Workday
from workday_api.repositories.base import BaseRepository


class WorkdayRepository(BaseRepository[Workday]):
    """근무 기록 레포지토리.

    Workday record repository.

    Extends:
        BaseRepository[Workday]
    """

    def __init__(self) -> None:
        super().__init__(Workday)

    async def get_for_day(
        self,
        db: AsyncSession,
        user_id: str,
        date_key: str,
    ) -> Workday | None:
        """특정 사용자의 해당 날짜 근무 기록을 조회합니다.

        Retrieve a user's workday for a day key. Rows already in the identity
        map are refreshed from the database, so a retry after a lost
        compare-and-set sees the winner's state.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            user_id: 사용자 식별자 (User identifier)
            date_key: 날짜 키 YYYY-MM-DD (Day key)

        Returns:
            Workday | None: 근무 기록 또는 None (Workday record or None)
        """
        query: Select = (
            select(Workday)
            .where(Workday.user_id == user_id)
            .where(Workday.date_key == date_key)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def get_many_for_day(
        self,
        db: AsyncSession,
        user_ids: Iterable[str],
        date_key: str,
    ) -> Sequence[Workday]:
        """여러 사용자의 해당 날짜 근무 기록을 한 번의 쿼리로 조회합니다.

        Retrieve the workdays of many users for one day key in a single query.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            user_ids: 사용자 식별자 목록 (User identifiers)
            date_key: 날짜 키 (Day key)

        Returns:
            Sequence[Workday]: 존재하는 근무 기록 목록 (Existing records only)
        """
        ids: list[str] = list(user_ids)
        if not ids:
            return []
        query: Select = (
            select(Workday)
            .where(Workday.date_key == date_key)
            .where(Workday.user_id.in_(ids))
        )
        result = await db.execute(query)
        return result.scalars().all()

    async def apply_fields(
        self,
        db: AsyncSession,
        workday: Workday,
        fields: dict,
    ) -> Workday:
        """근무 기록 필드를 갱신하고 flush합니다.

        Assign fields and flush. The flush issues
        ``UPDATE ... WHERE id = :id AND version = :read_version``; if another
        writer got there first SQLAlchemy raises ``StaleDataError``.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            workday: 갱신할 근무 기록 (Record to update)
            fields: 컬럼명과 값 (Column values)

        Returns:
            Workday: 갱신된 근무 기록 (Updated record)
        """
        for name, value in fields.items():
            setattr(workday, name, value)
        await db.flush()
        return workday


# 싱글턴 인스턴스 — Singleton instance
workday_repository: WorkdayRepository = WorkdayRepository()
