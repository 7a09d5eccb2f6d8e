"""앱 근무일 라우터 — 출퇴근/휴식/점심 상태 API.

App Workday Router — Clock-in/out, pause, lunch and recovery endpoints for the
authenticated user, plus read-only status lookups for other users (used by
clients to paint presence next to contacts).
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from workday_api.api.deps import get_current_user_id, get_workday_service
from workday_api.database import get_db
from workday_api.schemas.workday import WorkdayResponse, WorkdayStatusesRequest
from workday_api.services.workday_service import WorkdayService

router: APIRouter = APIRouter()


@router.get("/today", response_model=WorkdayResponse)
async def get_my_today(
    db: Annotated[AsyncSession, Depends(get_db)],
    user_id: Annotated[str, Depends(get_current_user_id)],
    service: Annotated[WorkdayService, Depends(get_workday_service)],
) -> WorkdayResponse:
    """오늘 내 근무 상태를 조회합니다. 기록이 없으면 NOT_STARTED (저장하지 않음).

    Get today's workday for the current user.
    """
    return await service.get_today(db, user_id)


@router.post("/start", response_model=WorkdayResponse)
async def start_workday(
    db: Annotated[AsyncSession, Depends(get_db)],
    user_id: Annotated[str, Depends(get_current_user_id)],
    service: Annotated[WorkdayService, Depends(get_workday_service)],
) -> WorkdayResponse:
    """출근 — Clock in (or reconnect after ending the day)."""
    result = await service.start(db, user_id)
    await service.commit(db)
    return result


@router.post("/active", response_model=WorkdayResponse)
async def set_active(
    db: Annotated[AsyncSession, Depends(get_db)],
    user_id: Annotated[str, Depends(get_current_user_id)],
    service: Annotated[WorkdayService, Depends(get_workday_service)],
) -> WorkdayResponse:
    """업무 복귀 — Back to work from pause/lunch (or reconnect)."""
    result = await service.set_active(db, user_id)
    await service.commit(db)
    return result


@router.post("/pause", response_model=WorkdayResponse)
async def pause_workday(
    db: Annotated[AsyncSession, Depends(get_db)],
    user_id: Annotated[str, Depends(get_current_user_id)],
    service: Annotated[WorkdayService, Depends(get_workday_service)],
) -> WorkdayResponse:
    """휴식 — Start a pause."""
    result = await service.pause(db, user_id)
    await service.commit(db)
    return result


@router.post("/lunch", response_model=WorkdayResponse)
async def lunch_workday(
    db: Annotated[AsyncSession, Depends(get_db)],
    user_id: Annotated[str, Depends(get_current_user_id)],
    service: Annotated[WorkdayService, Depends(get_workday_service)],
) -> WorkdayResponse:
    """점심 — Start lunch."""
    result = await service.lunch(db, user_id)
    await service.commit(db)
    return result


@router.post("/end", response_model=WorkdayResponse)
async def end_workday(
    db: Annotated[AsyncSession, Depends(get_db)],
    user_id: Annotated[str, Depends(get_current_user_id)],
    service: Annotated[WorkdayService, Depends(get_workday_service)],
) -> WorkdayResponse:
    """퇴근 — Clock out. The day can be resumed later with start or active."""
    result = await service.end(db, user_id)
    await service.commit(db)
    return result


@router.post("/reset", response_model=WorkdayResponse)
async def reset_workday(
    db: Annotated[AsyncSession, Depends(get_db)],
    user_id: Annotated[str, Depends(get_current_user_id)],
    service: Annotated[WorkdayService, Depends(get_workday_service)],
) -> WorkdayResponse:
    """복구 — Force ACTIVE, closing any open pause or lunch."""
    result = await service.reset(db, user_id)
    await service.commit(db)
    return result


@router.get("/user/{user_id}/today", response_model=WorkdayResponse)
async def get_user_today(
    user_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    _caller: Annotated[str, Depends(get_current_user_id)],
    service: Annotated[WorkdayService, Depends(get_workday_service)],
) -> WorkdayResponse:
    """특정 사용자의 오늘 근무 상태를 조회합니다.

    Get today's workday for another user.
    """
    return await service.get_today(db, user_id)


@router.post("/today/statuses", response_model=dict[str, WorkdayResponse])
async def get_today_statuses(
    data: WorkdayStatusesRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    _caller: Annotated[str, Depends(get_current_user_id)],
    service: Annotated[WorkdayService, Depends(get_workday_service)],
) -> dict[str, WorkdayResponse]:
    """여러 사용자의 오늘 상태를 한 번에 조회합니다.

    Bulk lookup of today's workday for a list of users.

    Body:
        {"userIds": ["id1", "id2", ...]}

    Returns:
        dict: {"id1": WorkdayResponse, ...}
    """
    return await service.get_many_today(db, data.user_ids)
