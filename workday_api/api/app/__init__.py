"""앱 API 라우터 패키지 — 모든 앱(직원용) 엔드포인트 통합.

App API Router package — Aggregates the app-facing (employee) endpoints
into a single router for inclusion in the FastAPI application.

Included routers:
    - workday: 근무일 상태 (Workday clock-in/out, pause, lunch, statuses)
"""

from fastapi import APIRouter

from workday_api.api.app.workday import router as workday_router

app_router: APIRouter = APIRouter()

# 근무일: /workday 하위 (Workday state machine endpoints)
app_router.include_router(workday_router, prefix="/workday", tags=["Workday"])
