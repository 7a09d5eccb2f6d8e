"""API 요청 로깅 미들웨어 (Axiom + stdlib logging).

API request logging middleware.
Builds one structured event per request (method, path, status, duration,
masked body, request id, error reason). The event always goes to the stdlib
logger and is also shipped to Axiom when a token and dataset are configured.
Each request carries an ``X-Request-Id`` (client supplied or generated) that
is echoed on the response.
"""

import json
import logging
import re
import time
import uuid
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from axiom_py import Client as AxiomClient

from workday_api.config import settings

logger = logging.getLogger("workday_api.http")

REQUEST_ID_HEADER = "X-Request-Id"

# 마스킹 대상 필드 패턴 — Fields to mask in request bodies and params
_SENSITIVE_KEYS = re.compile(
    r"(password|passwd|secret|token|authorization|api_?key|credential)",
    re.IGNORECASE,
)

# 로깅 제외 경로 — Paths excluded from logging
_SKIP_PATHS = {"/health", "/docs", "/redoc", "/openapi.json"}


def mask_sensitive(data: Any, depth: int = 0) -> Any:
    """민감 필드 자동 마스킹 — Recursively mask sensitive fields in dicts/lists."""
    if depth > 5:
        return "..."
    if isinstance(data, dict):
        return {
            k: "***" if _SENSITIVE_KEYS.search(str(k)) else mask_sensitive(v, depth + 1)
            for k, v in data.items()
        }
    if isinstance(data, list):
        return [mask_sensitive(item, depth + 1) for item in data[:20]]
    return data


def _error_detail(body: bytes) -> str:
    """에러 응답 본문에서 사유 추출 — Pull ``detail`` out of an error body."""
    try:
        data = json.loads(body)
        detail = data.get("detail", data) if isinstance(data, dict) else data
        text = detail if isinstance(detail, str) else json.dumps(detail, default=str)
    except (json.JSONDecodeError, UnicodeDecodeError):
        text = body.decode("utf-8", errors="replace")
    return text[:500]


class AxiomLoggingMiddleware(BaseHTTPMiddleware):
    """모든 API 요청/응답을 로깅하는 미들웨어.

    Middleware that logs every API request/response to the stdlib logger and,
    when configured, to Axiom.
    """

    def __init__(self, app: Any, client: AxiomClient | None = None) -> None:
        super().__init__(app)
        self._dataset: str = settings.AXIOM_DATASET
        self._client: AxiomClient | None = client
        if self._client is None and settings.AXIOM_API_TOKEN and settings.AXIOM_DATASET:
            self._client = AxiomClient(token=settings.AXIOM_API_TOKEN)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id: str = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex

        # 제외 경로 스킵 — Skip excluded paths
        if request.url.path in _SKIP_PATHS:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            return response

        start_time = time.perf_counter()
        method = request.method
        path = request.url.path

        # Request body 읽기 — Read request body (only for methods with body)
        request_body: Any = None
        if method in ("POST", "PUT", "PATCH"):
            body_bytes = await request.body()
            if body_bytes:
                try:
                    request_body = mask_sensitive(json.loads(body_bytes))
                except (json.JSONDecodeError, UnicodeDecodeError):
                    request_body = "(non-json body)"

        error_detail: str | None = None
        status_code: int = 500
        try:
            response = await call_next(request)
            status_code = response.status_code

            # 에러 응답시 body에서 사유 추출 — Extract error detail from error responses
            if status_code >= 400:
                resp_body = b""
                async for chunk in response.body_iterator:
                    resp_body += chunk if isinstance(chunk, bytes) else chunk.encode("utf-8")
                error_detail = _error_detail(resp_body)

                # 소비한 body를 다시 응답으로 반환 — Re-wrap consumed body
                response = Response(
                    content=resp_body,
                    status_code=status_code,
                    headers=dict(response.headers),
                    media_type=response.media_type,
                )
            response.headers[REQUEST_ID_HEADER] = request_id
        except Exception as exc:
            error_detail = f"{type(exc).__name__}: {str(exc)[:300]}"
            raise
        finally:
            log_event: dict[str, Any] = {
                "request_id": request_id,
                "method": method,
                "path": path,
                "status_code": status_code,
                "duration_ms": round((time.perf_counter() - start_time) * 1000, 2),
            }
            if request.query_params:
                log_event["query_params"] = mask_sensitive(dict(request.query_params))
            if request_body is not None:
                log_event["request_body"] = request_body
            if error_detail:
                log_event["error"] = error_detail

            level = logging.ERROR if status_code >= 500 else logging.WARNING if status_code >= 400 else logging.INFO
            logger.log(level, "%s %s -> %d", method, path, status_code, extra={"http": log_event})

            if self._client is not None:
                try:
                    self._client.ingest_events(self._dataset, [log_event])
                except Exception:
                    # 로깅 실패가 요청 처리에 영향주지 않도록 — Never break a request on log failure
                    logger.exception("axiom ingest failed for request %s", request_id)

        return response
