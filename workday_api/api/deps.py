"""FastAPI 의존성 주입 모듈 — 인증 및 서비스 주입.

FastAPI dependency injection module — Authentication and service wiring.

Authentication Flow:
    1. 클라이언트가 Authorization: Bearer <token> 헤더를 전송
       (Client sends Authorization: Bearer <token> header)
    2. HTTPBearer가 토큰을 추출 (HTTPBearer extracts the token)
    3. decode_token()이 JWT를 검증하고 페이로드를 반환
       (decode_token verifies JWT and returns payload)
    4. 페이로드의 "sub" / "id" / "userId" 클레임이 사용자 식별자
       (The user id comes from the "sub", "id" or "userId" claim; the
       identity provider owns user accounts, so no user table is read here)
"""

from typing import Annotated

import jwt
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from workday_api.services.workday_service import WorkdayService, workday_service
from workday_api.utils.exceptions import UnauthorizedError
from workday_api.utils.jwt import decode_token

# HTTP Bearer 토큰 추출기 — Authorization 헤더에서 JWT 토큰 추출
# auto_error=False: 헤더 누락도 401로 통일 (Missing header also maps to 401)
security: HTTPBearer = HTTPBearer(auto_error=False)

# 사용자 식별자 클레임 우선순위 — Claims checked for the user id, in order
USER_ID_CLAIMS: tuple[str, ...] = ("sub", "id", "userId")


async def get_current_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> str:
    """JWT 토큰에서 현재 인증된 사용자 식별자를 추출합니다.

    Decode the JWT from the Authorization header and return the opaque user id.

    Args:
        credentials: HTTP Bearer 토큰 자격 증명 (Bearer token credentials from header)

    Returns:
        str: 사용자 식별자 (User identifier, trusted verbatim)

    Raises:
        UnauthorizedError: 토큰 누락/만료/무효, 또는 사용자 클레임 없음
                           (Missing, expired or invalid token, or no user claim)
    """
    if credentials is None:
        raise UnauthorizedError()
    try:
        payload: dict = decode_token(credentials.credentials)
    except jwt.InvalidTokenError:
        raise UnauthorizedError("Invalid or expired token")

    # 토큰 타입 검증 — Reject refresh tokens used as access tokens
    if payload.get("type", "access") != "access":
        raise UnauthorizedError("Invalid token type")

    for claim in USER_ID_CLAIMS:
        value = payload.get(claim)
        if value is not None and str(value).strip():
            return str(value).strip()
    raise UnauthorizedError("Could not identify the authenticated user")


def get_workday_service() -> WorkdayService:
    """근무일 서비스 의존성 — overridable in tests."""
    return workday_service
