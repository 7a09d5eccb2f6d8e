"""JWT 토큰 검증 유틸리티 모듈.

JWT token utility module. Tokens are issued by the identity provider; this
service only verifies them. ``create_access_token`` mirrors the provider's
format and is used by tooling and tests.

JWT Payload Structure:
    {
        "sub": "user-id",           # 사용자 ID (Opaque user identifier)
        "exp": 1234567890,          # 만료 시간 UNIX timestamp (Expiration)
        "type": "access"            # 토큰 유형 (Token type discriminator)
    }
"""

from datetime import datetime, timedelta, timezone
from typing import Any
import jwt

from workday_api.config import settings


def create_access_token(data: dict[str, Any], expires_minutes: int | None = None) -> str:
    """JWT 액세스 토큰을 생성합니다.

    Generate a JWT access token with the given payload data.

    Args:
        data: JWT 페이로드 데이터, 일반적으로 {"sub": user_id}
              (JWT payload data, typically {"sub": user_id})
        expires_minutes: 만료 시간(분), 기본값은 설정값 (TTL override; negative yields an expired token)

    Returns:
        str: 인코딩된 JWT 문자열 (Encoded JWT token string)
    """
    to_encode: dict[str, Any] = data.copy()
    ttl: int = settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES if expires_minutes is None else expires_minutes
    expire: datetime = datetime.now(timezone.utc) + timedelta(minutes=ttl)
    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict[str, Any]:
    """JWT 토큰을 디코딩하고 검증합니다.

    Decode and verify a JWT token string.

    Args:
        token: JWT 토큰 문자열 (Encoded JWT token string)

    Returns:
        dict[str, Any]: 디코딩된 페이로드 딕셔너리 (Decoded payload dictionary)

    Raises:
        jwt.ExpiredSignatureError: 토큰 만료 시 (When token has expired)
        jwt.InvalidTokenError: 유효하지 않은 토큰 (When token is invalid)
    """
    return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
