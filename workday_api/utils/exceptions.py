"""커스텀 HTTP 예외 클래스 모듈.

Custom HTTP exception classes module.
Provides pre-configured HTTPException subclasses for the error kinds the
workday core raises. Services raise these directly; FastAPI turns them into
responses, so no status codes are chosen at call sites.

Usage:
    from workday_api.utils.exceptions import InvalidTransitionError
    raise InvalidTransitionError("pause", "NOT_STARTED")
"""

from fastapi import HTTPException, status


class BadRequestError(HTTPException):
    """400 Bad Request 예외 — 잘못된 요청 데이터 시 사용.

    400 Bad Request exception.
    Raised when the request is invalid beyond what Pydantic validation catches.

    Args:
        detail: 오류 메시지 (Error message, default: "Bad request")
    """

    def __init__(self, detail: str = "Bad request") -> None:
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class DuplicateError(HTTPException):
    """409 Conflict 예외 — 동시 수정 충돌 시 사용.

    409 Conflict exception.

    Args:
        detail: 오류 메시지 (Error message, default: "Resource already exists")
    """

    def __init__(self, detail: str = "Resource already exists") -> None:
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class UnauthorizedError(HTTPException):
    """401 Unauthorized 예외 — 인증 실패 시 사용.

    401 Unauthorized exception.
    Raised when authentication is missing, invalid, or expired.

    Args:
        detail: 오류 메시지 (Error message, default: "Authentication required")
    """

    def __init__(self, detail: str = "Authentication required") -> None:
        super().__init__(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


class InvalidTransitionError(BadRequestError):
    """현재 상태에서 허용되지 않는 근무 동작.

    The requested action is not allowed from the current workday status.
    Never retried automatically.

    Attributes:
        action: 시도한 동작 (Attempted action)
        current_status: 현재 상태 (Status at the time of the attempt)
    """

    def __init__(self, action: str, current_status: str, reason: str | None = None) -> None:
        self.action: str = action
        self.current_status: str = current_status
        detail = reason or f"Cannot {action} while workday is {current_status}"
        super().__init__(detail=detail)


class MissingUserError(BadRequestError):
    """사용자 식별자 누락 — No user identifier was supplied."""

    def __init__(self, detail: str = "userId is required") -> None:
        super().__init__(detail=detail)


class InvalidUserIdError(BadRequestError):
    """사용자 식별자 형식 오류 — The user identifier cannot be stored (e.g. too long)."""

    def __init__(self, detail: str = "userId is invalid") -> None:
        super().__init__(detail=detail)


class WorkdayConflictError(DuplicateError):
    """재시도 후에도 동시 수정 충돌이 해소되지 않음.

    Concurrent writes kept winning the compare-and-set after every retry.
    """

    def __init__(self, detail: str = "Workday was modified concurrently, please retry") -> None:
        super().__init__(detail=detail)


class StorageUnavailableError(HTTPException):
    """503 Service Unavailable 예외 — 저장소에 연결할 수 없을 때 사용.

    The underlying store is unreachable. The core does not retry; callers may.

    Args:
        detail: 오류 메시지 (Error message)
    """

    def __init__(self, detail: str = "Workday storage is unavailable") -> None:
        super().__init__(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=detail)
