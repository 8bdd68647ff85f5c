"""
Availability 도메인 에러 정의 + HTTP 매핑

- 서비스 레이어는 HTTPException 대신 아래 도메인 에러를 raise 한다
- 라우트/앱 레벨에서 domain_error_to_http() 로 일괄 변환
- 새 에러 타입은 ERROR_RULES 에만 추가하면 된다
"""
from __future__ import annotations

from typing import Optional

from fastapi import HTTPException, status


class AvailabilityError(Exception):
    """Availability 엔진 공통 베이스 에러"""

    default_message = "Availability error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFoundError(AvailabilityError):
    """property / source / booking 없음"""
    default_message = "Not found"


class ForbiddenError(AvailabilityError):
    """호출자가 숙소 소유 호스트가 아님"""
    default_message = "Forbidden"


class UnauthorizedError(AvailabilityError):
    """인증 정보 없음 또는 export token 불일치"""
    default_message = "Unauthorized"


class InvalidRequestError(AvailabilityError):
    """요청 값 검증 실패"""
    default_message = "Invalid request"


class BookingStateError(AvailabilityError):
    """현재 예약 상태에서 허용되지 않는 전이"""
    default_message = "Invalid booking state transition"


class AvailabilityConflictError(AvailabilityError):
    """요청한 날짜에 이미 차단/예약된 날이 있음"""
    default_message = "Requested dates are not available"

    def __init__(self, message: Optional[str] = None, conflicts: Optional[list] = None):
        super().__init__(message)
        self.conflicts = conflicts or []


class PersistenceError(AvailabilityError):
    """저장소 레이어 실패 (500)"""
    default_message = "Storage failure"


class SyncFetchError(AvailabilityError):
    """외부 iCal 피드 fetch 실패 (네트워크 / non-2xx)"""
    default_message = "Failed to fetch iCal feed"

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


# ---------------------------------------------------------------------------
# Error rules: (exception type, http status)
# 먼저 매칭되는 규칙이 적용된다.
# ---------------------------------------------------------------------------

ERROR_RULES: list[tuple[type[AvailabilityError], int]] = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ForbiddenError, status.HTTP_403_FORBIDDEN),
    (UnauthorizedError, status.HTTP_401_UNAUTHORIZED),
    (InvalidRequestError, status.HTTP_400_BAD_REQUEST),
    (BookingStateError, status.HTTP_400_BAD_REQUEST),
    (AvailabilityConflictError, status.HTTP_409_CONFLICT),
    (SyncFetchError, status.HTTP_502_BAD_GATEWAY),
    (PersistenceError, status.HTTP_500_INTERNAL_SERVER_ERROR),
]


def domain_error_to_http(exc: AvailabilityError) -> HTTPException:
    """
    도메인 에러 → HTTPException 변환.
    규칙에 없는 에러는 500 + 메시지.
    """
    for error_type, status_code in ERROR_RULES:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=exc.message)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=exc.message)
