# backend/vibesbnb/api/deps.py
"""
호출자 식별 의존성

인증은 앞단(게이트웨이/auth 서비스)에서 끝났다고 가정하고,
검증된 사용자 id / role 을 헤더로 전달받는다.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Header

from vibesbnb.core.errors import UnauthorizedError


@dataclass(frozen=True)
class CallerIdentity:
    user_id: Optional[str]
    role: str = "anonymous"

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id)


def get_caller(
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
) -> CallerIdentity:
    """공개 라우트용: 익명 허용"""
    if not x_user_id:
        return CallerIdentity(user_id=None)
    return CallerIdentity(user_id=x_user_id, role=x_user_role or "guest")


def require_caller(
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
) -> CallerIdentity:
    """보호 라우트용: 사용자 id 없으면 401"""
    if not x_user_id:
        raise UnauthorizedError("Unauthorized")
    return CallerIdentity(user_id=x_user_id, role=x_user_role or "guest")
