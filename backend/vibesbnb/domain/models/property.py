"""
Property Model

숙소 (availability 엔진 관점의 최소 정보)
- 소유 호스트 확인 (host_id)
- iCal export token 보관
"""
from __future__ import annotations

import secrets
import uuid
from datetime import datetime

from sqlalchemy import String, DateTime, Boolean
from sqlalchemy.orm import Mapped, mapped_column

from vibesbnb.db.base import Base


def generate_export_token() -> str:
    """숙소 생성 시 1회 발급되는 iCal export token"""
    return secrets.token_hex(32)


class Property(Base):
    """
    숙소 테이블

    - host_id: 소유 호스트 (권한 체크용)
    - ical_export_token: export 피드 URL 에 붙는 capability token (숙소 수명 동안 고정)
    """

    __tablename__ = "properties"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )

    host_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    ical_export_token: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        default=generate_export_token,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=datetime.utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )

    def __repr__(self) -> str:
        return f"<Property id={self.id} host={self.host_id} name={self.name}>"
