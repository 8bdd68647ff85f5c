# backend/vibesbnb/repositories/ical_source_repository.py
from __future__ import annotations

from typing import Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from vibesbnb.domain.models.property_ical_source import PropertyIcalSource


class IcalSourceRepository:
    """
    PropertyIcalSource 전용 레포지토리.
    """

    def __init__(self, session: Session):
        self.session = session

    # --- 조회 ---

    def get_by_id(self, source_id: str) -> PropertyIcalSource | None:
        return self.session.get(PropertyIcalSource, source_id)

    def list_for_property(
        self,
        property_id: str,
        *,
        active_only: bool = False,
    ) -> Sequence[PropertyIcalSource]:
        stmt = select(PropertyIcalSource).where(
            PropertyIcalSource.property_id == property_id,
        )
        if active_only:
            stmt = stmt.where(PropertyIcalSource.is_active.is_(True))
        stmt = stmt.order_by(PropertyIcalSource.created_at.desc())
        return self.session.execute(stmt).scalars().all()

    def list_active_ids(self) -> list[str]:
        """스케줄러용: 모든 활성 source id"""
        stmt = (
            select(PropertyIcalSource.id)
            .where(PropertyIcalSource.is_active.is_(True))
            .order_by(PropertyIcalSource.created_at.asc())
        )
        return list(self.session.execute(stmt).scalars().all())

    def is_active(self, source_id: str) -> bool:
        """삭제되지 않았고 활성인지 (DB 기준으로 다시 조회)"""
        stmt = select(PropertyIcalSource.id).where(
            PropertyIcalSource.id == source_id,
            PropertyIcalSource.is_active.is_(True),
        )
        return self.session.execute(stmt).scalar_one_or_none() is not None

    # --- 생성/삭제 ---

    def create(
        self,
        *,
        property_id: str,
        host_id: str,
        name: str,
        ical_url: str,
        unit_id: str | None = None,
    ) -> PropertyIcalSource:
        source = PropertyIcalSource(
            property_id=property_id,
            host_id=host_id,
            name=name,
            ical_url=ical_url,
            unit_id=unit_id,
        )
        self.session.add(source)
        self.session.flush()
        return source

    def delete(self, source: PropertyIcalSource) -> None:
        self.session.delete(source)
        self.session.flush()
