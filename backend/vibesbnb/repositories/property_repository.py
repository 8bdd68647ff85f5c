# backend/vibesbnb/repositories/property_repository.py
from __future__ import annotations

from sqlalchemy.orm import Session

from vibesbnb.core.errors import ForbiddenError, NotFoundError
from vibesbnb.domain.models.property import Property, generate_export_token


class PropertyRepository:
    """
    Property 전용 레포지토리.

    숙소 CRUD 자체는 외부 책임이고, 여기서는 존재/소유 확인과
    seed·테스트용 생성만 제공한다.
    """

    def __init__(self, session: Session):
        self.session = session

    # --- 조회 ---

    def get_by_id(self, property_id: str) -> Property | None:
        return self.session.get(Property, property_id)

    def get_or_404(self, property_id: str) -> Property:
        prop = self.get_by_id(property_id)
        if prop is None:
            raise NotFoundError("Property not found")
        return prop

    def ensure_host_ownership(self, property_id: str, caller_id: str | None) -> Property:
        """
        소유 호스트 확인.
        - 숙소 없음 → NotFoundError
        - 호스트 불일치 → ForbiddenError
        """
        prop = self.get_or_404(property_id)
        if not caller_id or prop.host_id != caller_id:
            raise ForbiddenError("Forbidden")
        return prop

    # --- 생성 ---

    def create(self, *, host_id: str, name: str, property_id: str | None = None) -> Property:
        prop = Property(
            host_id=host_id,
            name=name,
            ical_export_token=generate_export_token(),
        )
        if property_id:
            prop.id = property_id
        self.session.add(prop)
        self.session.flush()
        return prop
