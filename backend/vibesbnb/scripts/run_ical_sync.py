from __future__ import annotations

import argparse
import asyncio

from sqlalchemy.orm import Session

from vibesbnb.db.session import SessionLocal
from vibesbnb.repositories.ical_source_repository import IcalSourceRepository
from vibesbnb.services.ical_sync_service import IcalSyncService, SyncResult


async def run_sync(*, property_id: str | None) -> list[SyncResult]:
    db: Session = SessionLocal()
    try:
        print(
            "\n=== VibesBNB iCal 동기화 시작 ===\n"
            f"- property_id : {property_id or '(전체)'}\n"
        )

        repo = IcalSourceRepository(db)
        if property_id:
            source_ids = [s.id for s in repo.list_for_property(property_id, active_only=True)]
        else:
            source_ids = repo.list_active_ids()

        service = IcalSyncService(db)
        results: list[SyncResult] = []
        for source_id in source_ids:
            result = await service.sync_source_by_id(source_id)
            if result is None:
                continue
            results.append(result)
            mark = "✓" if result.success else "✗"
            detail = f"{result.synced_days}일" if result.success else result.error
            print(f"  {mark} {result.name} ({result.source_id}): {detail}")

        ok = sum(1 for r in results if r.success)
        print(f"\n✅ 완료: {len(results)}개 source 중 {ok}개 성공\n")
        print("=== VibesBNB iCal 동기화 종료 ===\n")
        return results

    finally:
        db.close()


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="등록된 외부 iCal 캘린더를 즉시 동기화하는 스크립트",
    )
    parser.add_argument(
        "--property-id",
        type=str,
        default=None,
        help="특정 숙소의 source 만 동기화 (기본: 모든 활성 source)",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    asyncio.run(run_sync(property_id=args.property_id))


if __name__ == "__main__":
    main()
