# backend/vibesbnb/services/scheduler.py
"""
VibesBNB Scheduler Service (APScheduler 기반)

ICAL_SYNC_INTERVAL_HOURS(기본 6시간)마다 모든 활성 iCal source 를 동기화합니다.
주기 Job 은 source 별 1회성 Job 을 큐에 넣기만 하고, 실제 동기화는 각 Job 이 수행합니다.

사용법:
    from vibesbnb.services.scheduler import start_scheduler, shutdown_scheduler

    # FastAPI lifespan에서
    start_scheduler()
    ...
    shutdown_scheduler()
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from vibesbnb.core.config import settings

# 로거 설정
logger = logging.getLogger("vibesbnb.scheduler")
logger.setLevel(logging.INFO)

# 콘솔 핸들러 추가 (서버 로그에 출력)
if not logger.handlers:
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    formatter = logging.Formatter(
        "[%(asctime)s] %(levelname)s [SCHEDULER] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

ICAL_ENQUEUE_JOB_ID = "ical_sync_enqueue_job"

# 전역 스케줄러 인스턴스
_scheduler: Optional[AsyncIOScheduler] = None


async def ical_sync_source_job(source_id: str):
    """
    source 하나 동기화 (큐에 들어간 1회성 Job)

    Job 마다 별도 DB 세션을 쓰므로 다른 source 실패와 무관하다.
    """
    from vibesbnb.db.session import SessionLocal
    from vibesbnb.services.ical_sync_service import IcalSyncService

    db = SessionLocal()
    try:
        result = await IcalSyncService(db).sync_source_by_id(source_id)
        if result is None:
            return
        if result.success:
            logger.info(f"  source={source_id} → ✓ 동기화 {result.synced_days}일")
        else:
            logger.warning(f"  source={source_id} → 실패: {result.error}")
    except Exception as e:
        logger.error(f"iCal sync Job 실패 source={source_id}: {e}")
        logger.exception("상세 에러:")
        db.rollback()
    finally:
        db.close()


async def ical_sync_enqueue_job():
    """
    iCal 주기 동기화 Job

    - 모든 활성 source id 조회
    - source 별 1회성 Job 을 스케줄러 큐에 등록 (요청 처리와 분리)
    """
    from vibesbnb.db.session import SessionLocal
    from vibesbnb.repositories.ical_source_repository import IcalSourceRepository

    start_time = datetime.utcnow()
    logger.info("=" * 60)
    logger.info("iCal Sync Enqueue Job 시작")
    logger.info(f"  시작 시간: {start_time.isoformat()}")

    db = SessionLocal()
    try:
        source_ids = IcalSourceRepository(db).list_active_ids()
    except Exception as e:
        logger.error(f"활성 source 조회 실패: {e}")
        db.rollback()
        return
    finally:
        db.close()

    enqueued = enqueue_source_syncs(source_ids)
    logger.info(f"  → {enqueued}개 source 동기화 Job 등록")
    logger.info("=" * 60)


def enqueue_source_syncs(source_ids: list[str]) -> int:
    """
    source 별 동기화 Job 등록.
    스케줄러가 없으면 (테스트/스크립트) 등록하지 않고 0 반환.
    """
    if _scheduler is None:
        logger.warning("스케줄러가 실행 중이 아니라 동기화 Job 을 등록하지 않습니다")
        return 0

    for source_id in source_ids:
        # 같은 source 의 Job 이 이미 대기 중이면 교체 (중복 동기화 방지)
        _scheduler.add_job(
            ical_sync_source_job,
            args=[source_id],
            id=f"ical_sync_source:{source_id}",
            name=f"iCal 동기화 ({source_id})",
            replace_existing=True,
        )
    return len(source_ids)


def start_scheduler(interval_hours: Optional[int] = None):
    """
    스케줄러 시작

    Args:
        interval_hours: iCal 동기화 간격 (시간), 기본 ICAL_SYNC_INTERVAL_HOURS
    """
    global _scheduler

    if _scheduler is not None:
        logger.warning("스케줄러가 이미 실행 중입니다")
        return

    hours = interval_hours or settings.ICAL_SYNC_INTERVAL_HOURS
    _scheduler = AsyncIOScheduler()

    _scheduler.add_job(
        ical_sync_enqueue_job,
        trigger=IntervalTrigger(hours=hours),
        id=ICAL_ENQUEUE_JOB_ID,
        name="iCal 주기 동기화",
        replace_existing=True,
    )

    _scheduler.start()

    logger.info("=" * 60)
    logger.info("VibesBNB Scheduler 시작됨")
    logger.info(f"  [Job 1] iCal 동기화: {hours}시간 간격")
    logger.info(f"          다음 실행: {_scheduler.get_job(ICAL_ENQUEUE_JOB_ID).next_run_time}")
    logger.info("=" * 60)


def shutdown_scheduler():
    """스케줄러 종료"""
    global _scheduler

    if _scheduler is None:
        return

    _scheduler.shutdown(wait=False)
    _scheduler = None
    logger.info("VibesBNB Scheduler 종료됨")


def get_scheduler() -> Optional[AsyncIOScheduler]:
    """현재 스케줄러 인스턴스 반환"""
    return _scheduler


async def run_job_now():
    """
    수동으로 Job 즉시 실행 (테스트용)
    """
    logger.info("Job 수동 실행 요청됨")
    await ical_sync_enqueue_job()
