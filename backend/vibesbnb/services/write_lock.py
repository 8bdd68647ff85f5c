"""
숙소 단위 쓰기 락

호스트 차단 / 예약 reserve·release / iCal 동기화가 같은 숙소 ledger 를
동시에 바꾸지 못하도록 숙소별로 직렬화한다. (프로세스 내부 락)
"""
from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Iterator

_registry_lock = threading.Lock()
_property_locks: Dict[str, threading.RLock] = {}


def _get_lock(property_id: str) -> threading.RLock:
    with _registry_lock:
        lock = _property_locks.get(property_id)
        if lock is None:
            lock = threading.RLock()
            _property_locks[property_id] = lock
        return lock


@contextmanager
def property_write_lock(property_id: str) -> Iterator[None]:
    """같은 스레드에서는 재진입 가능 (create booking → reserve)"""
    lock = _get_lock(property_id)
    with lock:
        yield
