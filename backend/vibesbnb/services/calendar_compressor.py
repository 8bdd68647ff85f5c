"""
Calendar Compressor

(day, status) 목록 → 같은 상태의 연속 구간 (양끝 inclusive)
export 시 하루 = 이벤트 하나가 되지 않도록 run-length 압축
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, Iterator

ONE_DAY = timedelta(days=1)


@dataclass(frozen=True)
class DateRange:
    """압축 결과 구간. start, end 모두 포함 (inclusive)"""
    start: date
    end: date
    status: str


def iter_days(start: date, end: date) -> Iterator[date]:
    """[start, end) 의 날짜를 하나씩. 매번 새 date 값을 만든다"""
    current = start
    while current < end:
        yield current
        current = current + ONE_DAY


def compress_days(entries: Iterable[tuple[date, str]]) -> list[DateRange]:
    """
    연속 + 같은 상태인 날짜를 하나의 구간으로 묶는다.

    - 입력은 정렬되어 있지 않아도 된다 (내부에서 day 오름차순 정렬)
    - 현재 구간의 end 와 같은 날 + 같은 상태(다객실 중복)는 흡수
    """
    sorted_entries = sorted(entries, key=lambda e: (e[0], e[1]))
    if not sorted_entries:
        return []

    ranges: list[DateRange] = []
    first_day, first_status = sorted_entries[0]
    range_start = range_end = first_day
    range_status = first_status

    for day, status in sorted_entries[1:]:
        if status == range_status and day == range_end:
            continue
        if status == range_status and day == range_end + ONE_DAY:
            range_end = day
            continue
        ranges.append(DateRange(start=range_start, end=range_end, status=range_status))
        range_start = range_end = day
        range_status = status

    ranges.append(DateRange(start=range_start, end=range_end, status=range_status))
    return ranges


def expand_ranges(ranges: Iterable[DateRange]) -> list[tuple[date, str]]:
    """compress_days 의 역변환 (inclusive 구간 → 일 단위)"""
    days: list[tuple[date, str]] = []
    for r in ranges:
        for day in iter_days(r.start, r.end + ONE_DAY):
            days.append((day, r.status))
    return days
