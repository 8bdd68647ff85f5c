"""
iCal Parser

외부 캘린더 텍스트 → ParsedEvent 리스트 (I/O 없음)
- BEGIN:VEVENT 단위로 잘라서 DTSTART / DTEND / SUMMARY 추출
- VALUE=DATE 같은 파라미터, date-only(YYYYMMDD) 값 모두 허용
- 깨진 블록은 조용히 건너뛴다 (절대 raise 하지 않음)
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ParsedEvent:
    """파싱된 이벤트. [start_date, end_date) 반개구간 (DTEND exclusive)"""
    start_date: date
    end_date: date
    summary: Optional[str] = None


# RFC 5545 line folding: CRLF + 공백/탭 으로 이어진 줄
_FOLDED_LINE_RE = re.compile(r"\r?\n[ \t]")

_DTSTART_RE = re.compile(r"^\s*DTSTART[^:\r\n]*:\s*(\d{8})", re.MULTILINE)
_DTEND_RE = re.compile(r"^\s*DTEND[^:\r\n]*:\s*(\d{8})", re.MULTILINE)
_SUMMARY_RE = re.compile(r"^\s*SUMMARY[^:\r\n]*:([^\r\n]*)", re.MULTILINE)


def _unfold(content: str) -> str:
    return _FOLDED_LINE_RE.sub("", content)


def _unescape_text(value: str) -> str:
    return (
        value.replace("\\n", " ")
        .replace("\\N", " ")
        .replace("\\,", ",")
        .replace("\\;", ";")
        .replace("\\\\", "\\")
        .strip()
    )


def _to_date(raw: str) -> date:
    # "20250110" → date(2025, 1, 10). 잘못된 날짜면 ValueError
    return date(int(raw[0:4]), int(raw[4:6]), int(raw[6:8]))


def parse_ical_content(content: Optional[str]) -> list[ParsedEvent]:
    """
    iCal 문서 파싱

    Args:
        content: iCal 원문

    Returns:
        문서 순서대로의 ParsedEvent 리스트. 빈 리스트 = 차단 날짜 없음 (에러 아님)
    """
    events: list[ParsedEvent] = []
    if not content:
        return events

    text = _unfold(content)
    blocks = text.split("BEGIN:VEVENT")

    # 첫 조각은 VCALENDAR 헤더
    for block in blocks[1:]:
        body = block.split("END:VEVENT")[0]

        start_match = _DTSTART_RE.search(body)
        end_match = _DTEND_RE.search(body)
        if not start_match or not end_match:
            continue

        try:
            start_date = _to_date(start_match.group(1))
            end_date = _to_date(end_match.group(1))
        except ValueError:
            logger.debug(
                f"ICAL_PARSER: Skipping event with invalid date: "
                f"{start_match.group(1)} ~ {end_match.group(1)}"
            )
            continue

        summary = None
        summary_match = _SUMMARY_RE.search(body)
        if summary_match:
            summary = _unescape_text(summary_match.group(1)) or None

        events.append(ParsedEvent(start_date=start_date, end_date=end_date, summary=summary))

    return events
