"""
iCal Feed Fetcher

외부 iCal URL 에서 캘린더 원문 가져오기
- 설명적인 User-Agent, redirect 추적, timeout
- 실패는 SyncFetchError 로 분류 (재시도 없음 - 다음 주기에 다시 시도)
"""
import logging
from typing import Optional

import httpx

from vibesbnb.core.config import settings
from vibesbnb.core.errors import SyncFetchError

logger = logging.getLogger(__name__)


class IcalFeedFetcher:
    def __init__(
        self,
        timeout: Optional[float] = None,
        user_agent: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout if timeout is not None else settings.ICAL_FETCH_TIMEOUT
        self.user_agent = user_agent or settings.ICAL_USER_AGENT
        # 테스트에서 httpx.MockTransport 주입용
        self.transport = transport

    async def fetch(self, url: str) -> str:
        """
        iCal URL 에서 데이터 fetch

        Args:
            url: iCal URL

        Returns:
            iCal 데이터 문자열

        Raises:
            SyncFetchError: non-2xx 응답, timeout, 네트워크 오류
        """
        try:
            async with httpx.AsyncClient(
                headers={"User-Agent": self.user_agent},
                follow_redirects=True,
                timeout=self.timeout,
                transport=self.transport,
            ) as client:
                response = await client.get(url)
                response.raise_for_status()
                return response.text
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            logger.error(f"ICAL_FETCH: Bad status fetching iCal: {url}, status={status_code}")
            raise SyncFetchError(
                f"Failed to fetch iCal: {status_code} {e.response.reason_phrase}",
                status_code=status_code,
            ) from e
        except httpx.TimeoutException as e:
            logger.error(f"ICAL_FETCH: Timeout fetching iCal: {url}")
            raise SyncFetchError(f"Timed out fetching iCal after {self.timeout}s") from e
        except httpx.HTTPError as e:
            logger.error(f"ICAL_FETCH: Failed to fetch iCal: {url}, error: {e}")
            raise SyncFetchError(f"Failed to fetch iCal: {e}") from e
