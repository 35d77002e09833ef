"""
Fiken 호출 속도 제어 및 오류 타입

Fiken API는 동시 요청 1개와 짧은 최소 간격을 요구.
RequestPacer가 프로세스 단위로 이를 보장.
"""

import asyncio
import time
from dataclasses import dataclass, field
from email.utils import parsedate_to_datetime
from datetime import datetime, timezone

from core.constants import Pacing
from core.types import ErrorKind


class FikenApiError(Exception):
    """Fiken API 에러

    body는 원격 응답 본문을 그대로 보관 (운영자 진단용).
    """

    kind: ErrorKind = ErrorKind.UNEXPECTED

    def __init__(self, message: str, status_code: int | None = None, body: str | None = None):
        self.message = message
        self.status_code = status_code
        self.body = body
        super().__init__(f"Fiken API Error [{status_code}]: {message}")


class FikenTransientError(FikenApiError):
    """재시도 소진 (5xx, 429, 타임아웃, 네트워크)"""

    kind = ErrorKind.TRANSIENT_REMOTE


class FikenValidationError(FikenApiError):
    """4xx 응답 (재시도하지 않음)"""

    kind = ErrorKind.VALIDATION


class FikenProtocolError(FikenApiError):
    """예상과 다른 응답 형식 (Location 헤더 누락 등)"""

    kind = ErrorKind.UNEXPECTED


def parse_retry_after(value: str | None) -> float | None:
    """Retry-After 헤더 → 대기 초

    초 단위 정수 또는 HTTP-date 모두 허용.
    """
    if not value:
        return None

    value = value.strip()
    try:
        return max(float(value), 0.0)
    except ValueError:
        pass

    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None

    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max((when - datetime.now(timezone.utc)).total_seconds(), 0.0)


def backoff_delay(
    attempt: int,
    base: float = Pacing.BACKOFF_BASE_SEC,
    maximum: float = Pacing.BACKOFF_MAX_SEC,
) -> float:
    """지수 백오프 대기 시간 (attempt는 0부터)"""
    return min(base * (2 ** attempt), maximum)


@dataclass
class RequestPacer:
    """요청 페이서

    - 한 번에 하나의 요청만 진행 (asyncio.Lock)
    - 요청 시작 간 최소 간격 보장

    사용 예시:
    ```python
    pacer = RequestPacer(min_interval=0.25)
    async with pacer:
        response = await client.get(...)
    ```
    """

    min_interval: float = Pacing.MIN_INTERVAL_SEC
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False, repr=False)
    _last_started: float | None = field(default=None, init=False, repr=False)
    request_count: int = field(default=0, init=False)

    async def __aenter__(self) -> "RequestPacer":
        await self._lock.acquire()
        try:
            await self._wait_for_slot()
        except BaseException:
            self._lock.release()
            raise
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self._lock.release()

    @property
    def in_flight(self) -> bool:
        return self._lock.locked()

    async def _wait_for_slot(self) -> None:
        now = time.monotonic()
        if self._last_started is not None:
            remaining = self.min_interval - (now - self._last_started)
            if remaining > 0:
                await asyncio.sleep(remaining)
        self._last_started = time.monotonic()
        self.request_count += 1
