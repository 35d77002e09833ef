"""
타임존 유틸리티

내부 저장: UTC ISO 문자열 | Posting 날짜: 주문 소스 타임존 기준 달력 날짜
"""

from datetime import datetime, timezone


def now_utc() -> datetime:
    """현재 UTC 시간 반환 (타임존 명시)

    datetime.now(timezone.utc)의 축약형.
    """
    return datetime.now(timezone.utc)


def now_utc_iso() -> str:
    """현재 UTC 시간 ISO 문자열 (DB 저장용)

    Example:
        >>> now_utc_iso()
        '2026-02-21T01:00:00.123456+00:00'
    """
    return now_utc().isoformat()


def parse_iso(value: str | None) -> datetime | None:
    """ISO 8601 문자열 → datetime

    'Z' 접미사 허용. naive datetime은 UTC로 간주. 파싱 실패 시 None.
    """
    if not value:
        return None

    try:
        dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def age_seconds(value: str | None, now: datetime | None = None) -> float | None:
    """ISO 시각으로부터 경과 시간 (초)

    Example:
        >>> age_seconds("2026-02-20T16:00:00+00:00", now=datetime(2026, 2, 20, 16, 1, tzinfo=timezone.utc))
        60.0
    """
    dt = parse_iso(value)
    if dt is None:
        return None

    reference = now or now_utc()
    return max((reference - dt).total_seconds(), 0.0)
