"""
유틸리티 패키지

idempotency 키 생성, webhook 서명 검증, 타임존 처리 등 공통 유틸리티
"""

from core.utils.timezone import (
    age_seconds,
    now_utc,
    now_utc_iso,
    parse_iso,
)

__all__ = [
    "age_seconds",
    "now_utc",
    "now_utc_iso",
    "parse_iso",
]
