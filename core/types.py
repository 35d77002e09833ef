"""
타입 정의 모듈

Enum 등 핵심 타입 정의
모든 Enum은 str을 상속하여 문자열 직렬화 가능
"""

from enum import Enum


class FinancialStatus(str, Enum):
    """주문 결제 상태 (Shopify financial_status)"""

    PAID = "paid"
    UNPAID = "unpaid"
    CANCELLED = "cancelled"
    OTHER = "other"

    @classmethod
    def parse(cls, value: str | None) -> "FinancialStatus":
        """Shopify 값 → Enum (pending, authorized 등은 UNPAID로 간주)"""
        if not value:
            return cls.OTHER

        normalized = value.strip().lower()
        if normalized == "paid":
            return cls.PAID
        if normalized in ("pending", "authorized", "unpaid", "partially_paid"):
            return cls.UNPAID
        if normalized in ("voided", "cancelled", "canceled"):
            return cls.CANCELLED
        return cls.OTHER


class QueueStatus(str, Enum):
    """작업 큐 상태

    전이 규칙:
    - PENDING → IN_PROGRESS: 클레임됨
    - IN_PROGRESS → DONE: Posting 생성(또는 중복 확인) 완료
    - IN_PROGRESS → FAILED: 복구 불가 오류
    - FAILED/DONE → PENDING: 운영자 재큐잉
    - IN_PROGRESS → PENDING: 중단 후 재개
    """

    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"
    FAILED = "FAILED"


class LineKind(str, Enum):
    """분개 라인 종류"""

    PRODUCT = "PRODUCT"
    SHIPPING = "SHIPPING"


class ErrorKind(str, Enum):
    """오류 분류

    - TRANSIENT_REMOTE: 네트워크/5xx (게이트웨이에서 재시도 후 소진)
    - VALIDATION: 4xx, 잘못된 주문 데이터, 청구 라인 없음
    - INVARIANT_VIOLATION: 불균형 Posting, 합계 불일치
    - UNEXPECTED: 분류되지 않은 예외
    """

    TRANSIENT_REMOTE = "TRANSIENT_REMOTE"
    VALIDATION = "VALIDATION"
    INVARIANT_VIOLATION = "INVARIANT_VIOLATION"
    UNEXPECTED = "UNEXPECTED"


class OrderSourceKind(str, Enum):
    """주문 소스 종류"""

    SHOPIFY_API = "shopify_api"
    BACKUP_FILES = "backup_files"
