"""
정산 도메인 예외

모든 예외는 ErrorKind를 가지며, 워커는 이를 QueueEntry에 기록.
"""

from core.types import ErrorKind


class SettlementError(Exception):
    """정산 처리 오류 베이스

    Args:
        message: 오류 메시지
        order_id: 관련 주문 ID (선택)
    """

    kind: ErrorKind = ErrorKind.UNEXPECTED

    def __init__(self, message: str, order_id: str | None = None):
        self.message = message
        self.order_id = order_id
        super().__init__(message)


class OrderDataError(SettlementError):
    """주문 데이터 형식 오류 (필수 필드 누락, 금액 파싱 실패 등)"""

    kind = ErrorKind.VALIDATION


class OrderNotPaid(SettlementError):
    """결제 완료 상태가 아닌 주문"""

    kind = ErrorKind.VALIDATION


class NoBillableLines(SettlementError):
    """필터링 후 청구 라인이 하나도 없음"""

    kind = ErrorKind.VALIDATION


class UnbalancedPosting(SettlementError):
    """net + vat != gross 또는 Posting 합계가 breakdown과 불일치

    원격 호출 전에 발생하며 절대 자동 보정하지 않음.
    """

    kind = ErrorKind.INVARIANT_VIOLATION


class TotalMismatch(SettlementError):
    """계산된 gross가 주문 보고 합계와 허용 오차 이상 차이"""

    kind = ErrorKind.INVARIANT_VIOLATION

    def __init__(
        self,
        computed_minor: int,
        reported_minor: int,
        tolerance_minor: int,
        order_id: str | None = None,
    ):
        self.computed_minor = computed_minor
        self.reported_minor = reported_minor
        self.tolerance_minor = tolerance_minor
        super().__init__(
            f"Computed gross {computed_minor} differs from reported total "
            f"{reported_minor} by more than {tolerance_minor} minor units",
            order_id=order_id,
        )


class PartialSettlement(SettlementError):
    """기존 Posting이 일부만 결제됨 (운영자 확인 필요)"""

    kind = ErrorKind.INVARIANT_VIOLATION
