"""
Posting 빌더

계산기 출력(MonetaryBreakdown) + 확정 거래처 → 원격 생성 요청(PostingRequest).
네트워크 호출 전에 합계를 breakdown과 다시 대조.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone

from adapters.models import Counterparty
from core.constants import Defaults
from core.domain.errors import UnbalancedPosting
from core.domain.orders import Order
from core.ledger.types import LineAmounts, MonetaryBreakdown, PostingLine, PostingRequest
from core.utils.idempotency import make_business_key

logger = logging.getLogger(__name__)


def posting_date_for(order: Order, today: date | None = None) -> date:
    """Posting 날짜 결정

    processed_at → created_at → 오늘(UTC) 순서.
    소스 타임존 기준 달력 날짜로 자름 (UTC 변환하지 않음).
    """
    for value in (order.processed_at, order.created_at):
        if not value:
            continue
        parsed = _parse_source_date(value)
        if parsed is not None:
            return parsed

    return today or datetime.now(timezone.utc).date()


def _parse_source_date(value: str) -> date | None:
    text = value.strip()
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass

    try:
        return date.fromisoformat(text.split("T")[0])
    except ValueError:
        logger.warning("주문 날짜 파싱 실패", extra={"value": value})
        return None


def verify_lines_balanced(posting: PostingRequest) -> None:
    """라인 금액 음수 검증

    Raises:
        UnbalancedPosting
    """
    for line in posting.lines:
        if line.net_amount < 0 or line.vat_amount < 0:
            raise UnbalancedPosting(
                f"Negative amount on line '{line.description}'",
                order_id=posting.order_id,
            )


def verify_against_breakdown(posting: PostingRequest, breakdown: MonetaryBreakdown) -> None:
    """Posting 라인/합계 == breakdown 라인/합계 검증

    라인 순서는 breakdown과 같아야 함 (빌더가 1:1로 조립).

    Raises:
        UnbalancedPosting
    """
    verify_lines_balanced(posting)

    if not breakdown.is_balanced:
        raise UnbalancedPosting("Breakdown does not balance", order_id=posting.order_id)

    if len(posting.lines) != len(breakdown.lines):
        raise UnbalancedPosting(
            f"Posting has {len(posting.lines)} lines, breakdown has {len(breakdown.lines)}",
            order_id=posting.order_id,
        )

    for posting_line, expected_line in zip(posting.lines, breakdown.lines):
        if (posting_line.net_amount, posting_line.vat_amount, posting_line.gross_amount) != (
            expected_line.net,
            expected_line.vat,
            expected_line.gross,
        ):
            raise UnbalancedPosting(
                f"Line '{posting_line.description}' differs from breakdown "
                f"(net {posting_line.net_amount}/{expected_line.net}, "
                f"vat {posting_line.vat_amount}/{expected_line.vat})",
                order_id=posting.order_id,
            )

    expected = breakdown.totals
    actual = posting.totals
    if actual != expected:
        raise UnbalancedPosting(
            f"Posting totals {actual} differ from breakdown {expected}",
            order_id=posting.order_id,
        )


def derive_breakdown_totals(posting: PostingRequest) -> LineAmounts:
    """Posting 라인에서 breakdown 합계 재도출 (왕복 검증용)"""
    total = LineAmounts(net=0, vat=0, gross=0)
    for line in posting.lines:
        total = total + LineAmounts(
            net=line.net_amount,
            vat=line.vat_amount,
            gross=line.gross_amount,
        )
    return total


class PostingBuilder:
    """PostingRequest 조립기

    Args:
        vat_type: Fiken vatType (25% = HIGH)
    """

    def __init__(self, vat_type: str = Defaults.VAT_TYPE):
        self.vat_type = vat_type

    def build(
        self,
        order: Order,
        breakdown: MonetaryBreakdown,
        counterparty: Counterparty,
    ) -> PostingRequest:
        """PostingRequest 생성

        Raises:
            UnbalancedPosting: 조립된 합계가 breakdown과 다름
        """
        lines = tuple(
            PostingLine(
                description=line.description,
                account=line.account_code,
                vat_type=self.vat_type,
                net_amount=line.net,
                vat_amount=line.vat,
            )
            for line in breakdown.lines
        )

        posting = PostingRequest(
            business_key=make_business_key(order),
            order_id=order.order_id,
            posting_date=posting_date_for(order),
            currency=breakdown.currency,
            counterparty_id=counterparty.contact_id,
            lines=lines,
        )

        verify_against_breakdown(posting, breakdown)
        return posting
