"""
Posting 빌더 테스트
"""

from dataclasses import replace
from datetime import date

import pytest

from adapters.models import Counterparty
from adapters.shopify.models import parse_order
from core.domain.errors import UnbalancedPosting
from core.ledger.money import compute_breakdown
from core.ledger.posting_builder import (
    PostingBuilder,
    derive_breakdown_totals,
    posting_date_for,
    verify_against_breakdown,
    verify_lines_balanced,
)

COUNTERPARTY = Counterparty(contact_id="1001", name="Kari Nordmann", email="kari.nordmann@example.no")


@pytest.fixture
def order(order_payload: dict):
    return parse_order(order_payload)


@pytest.fixture
def breakdown(order):
    return compute_breakdown(order)


class TestPostingBuilder:
    """PostingBuilder 테스트"""

    def test_build_order_3403(self, order, breakdown) -> None:
        """라인/합계/비즈니스 키"""
        posting = PostingBuilder().build(order, breakdown, COUNTERPARTY)

        assert posting.business_key == "#3403"
        assert posting.order_id == "5012345678"
        assert posting.counterparty_id == "1001"
        assert posting.currency == "NOK"
        assert posting.posting_date == date(2024, 11, 2)
        assert len(posting.lines) == 2
        assert all(line.vat_type == "HIGH" for line in posting.lines)
        assert posting.totals == breakdown.totals

    def test_round_trip_totals(self, order, breakdown) -> None:
        """Posting 라인에서 재도출한 합계 == breakdown 합계"""
        posting = PostingBuilder().build(order, breakdown, COUNTERPARTY)

        assert derive_breakdown_totals(posting) == breakdown.totals

    def test_custom_vat_type(self, order, breakdown) -> None:
        """vatType 설정"""
        posting = PostingBuilder(vat_type="OUTSIDE").build(order, breakdown, COUNTERPARTY)

        assert {line.vat_type for line in posting.lines} == {"OUTSIDE"}

    def test_payload(self, order, breakdown) -> None:
        """Fiken POST /sales 본문"""
        payload = PostingBuilder().build(order, breakdown, COUNTERPARTY).to_payload()

        assert payload["saleNumber"] == "#3403"
        assert payload["customerId"] == 1001
        assert payload["date"] == "2024-11-02"
        assert payload["lines"][0]["netPrice"] == 46240
        assert payload["lines"][0]["vat"] == 11560


class TestVerification:
    """균형 검증 테스트"""

    def test_negative_line_rejected(self, order, breakdown) -> None:
        """음수 라인"""
        posting = PostingBuilder().build(order, breakdown, COUNTERPARTY)
        broken = replace(posting, lines=(replace(posting.lines[0], net_amount=-1),) + posting.lines[1:])

        with pytest.raises(UnbalancedPosting):
            verify_lines_balanced(broken)

    def test_totals_differ_from_breakdown(self, order, breakdown) -> None:
        """라인 누락 → breakdown과 불일치"""
        posting = PostingBuilder().build(order, breakdown, COUNTERPARTY)
        truncated = replace(posting, lines=posting.lines[:1])

        with pytest.raises(UnbalancedPosting):
            verify_against_breakdown(truncated, breakdown)

    def test_skewed_vat_rejected(self, order, breakdown) -> None:
        """vat 1 øre 변조"""
        posting = PostingBuilder().build(order, breakdown, COUNTERPARTY)
        first = posting.lines[0]
        skewed = replace(posting, lines=(replace(first, vat_amount=first.vat_amount + 1),) + posting.lines[1:])

        with pytest.raises(UnbalancedPosting):
            verify_against_breakdown(skewed, breakdown)

    def test_shifted_amounts_rejected(self, order, breakdown) -> None:
        """합계는 같아도 라인 간 금액 이동 → 불일치"""
        posting = PostingBuilder().build(order, breakdown, COUNTERPARTY)
        product, shipping = posting.lines
        shifted = replace(
            posting,
            lines=(
                replace(product, net_amount=product.net_amount + 100),
                replace(shipping, net_amount=shipping.net_amount - 100),
            ),
        )

        assert shifted.totals == breakdown.totals
        with pytest.raises(UnbalancedPosting, match="differs from breakdown"):
            verify_against_breakdown(shifted, breakdown)


class TestPostingDate:
    """posting_date_for 테스트"""

    def test_processed_at_preferred(self, order_payload: dict) -> None:
        """processed_at 우선"""
        order_payload["processed_at"] = "2024-12-31T23:30:00+01:00"
        order_payload["created_at"] = "2024-12-30T10:00:00+01:00"

        assert posting_date_for(parse_order(order_payload)) == date(2024, 12, 31)

    def test_source_calendar_day_kept(self, order_payload: dict) -> None:
        """UTC 변환하지 않고 소스 달력 날짜 사용"""
        order_payload["processed_at"] = "2024-11-02T23:30:00-05:00"

        assert posting_date_for(parse_order(order_payload)) == date(2024, 11, 2)

    def test_created_at_fallback(self, order_payload: dict) -> None:
        """processed_at 없으면 created_at"""
        order_payload["processed_at"] = None
        order_payload["created_at"] = "2024-10-01T08:00:00Z"

        assert posting_date_for(parse_order(order_payload)) == date(2024, 10, 1)

    def test_today_fallback(self, order_payload: dict) -> None:
        """날짜 없으면 오늘"""
        order_payload["processed_at"] = None
        order_payload["created_at"] = "not a date"

        assert posting_date_for(parse_order(order_payload), today=date(2025, 1, 15)) == date(2025, 1, 15)
