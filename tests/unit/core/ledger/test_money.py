"""
금액/부가세 계산기 테스트

minor unit 변환, gross → net/vat 분해, 주문 breakdown, 보고 합계 대조
"""

from decimal import Decimal

import pytest
from hypothesis import given
from hypothesis import strategies as st

from adapters.shopify.models import parse_order
from core.domain.errors import NoBillableLines, OrderDataError, TotalMismatch
from core.domain.orders import Order, OrderLineItem, ShippingLine
from core.ledger.money import (
    check_reported_total,
    compute_breakdown,
    split_gross,
    to_minor_units,
)
from core.ledger.types import AccountCodes, LineAmounts
from core.types import FinancialStatus, LineKind


def _order(
    line_items: tuple[OrderLineItem, ...],
    shipping_lines: tuple[ShippingLine, ...] = (),
    total_price: str = "0",
) -> Order:
    return Order(
        order_id="1",
        order_number="1001",
        financial_status=FinancialStatus.PAID,
        currency="NOK",
        total_price=Decimal(total_price),
        total_tax=Decimal("0"),
        line_items=line_items,
        shipping_lines=shipping_lines,
    )


class TestToMinorUnits:
    """to_minor_units 테스트"""

    def test_decimal_string(self) -> None:
        """문자열 금액"""
        assert to_minor_units("642.00") == 64200
        assert to_minor_units("0.01") == 1

    def test_decimal_value(self) -> None:
        """Decimal 금액"""
        assert to_minor_units(Decimal("578")) == 57800

    def test_round_half_even(self) -> None:
        """0.5 øre는 짝수 쪽으로"""
        assert to_minor_units("0.005") == 0
        assert to_minor_units("0.015") == 2
        assert to_minor_units("0.025") == 2

    def test_invalid_amount(self) -> None:
        """파싱 불가 금액"""
        with pytest.raises(OrderDataError):
            to_minor_units("abc")

    def test_nan_rejected(self) -> None:
        """NaN 거부"""
        with pytest.raises(OrderDataError):
            to_minor_units("NaN")


class TestSplitGross:
    """split_gross 테스트"""

    def test_product_line_3403(self) -> None:
        """578.00 NOK → 462.40 + 115.60"""
        amounts = split_gross(57800)

        assert amounts == LineAmounts(net=46240, vat=11560, gross=57800)

    def test_shipping_line_3403(self) -> None:
        """64.00 NOK → 51.20 + 12.80"""
        amounts = split_gross(6400)

        assert amounts == LineAmounts(net=5120, vat=1280, gross=6400)

    def test_small_amounts_round(self) -> None:
        """1 øre, 3 øre 반올림"""
        assert split_gross(1) == LineAmounts(net=1, vat=0, gross=1)
        assert split_gross(3) == LineAmounts(net=2, vat=1, gross=3)

    def test_zero_rate(self) -> None:
        """면세"""
        assert split_gross(1000, Decimal("0")) == LineAmounts(net=1000, vat=0, gross=1000)

    def test_negative_rate(self) -> None:
        """음수 세율 거부"""
        with pytest.raises(ValueError):
            split_gross(1000, Decimal("-0.1"))

    @given(st.integers(min_value=0, max_value=10**9))
    def test_always_balanced(self, gross: int) -> None:
        """net + vat == gross, 0 <= vat <= gross"""
        amounts = split_gross(gross)

        assert amounts.net + amounts.vat == gross
        assert 0 <= amounts.vat <= gross

    @given(
        st.integers(min_value=0, max_value=10**9),
        st.decimals(min_value=0, max_value=1, places=4),
    )
    def test_balanced_for_any_rate(self, gross: int, vat_rate: Decimal) -> None:
        amounts = split_gross(gross, vat_rate)

        assert amounts.net + amounts.vat == gross
        assert 0 <= amounts.vat <= gross


class TestComputeBreakdown:
    """compute_breakdown 테스트"""

    def test_order_3403(self, order_payload: dict) -> None:
        """상품 + 배송 라인 분해"""
        order = parse_order(order_payload)

        breakdown = compute_breakdown(order)

        assert len(breakdown.lines) == 2
        product, shipping = breakdown.lines
        assert product.kind == LineKind.PRODUCT
        assert (product.net, product.vat, product.gross) == (46240, 11560, 57800)
        assert shipping.kind == LineKind.SHIPPING
        assert (shipping.net, shipping.vat, shipping.gross) == (5120, 1280, 6400)
        assert breakdown.totals == LineAmounts(net=51360, vat=12840, gross=64200)
        assert breakdown.is_balanced
        assert breakdown.currency == "NOK"

    def test_shipping_account_defaults_to_sales(self, order_payload: dict) -> None:
        """배송 계정 미설정 시 매출 계정"""
        breakdown = compute_breakdown(
            parse_order(order_payload),
            accounts=AccountCodes(sales="3001", shipping=None),
        )

        shipping = breakdown.lines[1]
        assert shipping.kind == LineKind.SHIPPING
        assert shipping.account_code == "3001"
        assert breakdown.lines[0].account_code == "3001"

    def test_custom_shipping_account(self, order_payload: dict) -> None:
        """배송 계정 지정"""
        breakdown = compute_breakdown(
            parse_order(order_payload),
            accounts=AccountCodes(sales="3000", shipping="3100"),
        )

        assert breakdown.lines[1].account_code == "3100"

    def test_quantity_and_discount(self) -> None:
        """수량 곱셈 후 라인 할인 차감"""
        order = _order((
            OrderLineItem(title="Lue", unit_price=Decimal("100.00"), quantity=2, discount=Decimal("20.00")),
        ))

        breakdown = compute_breakdown(order)

        line = breakdown.lines[0]
        assert line.gross == 18000
        assert line.description == "2 x Lue"

    def test_zero_gross_line_dropped(self) -> None:
        """0원 라인 제외"""
        order = _order((
            OrderLineItem(title="Gave", unit_price=Decimal("0"), quantity=1),
            OrderLineItem(title="Votter", unit_price=Decimal("199.00"), quantity=1),
        ))

        breakdown = compute_breakdown(order)

        assert [line.description for line in breakdown.lines] == ["Votter"]

    def test_free_shipping_dropped(self) -> None:
        """무료 배송 제외"""
        order = _order(
            (OrderLineItem(title="Votter", unit_price=Decimal("199.00"), quantity=1),),
            (ShippingLine(title="Gratis frakt", price=Decimal("0.00")),),
        )

        breakdown = compute_breakdown(order)

        assert len(breakdown.lines) == 1

    def test_no_billable_lines(self) -> None:
        """청구 라인 없음"""
        order = _order((OrderLineItem(title="Gave", unit_price=Decimal("0"), quantity=1),))

        with pytest.raises(NoBillableLines):
            compute_breakdown(order)

    def test_negative_quantity(self) -> None:
        """음수 수량"""
        order = _order((OrderLineItem(title="Retur", unit_price=Decimal("10"), quantity=-1),))

        with pytest.raises(OrderDataError):
            compute_breakdown(order)

    @given(st.lists(st.integers(min_value=1, max_value=10_000_000), min_size=1, max_size=12))
    def test_breakdown_totals_are_line_sums(self, grosses: list[int]) -> None:
        """합계는 라인 합과 같고 항상 균형"""
        order = _order(tuple(
            OrderLineItem(title=f"Vare {i}", unit_price=Decimal(gross) / 100, quantity=1)
            for i, gross in enumerate(grosses)
        ))

        breakdown = compute_breakdown(order)

        assert breakdown.is_balanced
        assert breakdown.totals.gross == sum(grosses)
        assert breakdown.totals.net == sum(line.net for line in breakdown.lines)

    @given(
        vat_rate=st.decimals(min_value=0, max_value=1, places=4),
        items=st.lists(
            st.tuples(
                st.integers(min_value=1, max_value=1_000_000),  # 단가 (øre)
                st.integers(min_value=1, max_value=50),  # 수량
                st.integers(min_value=0, max_value=99),  # 할인 (%)
            ),
            min_size=1,
            max_size=8,
        ),
        shipping=st.integers(min_value=0, max_value=100_000),
    )
    def test_balanced_for_any_rate_quantity_discount(
        self,
        vat_rate: Decimal,
        items: list[tuple[int, int, int]],
        shipping: int,
    ) -> None:
        """세율/수량/할인과 무관하게 라인별, 합계 모두 net + vat == gross"""
        discounts = [unit * quantity * share // 100 for unit, quantity, share in items]
        order = _order(
            tuple(
                OrderLineItem(
                    title=f"Vare {i}",
                    unit_price=Decimal(unit) / 100,
                    quantity=quantity,
                    discount=Decimal(discount) / 100,
                )
                for i, ((unit, quantity, _), discount) in enumerate(zip(items, discounts))
            ),
            (ShippingLine(title="Frakt", price=Decimal(shipping) / 100),),
        )

        breakdown = compute_breakdown(order, vat_rate=vat_rate)

        for line in breakdown.lines:
            assert line.net + line.vat == line.gross
            assert 0 <= line.vat <= line.gross
        expected = sum(unit * quantity for unit, quantity, _ in items) - sum(discounts) + shipping
        assert breakdown.totals.gross == expected
        assert breakdown.totals.net + breakdown.totals.vat == breakdown.totals.gross
        assert breakdown.is_balanced


class TestCheckReportedTotal:
    """check_reported_total 테스트"""

    def test_exact_match(self, order_payload: dict) -> None:
        """보고 합계 일치"""
        order = parse_order(order_payload)

        assert check_reported_total(compute_breakdown(order), order) == 0

    def test_within_tolerance(self, order_payload: dict) -> None:
        """2 øre 이내 차이 허용"""
        order_payload["total_price"] = "642.02"
        order = parse_order(order_payload)

        assert check_reported_total(compute_breakdown(order), order) == 2

    def test_missing_total_skips_check(self, order_payload: dict) -> None:
        """보고 합계 없음 → 비교 생략"""
        order_payload.pop("total_price", None)
        order_payload.pop("current_total_price", None)
        order = parse_order(order_payload)

        assert check_reported_total(compute_breakdown(order), order, tolerance_minor=0) is None

    def test_outside_tolerance(self, order_payload: dict) -> None:
        """허용 오차 초과"""
        order_payload["total_price"] = "642.03"
        order = parse_order(order_payload)

        with pytest.raises(TotalMismatch) as exc_info:
            check_reported_total(compute_breakdown(order), order)

        assert exc_info.value.computed_minor == 64200
        assert exc_info.value.reported_minor == 64203
