"""
금액/부가세 계산기

주문 → 라인별 net/vat/gross (minor unit) 분해. I/O 없음.

라인 규칙:
- 상품: gross = round(단가 × 100) × 수량 − round(할인 × 100)
- 배송: gross = round(가격 × 100) − round(할인 × 100)
- net = round_half_even(gross / (1 + vat_rate)), vat = gross − net
- gross <= 0 라인은 제외 (0원 Posting 금지)
"""

import logging
from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation

from core.constants import Defaults
from core.domain.errors import NoBillableLines, OrderDataError, TotalMismatch
from core.domain.orders import Order
from core.ledger.types import AccountCodes, BreakdownLine, LineAmounts, MonetaryBreakdown
from core.types import LineKind

logger = logging.getLogger(__name__)

MINOR_PER_MAJOR = Decimal(100)
DEFAULT_VAT_RATE = Decimal(Defaults.VAT_RATE)


def to_minor_units(amount: Decimal | str | int) -> int:
    """주 통화 단위 → minor unit (round-half-even)

    Args:
        amount: Decimal 또는 숫자 문자열 ("642.00")

    Returns:
        정수 minor unit

    Raises:
        OrderDataError: 파싱 불가
    """
    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
        minor = (value * MINOR_PER_MAJOR).quantize(Decimal(1), rounding=ROUND_HALF_EVEN)
    except (InvalidOperation, ValueError) as e:
        raise OrderDataError(f"Invalid monetary amount: {amount!r}") from e

    if not value.is_finite():
        raise OrderDataError(f"Invalid monetary amount: {amount!r}")

    return int(minor)


def split_gross(gross: int, vat_rate: Decimal = DEFAULT_VAT_RATE) -> LineAmounts:
    """gross → net/vat 분해

    net = round_half_even(gross / (1 + vat_rate)), vat = gross - net.
    floor/ceil 사용 금지.
    """
    if vat_rate < 0:
        raise ValueError(f"vat_rate는 음수일 수 없습니다: {vat_rate}")

    net = int(
        (Decimal(gross) / (Decimal(1) + vat_rate)).quantize(
            Decimal(1), rounding=ROUND_HALF_EVEN
        )
    )
    return LineAmounts(net=net, vat=gross - net, gross=gross)


def compute_breakdown(
    order: Order,
    vat_rate: Decimal = DEFAULT_VAT_RATE,
    accounts: AccountCodes | None = None,
    currency: str | None = None,
) -> MonetaryBreakdown:
    """주문 금액 분해

    Args:
        order: 주문 스냅샷
        vat_rate: 부가세율 (기본 0.25)
        accounts: 계정 코드 매핑
        currency: 통화 (None이면 주문 통화)

    Returns:
        MonetaryBreakdown

    Raises:
        OrderDataError: 음수 수량 등 잘못된 데이터
        NoBillableLines: 필터링 후 라인 없음
    """
    accounts = accounts or AccountCodes()
    lines: list[BreakdownLine] = []

    for item in order.line_items:
        if item.quantity < 0:
            raise OrderDataError(
                f"Negative quantity on line '{item.title}'",
                order_id=order.order_id,
            )

        gross = to_minor_units(item.unit_price) * item.quantity - to_minor_units(item.discount)
        if gross <= 0:
            logger.debug(
                "0원 상품 라인 제외",
                extra={"order_id": order.order_id, "title": item.title},
            )
            continue

        amounts = split_gross(gross, vat_rate)
        lines.append(BreakdownLine(
            description=_describe_item(item.title, item.quantity),
            account_code=accounts.sales,
            kind=LineKind.PRODUCT,
            net=amounts.net,
            vat=amounts.vat,
            gross=amounts.gross,
        ))

    for shipping in order.shipping_lines:
        gross = to_minor_units(shipping.price) - to_minor_units(shipping.discount)
        if gross <= 0:
            continue

        amounts = split_gross(gross, vat_rate)
        lines.append(BreakdownLine(
            description=shipping.title or "Shipping",
            account_code=accounts.shipping_account,
            kind=LineKind.SHIPPING,
            net=amounts.net,
            vat=amounts.vat,
            gross=amounts.gross,
        ))

    if not lines:
        raise NoBillableLines("Order has no billable lines", order_id=order.order_id)

    return MonetaryBreakdown(
        lines=tuple(lines),
        currency=currency or order.currency or Defaults.CURRENCY,
        vat_rate=vat_rate,
    )


def check_reported_total(
    breakdown: MonetaryBreakdown,
    order: Order,
    tolerance_minor: int = Defaults.TOTAL_TOLERANCE_MINOR,
) -> int | None:
    """계산된 gross와 주문 보고 합계 비교

    주문에 보고 합계가 없으면 계산값을 그대로 쓰고 비교하지 않는다.

    Returns:
        차이 (reported - computed, minor unit), 보고 합계가 없으면 None

    Raises:
        TotalMismatch: 허용 오차 초과
    """
    computed = breakdown.totals.gross
    if order.total_price is None:
        logger.info(
            "보고 합계 없음, 계산 gross 사용",
            extra={"order_id": order.order_id, "computed_minor": computed},
        )
        return None

    reported = to_minor_units(order.total_price)
    difference = reported - computed

    if abs(difference) > tolerance_minor:
        raise TotalMismatch(
            computed_minor=computed,
            reported_minor=reported,
            tolerance_minor=tolerance_minor,
            order_id=order.order_id,
        )

    if difference != 0:
        logger.info(
            "보고 합계와 반올림 차이 (허용 범위)",
            extra={"order_id": order.order_id, "difference_minor": difference},
        )

    return difference


def _describe_item(title: str, quantity: int) -> str:
    name = title or "Shopify product"
    return f"{quantity} x {name}" if quantity > 1 else name
