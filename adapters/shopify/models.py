"""
Shopify 주문 JSON 파싱

Shopify Admin REST 주문 JSON → core.domain.orders.Order.
필드 형태가 버전/채널에 따라 달라서 여러 경로를 순서대로 시도.
금액은 Decimal로만 파싱 (float 금지).
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Any

from core.domain.errors import OrderDataError
from core.domain.orders import (
    BillingAddress,
    Contact,
    Order,
    OrderLineItem,
    ShippingLine,
)
from core.types import ErrorKind, FinancialStatus

_DIGITS = re.compile(r"\d+")


class OrderSourceError(Exception):
    """주문 소스 조회 실패

    not_found=True면 재시도해도 소용없는 오류 (VALIDATION).
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: str | None = None,
        not_found: bool = False,
    ):
        self.message = message
        self.status_code = status_code
        self.body = body
        self.not_found = not_found
        super().__init__(message)

    @property
    def kind(self) -> ErrorKind:
        if self.not_found or (
            self.status_code is not None and 400 <= self.status_code < 500 and self.status_code != 429
        ):
            return ErrorKind.VALIDATION
        return ErrorKind.TRANSIENT_REMOTE


def _decimal(value: Any, field_name: str, order_id: str | None = None) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    if isinstance(value, float):
        value = repr(value)
    try:
        parsed = Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise OrderDataError(f"Invalid amount in {field_name}: {value!r}", order_id=order_id) from e
    if not parsed.is_finite():
        raise OrderDataError(f"Invalid amount in {field_name}: {value!r}", order_id=order_id)
    return parsed


def _money(node: dict[str, Any], key: str, order_id: str | None) -> Decimal:
    """price 또는 price_set.shop_money.amount"""
    if node.get(key) not in (None, ""):
        return _decimal(node.get(key), key, order_id)

    money_set = node.get(f"{key}_set") or {}
    shop_money = money_set.get("shop_money") or {}
    return _decimal(shop_money.get("amount"), f"{key}_set", order_id)


def _allocated_discount(node: dict[str, Any], order_id: str | None) -> Decimal:
    """discount_allocations 합계, 없으면 total_discount"""
    allocations = node.get("discount_allocations") or []
    if allocations:
        return sum(
            (_decimal(item.get("amount"), "discount_allocations", order_id) for item in allocations),
            Decimal("0"),
        )
    return _decimal(node.get("total_discount"), "total_discount", order_id)


def _quantity(value: Any, order_id: str | None) -> int:
    if value is None or value == "":
        return 1
    if isinstance(value, bool):
        raise OrderDataError(f"Invalid quantity: {value!r}", order_id=order_id)
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise OrderDataError(f"Invalid quantity: {value!r}", order_id=order_id) from e


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _order_number(data: dict[str, Any]) -> str:
    """order_number, 없으면 name('#3403')의 숫자"""
    number = data.get("order_number")
    if number not in (None, ""):
        return str(number)

    match = _DIGITS.search(str(data.get("name") or ""))
    return match.group(0) if match else ""


def parse_contact(data: dict[str, Any]) -> Contact:
    """고객 → 배송지 → 회사 순으로 이름/이메일 결정"""
    customer = data.get("customer") or {}
    shipping = data.get("shipping_address") or {}
    billing = data.get("billing_address") or {}

    email = (
        _text(customer.get("email"))
        or _text(data.get("email"))
        or _text(data.get("contact_email"))
    )

    return Contact(
        email=email,
        first_name=_text(customer.get("first_name")) or _text(shipping.get("first_name")),
        last_name=_text(customer.get("last_name")) or _text(shipping.get("last_name")),
        company=(
            _text(customer.get("company"))
            or _text(billing.get("company"))
            or _text(shipping.get("company"))
        ),
        address_name=_text(shipping.get("name")) or _text(billing.get("name")),
    )


def parse_billing_address(data: dict[str, Any]) -> BillingAddress | None:
    billing = data.get("billing_address")
    if not billing:
        return None

    return BillingAddress(
        address1=_text(billing.get("address1")),
        address2=_text(billing.get("address2")),
        postal_code=_text(billing.get("zip")),
        city=_text(billing.get("city")),
        country_code=_text(billing.get("country_code")),
    )


def parse_order(data: dict[str, Any]) -> Order:
    """Shopify 주문 JSON → Order

    Raises:
        OrderDataError: id 누락, 금액/수량 파싱 실패
    """
    if not isinstance(data, dict):
        raise OrderDataError("Order payload is not an object")

    # 단건 조회 응답은 {"order": {...}} 형태
    if "order" in data and isinstance(data["order"], dict) and "id" not in data:
        data = data["order"]

    raw_id = data.get("id")
    if raw_id in (None, ""):
        raise OrderDataError("Order without id")
    order_id = str(raw_id)

    line_items = tuple(
        OrderLineItem(
            title=_text(item.get("title")) or _text(item.get("name")) or "",
            unit_price=_money(item, "price", order_id),
            quantity=_quantity(item.get("quantity"), order_id),
            discount=_allocated_discount(item, order_id),
        )
        for item in data.get("line_items") or []
    )

    shipping_lines = tuple(
        ShippingLine(
            title=_text(line.get("title")) or "Shipping",
            price=_money(line, "price", order_id),
            discount=_allocated_discount(line, order_id),
        )
        for line in data.get("shipping_lines") or []
    )

    total_price_value = data.get("total_price")
    if total_price_value in (None, ""):
        total_price_value = data.get("current_total_price")

    return Order(
        order_id=order_id,
        order_number=_order_number(data),
        financial_status=FinancialStatus.parse(data.get("financial_status")),
        currency=str(data.get("currency") or "").upper(),
        total_price=(
            None
            if total_price_value in (None, "")
            else _decimal(total_price_value, "total_price", order_id)
        ),
        total_tax=_decimal(data.get("total_tax"), "total_tax", order_id),
        line_items=line_items,
        shipping_lines=shipping_lines,
        contact=parse_contact(data),
        billing_address=parse_billing_address(data),
        processed_at=_text(data.get("processed_at")),
        created_at=_text(data.get("created_at")),
        total_discounts=_decimal(data.get("total_discounts"), "total_discounts", order_id),
        raw=data,
    )
