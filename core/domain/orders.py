"""
주문 도메인 모델

주문 소스(Shopify)에서 가져온 불변 스냅샷.
금액은 주 통화 단위 Decimal (float 사용 금지).
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from core.types import FinancialStatus


@dataclass(frozen=True)
class OrderLineItem:
    """상품 라인

    discount는 라인 전체 할인 금액 (단가 할인이 아님).
    """

    title: str
    unit_price: Decimal
    quantity: int
    discount: Decimal = Decimal("0")


@dataclass(frozen=True)
class ShippingLine:
    """배송 라인"""

    title: str
    price: Decimal
    discount: Decimal = Decimal("0")


@dataclass(frozen=True)
class BillingAddress:
    """청구 주소"""

    address1: str | None = None
    address2: str | None = None
    postal_code: str | None = None
    city: str | None = None
    country_code: str | None = None


@dataclass(frozen=True)
class Contact:
    """주문 연락처

    first_name/last_name은 고객 정보 우선, 없으면 배송지 정보.
    """

    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    company: str | None = None
    address_name: str | None = None

    @property
    def full_name(self) -> str:
        """이름 + 성 (공백 정리)"""
        return f"{self.first_name or ''} {self.last_name or ''}".strip()


@dataclass(frozen=True)
class Order:
    """주문 스냅샷

    이벤트 본문은 신뢰하지 않고 큐에서 꺼낼 때 ID로 다시 조회.
    """

    order_id: str
    order_number: str
    financial_status: FinancialStatus
    currency: str
    total_price: Decimal | None
    total_tax: Decimal
    line_items: tuple[OrderLineItem, ...]
    shipping_lines: tuple[ShippingLine, ...] = ()
    contact: Contact = field(default_factory=Contact)
    billing_address: BillingAddress | None = None
    processed_at: str | None = None
    created_at: str | None = None
    total_discounts: Decimal = Decimal("0")
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def is_paid(self) -> bool:
        return self.financial_status == FinancialStatus.PAID

    @property
    def display_number(self) -> str:
        """사람이 읽는 주문 번호 (order_number 없으면 ID)"""
        return self.order_number or self.order_id
