"""
정산 금액 타입

모든 금액은 정수 minor unit (øre). 주 통화 단위 변환은 표시용으로만 사용.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any

from core.constants import Defaults
from core.types import LineKind


@dataclass(frozen=True)
class AccountCodes:
    """계정 코드 매핑

    shipping이 None이면 sales 계정 사용.
    """

    sales: str = Defaults.SALES_ACCOUNT
    shipping: str | None = None
    bank: str = Defaults.BANK_ACCOUNT
    fee: str = Defaults.FEE_ACCOUNT

    @property
    def shipping_account(self) -> str:
        return self.shipping or self.sales


@dataclass(frozen=True)
class FeeConfig:
    """결제 대행 수수료 설정

    percent: 비율 (0.029 = 2.9%)
    fixed_minor: 고정 수수료 (øre)
    """

    percent: Decimal = Decimal("0")
    fixed_minor: int = 0

    @property
    def is_enabled(self) -> bool:
        return self.percent > 0 or self.fixed_minor > 0


@dataclass(frozen=True)
class LineAmounts:
    """net/vat/gross 묶음"""

    net: int
    vat: int
    gross: int

    @property
    def is_balanced(self) -> bool:
        return self.net + self.vat == self.gross

    def __add__(self, other: "LineAmounts") -> "LineAmounts":
        return LineAmounts(
            net=self.net + other.net,
            vat=self.vat + other.vat,
            gross=self.gross + other.gross,
        )


ZERO_AMOUNTS = LineAmounts(net=0, vat=0, gross=0)


@dataclass(frozen=True)
class BreakdownLine:
    """breakdown 라인 1개 (수량 1로 접힌 상태)"""

    description: str
    account_code: str
    kind: LineKind
    net: int
    vat: int
    gross: int

    @property
    def amounts(self) -> LineAmounts:
        return LineAmounts(net=self.net, vat=self.vat, gross=self.gross)


@dataclass(frozen=True)
class MonetaryBreakdown:
    """주문 1건의 금액 분해

    합계는 라인 합으로만 계산 (주문 합계에서 역산하지 않음).
    """

    lines: tuple[BreakdownLine, ...]
    currency: str
    vat_rate: Decimal

    @property
    def totals(self) -> LineAmounts:
        total = ZERO_AMOUNTS
        for line in self.lines:
            total = total + line.amounts
        return total

    @property
    def is_balanced(self) -> bool:
        return all(line.amounts.is_balanced for line in self.lines) and self.totals.is_balanced


@dataclass(frozen=True)
class PostingLine:
    """Posting 라인 (Fiken sale line)"""

    description: str
    account: str
    vat_type: str
    net_amount: int
    vat_amount: int
    quantity: int = 1

    @property
    def gross_amount(self) -> int:
        return self.net_amount + self.vat_amount

    def to_payload(self) -> dict[str, Any]:
        return {
            "description": self.description,
            "account": self.account,
            "vatType": self.vat_type,
            "netPrice": self.net_amount,
            "netAmount": self.net_amount,
            "vat": self.vat_amount,
            "vatAmount": self.vat_amount,
            "quantity": self.quantity,
        }


@dataclass(frozen=True)
class PostingRequest:
    """원격 원장 생성 요청 (external sale)

    business_key는 Fiken saleNumber로 전송되어 중복 탐지에 사용.
    """

    business_key: str
    order_id: str
    posting_date: date
    currency: str
    counterparty_id: str
    lines: tuple[PostingLine, ...]
    kind: str = "external_invoice"

    @property
    def totals(self) -> LineAmounts:
        net = sum(line.net_amount for line in self.lines)
        vat = sum(line.vat_amount for line in self.lines)
        return LineAmounts(net=net, vat=vat, gross=net + vat)

    def to_payload(self) -> dict[str, Any]:
        """Fiken POST /sales 본문"""
        return {
            "kind": self.kind,
            "saleNumber": self.business_key,
            "date": self.posting_date.isoformat(),
            "currency": self.currency,
            "customerId": self._customer_id_value(),
            "lines": [line.to_payload() for line in self.lines],
        }

    def _customer_id_value(self) -> int | str:
        # Fiken contactId는 숫자형
        return int(self.counterparty_id) if self.counterparty_id.isdigit() else self.counterparty_id


@dataclass(frozen=True)
class PaymentLine:
    """결제 등록 1건"""

    payment_date: date
    account: str
    amount: int

    def to_payload(self) -> dict[str, Any]:
        return {
            "date": self.payment_date.isoformat(),
            "account": self.account,
            "amount": self.amount,
        }


@dataclass(frozen=True)
class SettlementPlan:
    """결제 분할 계획

    bank_amount + fee_amount == gross
    """

    gross: int
    bank_amount: int
    fee_amount: int
    fee_dropped: bool = False

    @property
    def is_balanced(self) -> bool:
        return self.bank_amount + self.fee_amount == self.gross


@dataclass
class SettlementOutcome:
    """주문 1건 정산 결과 (영수증 렌더링 및 로깅용)"""

    posting: PostingRequest
    breakdown: MonetaryBreakdown
    plan: SettlementPlan | None = None
    payment_ids: list[str] = field(default_factory=list)


def format_minor(amount: int) -> str:
    """minor unit → '123.45' 문자열"""
    sign = "-" if amount < 0 else ""
    whole, cents = divmod(abs(amount), 100)
    return f"{sign}{whole}.{cents:02d}"
