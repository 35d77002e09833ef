"""
정산 계산 레이어

주문 → 금액 분해(money) → Posting 조립(posting_builder) → 결제 분할(settlement).
모든 금액은 정수 minor unit. I/O 없음.

사용 예시:
```python
from core.ledger import PostingBuilder, compute_breakdown, plan_settlement

breakdown = compute_breakdown(order, vat_rate=Decimal("0.25"))
posting = PostingBuilder().build(order, breakdown, counterparty)
plan = plan_settlement(posting.totals.gross, FeeConfig(percent=Decimal("0.029")))
```
"""

from core.ledger.money import check_reported_total, compute_breakdown, split_gross, to_minor_units
from core.ledger.posting_builder import PostingBuilder, derive_breakdown_totals
from core.ledger.settlement import compute_fee, plan_settlement
from core.ledger.types import (
    AccountCodes,
    BreakdownLine,
    FeeConfig,
    LineAmounts,
    MonetaryBreakdown,
    PaymentLine,
    PostingLine,
    PostingRequest,
    SettlementOutcome,
    SettlementPlan,
)

__all__ = [
    # 계산
    "compute_breakdown",
    "check_reported_total",
    "split_gross",
    "to_minor_units",
    "compute_fee",
    "plan_settlement",
    # 조립
    "PostingBuilder",
    "derive_breakdown_totals",
    # 타입
    "AccountCodes",
    "BreakdownLine",
    "FeeConfig",
    "LineAmounts",
    "MonetaryBreakdown",
    "PaymentLine",
    "PostingLine",
    "PostingRequest",
    "SettlementOutcome",
    "SettlementPlan",
]
