"""
어댑터 레이어

외부 서비스(Fiken 원장, Shopify 주문 소스, DB)와의 연동을 담당.
Protocol 기반 인터페이스로 Mock 교체 가능.
"""

from adapters.models import (
    Counterparty,
    CounterpartyDraft,
    LedgerAccount,
    LedgerProduct,
    Page,
    ReceiptDocument,
    RemotePosting,
)
from adapters.interfaces import (
    ILedgerClient,
    IOrderSource,
    IReceiptRenderer,
)

__all__ = [
    # Interfaces
    "ILedgerClient",
    "IOrderSource",
    "IReceiptRenderer",
    # Models
    "Counterparty",
    "CounterpartyDraft",
    "LedgerAccount",
    "LedgerProduct",
    "Page",
    "ReceiptDocument",
    "RemotePosting",
]
