"""
Mock 어댑터

테스트/dry-run용 Mock 구현체 제공.
Protocol 준수하여 실제 구현체와 교체 가능.
"""

from adapters.mock.ledger_client import MockLedgerClient, MockLedgerState
from adapters.mock.order_source import MockOrderSource

__all__ = [
    "MockLedgerClient",
    "MockLedgerState",
    "MockOrderSource",
]
