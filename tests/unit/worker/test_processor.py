"""
SettlementProcessor 테스트

Mock 원장 + Mock 주문 소스로 상태 머신 전체 경로 검증.
"""

from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import Any, Callable

import pytest

from adapters.fiken.rate_limiter import FikenTransientError, FikenValidationError
from adapters.mock.ledger_client import MockLedgerClient
from adapters.mock.order_source import MockOrderSource
from adapters.shopify.models import OrderSourceError
from core.config.loader import AccountingConfig
from core.domain.errors import OrderNotPaid
from core.domain.state_machines import SettlementStep
from core.ledger.posting_builder import PostingBuilder
from core.ledger.types import FeeConfig, PaymentLine
from core.storage.queue_store import QueueStore
from core.types import ErrorKind
from worker.counterparty import CounterpartyCache
from worker.processor import SettlementProcessor, error_kind_of, format_error

ORDER_KEY = "5012345678"


class SkewedBuilder(PostingBuilder):
    """조립 후 첫 라인 VAT를 1øre 틀어 놓는 빌더"""

    def build(self, order, breakdown, counterparty):
        posting = super().build(order, breakdown, counterparty)
        first = replace(posting.lines[0], vat_amount=posting.lines[0].vat_amount + 1)
        return replace(posting, lines=(first,) + posting.lines[1:])


class FeePaymentDownLedger(MockLedgerClient):
    """수수료 계정 결제만 1회 실패하는 원장"""

    def __init__(self, fee_account: str):
        super().__init__()
        self.fee_account = fee_account
        self.fee_failures = 1

    async def add_payment(self, posting_id: str, payment: PaymentLine) -> str:
        if payment.account == self.fee_account and self.fee_failures > 0:
            self.fee_failures -= 1
            self.state.calls.append("add_payment")
            raise FikenTransientError("down", status_code=503)
        return await super().add_payment(posting_id, payment)


@pytest.fixture
def processor(mock_ledger: MockLedgerClient, mock_source: MockOrderSource) -> SettlementProcessor:
    return SettlementProcessor(mock_ledger, mock_source, AccountingConfig())


@pytest.fixture
def fee_processor(mock_ledger: MockLedgerClient, mock_source: MockOrderSource) -> SettlementProcessor:
    """2.9% 결제 수수료"""
    accounting = AccountingConfig(fee=FeeConfig(percent=Decimal("0.029")))
    return SettlementProcessor(mock_ledger, mock_source, accounting)


class TestHappyPath:
    """정상 처리"""

    @pytest.mark.asyncio
    async def test_order_3403(self, processor: SettlementProcessor, mock_ledger: MockLedgerClient) -> None:
        """Posting 1건 + 은행 결제 64200 + 영수증"""
        result = await processor.process(ORDER_KEY, CounterpartyCache())

        assert result.success, result.error
        assert result.created
        assert result.business_key == "#3403"
        assert result.receipt_attached

        sale = mock_ledger.state.sales[result.posting_id]
        assert sale.sale_number == "#3403"
        assert (sale.net_amount, sale.vat_amount) == (51360, 12840)
        assert sale.settled

        assert mock_ledger.state.payments[result.posting_id] == [
            PaymentLine(payment_date=date(2024, 11, 2), account="1920:10001", amount=64200),
        ]

        documents = mock_ledger.state.documents[result.posting_id]
        assert [document.filename for document in documents] == ["shopify-order-3403.txt"]

        contact = next(iter(mock_ledger.state.contacts.values()))
        assert contact.name == "Kari Nordmann"
        assert contact.email == "Kari.Nordmann@Example.no"

        data = result.to_dict()
        assert (data["net"], data["vat"], data["gross"]) == (51360, 12840, 64200)

    @pytest.mark.asyncio
    async def test_fee_split(self, fee_processor: SettlementProcessor, mock_ledger: MockLedgerClient) -> None:
        """은행 62338 + 수수료 1862"""
        result = await fee_processor.process(ORDER_KEY, CounterpartyCache())

        assert result.success, result.error
        payments = mock_ledger.state.payments[result.posting_id]
        assert [(payment.account, payment.amount) for payment in payments] == [
            ("1920:10001", 62338),
            ("7770", 1862),
        ]
        assert len(result.payment_ids) == 2
        assert mock_ledger.state.sales[result.posting_id].settled

    @pytest.mark.asyncio
    async def test_cached_counterparty_reused(
        self,
        processor: SettlementProcessor,
        mock_ledger: MockLedgerClient,
        mock_source: MockOrderSource,
        order_factory: Callable[..., dict[str, Any]],
    ) -> None:
        """같은 배치 같은 이메일 → 거래처 1건"""
        mock_source.add(order_factory(order_id=7001, order_number=3404))
        cache = CounterpartyCache()

        first = await processor.process(ORDER_KEY, cache)
        second = await processor.process("7001", cache)

        assert first.success and second.success
        assert len(mock_ledger.state.contacts) == 1
        assert mock_ledger.state.calls.count("create_counterparty") == 1
        assert cache.hits == 1


class TestIdempotency:
    """재배달 / 재처리"""

    @pytest.mark.asyncio
    async def test_redelivery_creates_one_posting(
        self, processor: SettlementProcessor, mock_ledger: MockLedgerClient
    ) -> None:
        first = await processor.process(ORDER_KEY, CounterpartyCache())
        second = await processor.process(ORDER_KEY, CounterpartyCache())

        assert first.created
        assert second.success
        assert second.skipped_existing
        assert not second.created
        assert second.posting_id == first.posting_id
        assert mock_ledger.count_postings("#3403") == 1
        assert len(mock_ledger.state.payments[first.posting_id]) == 1
        assert len(mock_ledger.state.documents[first.posting_id]) == 1

    @pytest.mark.asyncio
    async def test_attach_failure_then_reprocess(
        self, processor: SettlementProcessor, mock_ledger: MockLedgerClient
    ) -> None:
        """첨부 실패는 DONE + receipt_attached=False, 재처리 시 첨부만"""
        mock_ledger.fail_next("attach_document", FikenTransientError("down", status_code=503))

        first = await processor.process(ORDER_KEY, CounterpartyCache())

        assert first.success
        assert not first.receipt_attached
        assert first.posting_id not in mock_ledger.state.documents

        second = await processor.process(ORDER_KEY, CounterpartyCache())

        assert second.success
        assert second.skipped_existing
        assert second.receipt_attached
        assert len(mock_ledger.state.documents[first.posting_id]) == 1
        assert len(mock_ledger.state.payments[first.posting_id]) == 1
        assert mock_ledger.state.calls.count("create_posting") == 1

    @pytest.mark.asyncio
    async def test_payment_failure_then_reprocess(
        self, processor: SettlementProcessor, mock_ledger: MockLedgerClient
    ) -> None:
        """결제 실패 후 재처리 → 기존 Posting에 결제"""
        mock_ledger.fail_next("add_payment", FikenTransientError("down", status_code=503))

        first = await processor.process(ORDER_KEY, CounterpartyCache())

        assert not first.success
        assert first.failed_step == SettlementStep.SETTLING_PAYMENT
        assert first.error_kind == ErrorKind.TRANSIENT_REMOTE
        assert first.posting_id is not None

        second = await processor.process(ORDER_KEY, CounterpartyCache())

        assert second.success
        assert second.skipped_existing
        assert mock_ledger.count_postings("#3403") == 1
        assert [payment.amount for payment in mock_ledger.state.payments[first.posting_id]] == [64200]
        assert second.receipt_attached

    @pytest.mark.asyncio
    async def test_fee_payment_failure_then_reprocess(self, mock_source: MockOrderSource) -> None:
        """은행 결제 후 수수료 결제 실패 → 재처리 시 수수료 라인만 등록"""
        accounting = AccountingConfig(fee=FeeConfig(percent=Decimal("0.029")))
        ledger = FeePaymentDownLedger(accounting.accounts.fee)
        processor = SettlementProcessor(ledger, mock_source, accounting)

        first = await processor.process(ORDER_KEY, CounterpartyCache())

        assert not first.success
        assert first.failed_step == SettlementStep.SETTLING_PAYMENT
        assert first.error_kind == ErrorKind.TRANSIENT_REMOTE
        assert ledger.state.sales[first.posting_id].total_paid == 62338

        second = await processor.process(ORDER_KEY, CounterpartyCache())

        assert second.success, second.error
        assert second.skipped_existing
        assert len(second.payment_ids) == 1
        payments = ledger.state.payments[first.posting_id]
        assert [payment.amount for payment in payments] == [62338, 1862]
        assert [payment.account for payment in payments] == ["1920:10001", "7770"]
        assert ledger.state.sales[first.posting_id].settled
        assert ledger.count_postings("#3403") == 1

    @pytest.mark.asyncio
    async def test_fully_paid_existing_registers_nothing(
        self, fee_processor: SettlementProcessor, mock_ledger: MockLedgerClient
    ) -> None:
        first = await fee_processor.process(ORDER_KEY, CounterpartyCache())
        mock_ledger.state.calls.clear()

        second = await fee_processor.process(ORDER_KEY, CounterpartyCache())

        assert second.success
        assert second.payment_ids == []
        assert "add_payment" not in mock_ledger.state.calls
        assert len(mock_ledger.state.payments[first.posting_id]) == 2

    @pytest.mark.asyncio
    async def test_partial_settlement(
        self, processor: SettlementProcessor, mock_ledger: MockLedgerClient
    ) -> None:
        """일부 결제된 기존 Posting → INVARIANT_VIOLATION"""
        first = await processor.process(ORDER_KEY, CounterpartyCache())
        sale = mock_ledger.state.sales[first.posting_id]
        mock_ledger.state.sales[first.posting_id] = replace(sale, total_paid=1000, settled=False)

        second = await processor.process(ORDER_KEY, CounterpartyCache())

        assert not second.success
        assert second.failed_step == SettlementStep.SKIPPING_EXISTING
        assert second.error_kind == ErrorKind.INVARIANT_VIOLATION
        assert "PartialSettlement" in second.error

    @pytest.mark.asyncio
    async def test_records_posting_on_queue(
        self,
        mock_ledger: MockLedgerClient,
        mock_source: MockOrderSource,
        queue_store: QueueStore,
    ) -> None:
        """생성 직후 posting_id를 큐에 기록"""
        processor = SettlementProcessor(mock_ledger, mock_source, queue_store=queue_store)
        await queue_store.enqueue(ORDER_KEY)
        await queue_store.claim_one()
        mock_ledger.fail_next("add_payment", FikenTransientError("down", status_code=503))

        result = await processor.process(ORDER_KEY, CounterpartyCache())

        entry = await queue_store.get(ORDER_KEY)
        assert entry.posting_id == result.posting_id
        assert entry.business_key == "#3403"
        assert entry.last_step == "CREATING"


class TestFailures:
    """실패 분류"""

    @pytest.mark.asyncio
    async def test_total_mismatch_before_counterparty(
        self,
        mock_ledger: MockLedgerClient,
        order_factory: Callable[..., dict[str, Any]],
    ) -> None:
        """보고 합계 불일치 → LOADING에서 실패, 원격 호출 없음"""
        source = MockOrderSource([order_factory(total_price="650.00")])
        processor = SettlementProcessor(mock_ledger, source)

        result = await processor.process(ORDER_KEY, CounterpartyCache())

        assert result.failed_step == SettlementStep.LOADING
        assert result.error_kind == ErrorKind.INVARIANT_VIOLATION
        assert "TotalMismatch" in result.error
        assert mock_ledger.state.calls == []
        assert mock_ledger.state.contacts == {}

    @pytest.mark.asyncio
    async def test_within_tolerance(
        self,
        mock_ledger: MockLedgerClient,
        order_factory: Callable[..., dict[str, Any]],
    ) -> None:
        """2øre 이내 차이는 허용"""
        source = MockOrderSource([order_factory(total_price="642.02")])
        processor = SettlementProcessor(mock_ledger, source)

        result = await processor.process(ORDER_KEY, CounterpartyCache())

        assert result.success, result.error

    @pytest.mark.asyncio
    async def test_missing_reported_total_uses_computed_gross(
        self,
        mock_ledger: MockLedgerClient,
        order_factory: Callable[..., dict[str, Any]],
    ) -> None:
        """보고 합계 없는 주문 → 계산 gross로 정산"""
        data = order_factory()
        data.pop("total_price", None)
        data.pop("current_total_price", None)
        processor = SettlementProcessor(mock_ledger, MockOrderSource([data]))

        result = await processor.process(ORDER_KEY, CounterpartyCache())

        assert result.success, result.error
        assert mock_ledger.state.sales[result.posting_id].gross_amount == 64200

    @pytest.mark.asyncio
    async def test_unpaid_order(
        self,
        mock_ledger: MockLedgerClient,
        order_factory: Callable[..., dict[str, Any]],
    ) -> None:
        source = MockOrderSource([order_factory(financial_status="pending")])
        processor = SettlementProcessor(mock_ledger, source)

        result = await processor.process(ORDER_KEY, CounterpartyCache())

        assert result.failed_step == SettlementStep.LOADING
        assert result.error_kind == ErrorKind.VALIDATION
        assert "OrderNotPaid" in result.error

    @pytest.mark.asyncio
    async def test_unsupported_currency(
        self,
        mock_ledger: MockLedgerClient,
        order_factory: Callable[..., dict[str, Any]],
    ) -> None:
        source = MockOrderSource([order_factory(currency="EUR")])
        processor = SettlementProcessor(mock_ledger, source)

        result = await processor.process(ORDER_KEY, CounterpartyCache())

        assert result.error_kind == ErrorKind.VALIDATION
        assert "EUR" in result.error

    @pytest.mark.asyncio
    async def test_order_not_found(self, processor: SettlementProcessor) -> None:
        result = await processor.process("404", CounterpartyCache())

        assert result.step == SettlementStep.FAILED
        assert result.error.startswith("[LOADING] OrderSourceError:")
        assert result.error_kind == ErrorKind.VALIDATION

    @pytest.mark.asyncio
    async def test_unbalanced_posting_blocks_create(
        self, processor: SettlementProcessor, mock_ledger: MockLedgerClient
    ) -> None:
        """합계 불일치 Posting은 생성 호출 전 차단"""
        processor.builder = SkewedBuilder()

        result = await processor.process(ORDER_KEY, CounterpartyCache())

        assert result.failed_step == SettlementStep.CREATING
        assert result.error_kind == ErrorKind.INVARIANT_VIOLATION
        assert "create_posting" not in mock_ledger.state.calls

    @pytest.mark.asyncio
    async def test_remote_rejection_keeps_body(
        self, processor: SettlementProcessor, mock_ledger: MockLedgerClient
    ) -> None:
        """원격 4xx 본문이 오류 문자열에 보존"""
        mock_ledger.fail_next(
            "create_posting",
            FikenValidationError("rejected", status_code=400, body='{"error":"bad vatType"}'),
        )

        result = await processor.process(ORDER_KEY, CounterpartyCache())

        assert result.failed_step == SettlementStep.CREATING
        assert result.error == (
            '[CREATING] FikenValidationError: rejected | {"error":"bad vatType"}'
        )


class TestDryRun:
    """dry-run"""

    @pytest.mark.asyncio
    async def test_no_remote_writes(self, fee_processor: SettlementProcessor, mock_ledger: MockLedgerClient) -> None:
        """읽기 호출만 발생"""
        result = await fee_processor.process(ORDER_KEY, CounterpartyCache(), dry_run=True)

        assert result.success, result.error
        assert result.dry_run
        assert not result.created
        assert result.posting_id is None
        assert mock_ledger.state.calls == ["search_counterparty", "search_posting"]
        assert mock_ledger.state.sales == {}
        assert mock_ledger.state.contacts == {}
        assert result.outcome.plan.bank_amount == 62338


class TestErrorHelpers:
    def test_format_error_with_body(self) -> None:
        error = FikenValidationError("rejected", status_code=400, body="{}")

        assert format_error(SettlementStep.CREATING, error) == "[CREATING] FikenValidationError: rejected | {}"

    def test_format_error_plain(self) -> None:
        assert format_error("LOADING", RuntimeError("boom")) == "[LOADING] RuntimeError: boom"

    def test_error_kind_of(self) -> None:
        assert error_kind_of(OrderNotPaid("x")) == ErrorKind.VALIDATION
        assert error_kind_of(OrderSourceError("down", status_code=503)) == ErrorKind.TRANSIENT_REMOTE
        assert error_kind_of(RuntimeError("boom")) == ErrorKind.UNEXPECTED
