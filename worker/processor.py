"""
Settlement Processor

주문 1건을 정산 상태 머신에 따라 처리.
LOADING → RESOLVING_COUNTERPARTY → BUILDING_POSTING → CHECKING_IDEMPOTENCY
→ CREATING | SKIPPING_EXISTING → SETTLING_PAYMENT → ATTACHING_RECEIPT → DONE

모든 단계는 재진입 가능 (원격 원장 검색으로 중복 생성 방지).
큐 상태 변경은 호출자(SettlementWorker)가 담당.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from adapters.fiken.rate_limiter import FikenApiError
from adapters.interfaces import ILedgerClient, IOrderSource, IReceiptRenderer
from adapters.models import RemotePosting
from core.config.loader import AccountingConfig
from core.domain.errors import OrderDataError, OrderNotPaid, PartialSettlement
from core.domain.orders import Order
from core.domain.state_machines import SettlementStateMachine, SettlementStep
from core.ledger.money import check_reported_total, compute_breakdown
from core.ledger.posting_builder import (
    PostingBuilder,
    verify_against_breakdown,
    verify_lines_balanced,
)
from core.ledger.settlement import plan_settlement
from core.ledger.types import MonetaryBreakdown, PaymentLine, SettlementOutcome, SettlementPlan
from core.storage.mirror_store import MirrorStore
from core.storage.queue_store import QueueStore
from core.types import ErrorKind
from core.utils.idempotency import make_business_key
from worker.counterparty import CounterpartyCache, CounterpartyResolver
from worker.idempotency_guard import IdempotencyGuard
from worker.receipts import TextReceiptRenderer, has_receipt

logger = logging.getLogger(__name__)


@dataclass
class ProcessResult:
    """주문 1건 처리 결과"""

    order_key: str
    step: SettlementStep = SettlementStep.LOADING
    business_key: str | None = None
    posting_id: str | None = None
    created: bool = False
    skipped_existing: bool = False
    receipt_attached: bool = False
    payment_ids: list[str] = field(default_factory=list)
    failed_step: SettlementStep | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None
    dry_run: bool = False
    outcome: SettlementOutcome | None = None

    @property
    def success(self) -> bool:
        return self.step == SettlementStep.DONE

    def to_dict(self) -> dict[str, Any]:
        totals = self.outcome.breakdown.totals if self.outcome else None
        return {
            "order_key": self.order_key,
            "step": self.step.value,
            "business_key": self.business_key,
            "posting_id": self.posting_id,
            "created": self.created,
            "skipped_existing": self.skipped_existing,
            "receipt_attached": self.receipt_attached,
            "payment_ids": list(self.payment_ids),
            "failed_step": self.failed_step.value if self.failed_step else None,
            "error": self.error,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "dry_run": self.dry_run,
            "gross": totals.gross if totals else None,
            "net": totals.net if totals else None,
            "vat": totals.vat if totals else None,
        }


def error_kind_of(error: BaseException) -> ErrorKind:
    """예외 → ErrorKind (kind 속성이 없으면 UNEXPECTED)"""
    kind = getattr(error, "kind", None)
    return kind if isinstance(kind, ErrorKind) else ErrorKind.UNEXPECTED


def format_error(step: SettlementStep | str, error: BaseException) -> str:
    """큐에 기록할 오류 문자열: [STEP] ExcClass: message | body"""
    step_name = step.value if isinstance(step, SettlementStep) else step
    message = getattr(error, "message", None) or str(error)
    text = f"[{step_name}] {type(error).__name__}: {message}"
    body = getattr(error, "body", None)
    if body:
        text += f" | {body}"
    return text


class SettlementProcessor:
    """주문 정산 처리기

    Args:
        ledger: 원장 클라이언트
        order_source: 주문 소스
        accounting: 회계 규칙 설정
        renderer: 영수증 렌더러 (기본 plain-text)
        mirror_store: Posting 발견 시 미러 갱신 (선택)
        queue_store: Posting 생성 직후 중간 기록 (선택)

    사용 예시:
    ```python
    processor = SettlementProcessor(ledger, order_source, settings.accounting)

    cache = CounterpartyCache()
    result = await processor.process("5012345678", cache)
    if not result.success:
        print(result.error)
    ```
    """

    def __init__(
        self,
        ledger: ILedgerClient,
        order_source: IOrderSource,
        accounting: AccountingConfig | None = None,
        renderer: IReceiptRenderer | None = None,
        mirror_store: MirrorStore | None = None,
        queue_store: QueueStore | None = None,
    ):
        self.ledger = ledger
        self.order_source = order_source
        self.accounting = accounting or AccountingConfig()
        self.renderer = renderer or TextReceiptRenderer()
        self.queue_store = queue_store

        self.resolver = CounterpartyResolver(
            ledger,
            fallback_name=self.accounting.fallback_customer_name,
            default_country=self.accounting.default_country,
        )
        self.guard = IdempotencyGuard(ledger, mirror_store)
        self.builder = PostingBuilder(vat_type=self.accounting.vat_type)

    async def process(
        self,
        order_key: str,
        cache: CounterpartyCache,
        dry_run: bool = False,
        order: Order | None = None,
    ) -> ProcessResult:
        """주문 1건 처리

        예외를 밖으로 던지지 않고 FAILED 결과로 변환.

        Args:
            order_key: 주문 ID (큐 키)
            cache: 배치 범위 거래처 캐시
            dry_run: True면 원격 쓰기 없음
            order: 이미 조회한 주문 (백필 dry-run). None이면 소스에서 재조회.
        """
        machine = SettlementStateMachine(order_key)
        result = ProcessResult(order_key=order_key, dry_run=dry_run)

        try:
            await self._run(machine, result, order_key, cache, dry_run, order)
        except Exception as e:
            failed_step = SettlementStep(machine.state)
            machine.fail()

            result.step = SettlementStep.FAILED
            result.failed_step = failed_step
            result.error_kind = error_kind_of(e)
            result.error = format_error(failed_step, e)

            logger.error(
                "주문 정산 실패",
                extra={
                    "order_id": order_key,
                    "step": failed_step.value,
                    "kind": result.error_kind.value,
                    "error": getattr(e, "message", None) or str(e),
                    "body": getattr(e, "body", None),
                },
                exc_info=result.error_kind == ErrorKind.UNEXPECTED,
            )

        return result

    async def _run(
        self,
        machine: SettlementStateMachine,
        result: ProcessResult,
        order_key: str,
        cache: CounterpartyCache,
        dry_run: bool,
        order: Order | None,
    ) -> None:
        # 1. LOADING: 재조회 + 금액 분해 (거래처 생성 전에 실패하도록)
        if order is None:
            order = await self.order_source.get_order(order_key)
        result.business_key = make_business_key(order)
        breakdown = self._load(order)

        # 2. RESOLVING_COUNTERPARTY
        machine.transition(SettlementStep.RESOLVING_COUNTERPARTY)
        counterparty = await self.resolver.resolve(order, cache, dry_run=dry_run)

        # 3. BUILDING_POSTING
        machine.transition(SettlementStep.BUILDING_POSTING)
        posting = self.builder.build(order, breakdown, counterparty)
        outcome = SettlementOutcome(posting=posting, breakdown=breakdown)
        result.outcome = outcome

        # 4. CHECKING_IDEMPOTENCY
        machine.transition(SettlementStep.CHECKING_IDEMPOTENCY)
        existing = await self.guard.find_existing(
            posting.business_key, refresh_mirror=not dry_run
        )

        if existing is None:
            # 5a. CREATING
            machine.transition(SettlementStep.CREATING)
            verify_lines_balanced(posting)
            verify_against_breakdown(posting, breakdown)

            if dry_run:
                logger.info(
                    "dry-run: Posting 생성 생략",
                    extra={"order_id": order.order_id, "business_key": posting.business_key},
                )
            else:
                result.posting_id = await self.ledger.create_posting(posting)
                result.created = True
                logger.info(
                    "Posting 생성",
                    extra={
                        "order_id": order.order_id,
                        "business_key": posting.business_key,
                        "posting_id": result.posting_id,
                        "gross": breakdown.totals.gross,
                    },
                )
                if self.queue_store is not None:
                    await self.queue_store.record_posting(
                        order_key,
                        posting.business_key,
                        result.posting_id,
                        last_step=SettlementStep.CREATING.value,
                    )

            plan = plan_settlement(breakdown.totals.gross, self.accounting.fee)
            payments = self._payment_lines(plan, posting.posting_date)
            receipt_present = False
        else:
            # 5b. SKIPPING_EXISTING
            machine.transition(SettlementStep.SKIPPING_EXISTING)
            result.skipped_existing = True
            result.posting_id = existing.sale_id

            sale = await self.ledger.get_posting(existing.sale_id)
            plan = plan_settlement(sale.gross_amount, self.accounting.fee)
            payments = self._outstanding_payments(
                sale, breakdown, order, self._payment_lines(plan, posting.posting_date)
            )
            receipt_present = has_receipt(sale, order)

            logger.info(
                "기존 Posting 발견, 생성 생략",
                extra={
                    "order_id": order.order_id,
                    "business_key": posting.business_key,
                    "posting_id": sale.sale_id,
                    "total_paid": sale.total_paid,
                    "outstanding_payments": len(payments),
                    "receipt_present": receipt_present,
                },
            )

        # 6. SETTLING_PAYMENT
        outcome.plan = plan
        if payments:
            machine.transition(SettlementStep.SETTLING_PAYMENT)
            await self._settle(result, outcome, payments, dry_run)

        # 7. ATTACHING_RECEIPT
        if receipt_present:
            result.receipt_attached = True
        else:
            machine.transition(SettlementStep.ATTACHING_RECEIPT)
            result.receipt_attached = await self._attach(result, order, outcome, dry_run)

        machine.transition(SettlementStep.DONE)
        result.step = SettlementStep.DONE

        logger.info(
            "주문 정산 완료",
            extra={
                "order_id": order.order_id,
                "business_key": posting.business_key,
                "posting_id": result.posting_id,
                "posting_created": result.created,
                "receipt_attached": result.receipt_attached,
                "dry_run": dry_run,
            },
        )

    def _load(self, order: Order) -> MonetaryBreakdown:
        """주문 검증 + 금액 분해"""
        if not order.is_paid:
            raise OrderNotPaid(
                f"Order financial status is '{order.financial_status.value}', expected 'paid'",
                order_id=order.order_id,
            )

        expected = self.accounting.currency
        if order.currency and order.currency.upper() != expected.upper():
            raise OrderDataError(
                f"Order currency {order.currency} is not supported (expected {expected})",
                order_id=order.order_id,
            )

        breakdown = compute_breakdown(
            order,
            vat_rate=self.accounting.vat_rate,
            accounts=self.accounting.accounts,
            currency=expected,
        )
        check_reported_total(breakdown, order, self.accounting.total_tolerance_minor)
        return breakdown

    def _payment_lines(self, plan: SettlementPlan, payment_date: date) -> list[PaymentLine]:
        """결제 계획 → 등록 순서의 결제 라인 (은행 → 수수료)"""
        accounts = self.accounting.accounts
        lines = [PaymentLine(payment_date=payment_date, account=accounts.bank, amount=plan.bank_amount)]
        if plan.fee_amount > 0:
            lines.append(
                PaymentLine(payment_date=payment_date, account=accounts.fee, amount=plan.fee_amount)
            )
        return lines

    def _outstanding_payments(
        self,
        sale: RemotePosting,
        breakdown: MonetaryBreakdown,
        order: Order,
        lines: list[PaymentLine],
    ) -> list[PaymentLine]:
        """기존 Posting에 아직 등록되지 않은 결제 라인

        결제 라인은 항상 같은 순서로 등록되므로, 이미 결제된 금액이
        앞쪽 라인 합계와 일치하면 나머지만 등록하면 된다.
        어느 접두 합계와도 맞지 않으면 운영자 확인 대상.
        """
        if sale.gross_amount != breakdown.totals.gross:
            logger.warning(
                "기존 Posting 금액이 계산값과 다름",
                extra={
                    "order_id": order.order_id,
                    "posting_id": sale.sale_id,
                    "remote_gross": sale.gross_amount,
                    "computed_gross": breakdown.totals.gross,
                },
            )

        if sale.settled:
            return []
        if sale.gross_amount > 0 and sale.total_paid >= sale.gross_amount:
            return []

        covered = 0
        for index, line in enumerate(lines):
            if sale.total_paid == covered:
                return lines[index:]
            covered += line.amount

        raise PartialSettlement(
            f"Existing sale {sale.sale_id} is partially paid "
            f"({sale.total_paid} of {sale.gross_amount})",
            order_id=order.order_id,
        )

    async def _settle(
        self,
        result: ProcessResult,
        outcome: SettlementOutcome,
        payments: list[PaymentLine],
        dry_run: bool,
    ) -> None:
        """결제 등록 (은행 → 수수료 순서)"""
        plan = outcome.plan

        if dry_run or result.posting_id is None:
            logger.info(
                "dry-run: 결제 등록 생략",
                extra={
                    "order_id": outcome.posting.order_id,
                    "bank_amount": plan.bank_amount,
                    "fee_amount": plan.fee_amount,
                },
            )
            return

        for payment in payments:
            payment_id = await self.ledger.add_payment(result.posting_id, payment)
            result.payment_ids.append(payment_id)
            outcome.payment_ids.append(payment_id)

        logger.info(
            "결제 등록",
            extra={
                "order_id": outcome.posting.order_id,
                "posting_id": result.posting_id,
                "bank_amount": plan.bank_amount,
                "fee_amount": plan.fee_amount,
                "fee_dropped": plan.fee_dropped,
                "registered": sum(payment.amount for payment in payments),
            },
        )

    async def _attach(
        self,
        result: ProcessResult,
        order: Order,
        outcome: SettlementOutcome,
        dry_run: bool,
    ) -> bool:
        """영수증 첨부

        실패는 치명적이지 않음: 주문은 DONE, receipt_attached=False로 남고
        운영자 재큐잉 시 기존 Posting 경로에서 첨부만 다시 시도.
        """
        document = self.renderer.render(order, outcome)

        if dry_run or result.posting_id is None:
            logger.info(
                "dry-run: 영수증 첨부 생략",
                extra={"order_id": order.order_id, "document": document.filename},
            )
            return False

        try:
            await self.ledger.attach_document(result.posting_id, document)
        except FikenApiError as e:
            logger.warning(
                "영수증 첨부 실패",
                extra={
                    "order_id": order.order_id,
                    "step": SettlementStep.ATTACHING_RECEIPT.value,
                    "posting_id": result.posting_id,
                    "kind": e.kind.value,
                    "status": e.status_code,
                    "body": e.body,
                },
            )
            return False

        logger.info(
            "영수증 첨부",
            extra={
                "order_id": order.order_id,
                "posting_id": result.posting_id,
                "document": document.filename,
            },
        )
        return True
