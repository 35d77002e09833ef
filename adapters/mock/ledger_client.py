"""
Mock 원장 클라이언트

테스트/dry-run용 메모리 내 Fiken 대체.
ILedgerClient Protocol 준수.
"""

from dataclasses import dataclass, field, replace

from adapters.fiken.rate_limiter import FikenValidationError
from adapters.models import (
    Counterparty,
    CounterpartyDraft,
    LedgerAccount,
    LedgerProduct,
    Page,
    ReceiptDocument,
    RemoteAttachment,
    RemotePosting,
)
from core.ledger.types import PaymentLine, PostingRequest


@dataclass
class MockLedgerState:
    """Mock 상태 (메모리 내 저장)"""

    # contact_id -> Counterparty
    contacts: dict[str, Counterparty] = field(default_factory=dict)

    # sale_id -> RemotePosting
    sales: dict[str, RemotePosting] = field(default_factory=dict)

    # sale_id -> PostingRequest (생성 요청 원본)
    requests: dict[str, PostingRequest] = field(default_factory=dict)

    # sale_id -> [PaymentLine]
    payments: dict[str, list[PaymentLine]] = field(default_factory=dict)

    # sale_id -> [ReceiptDocument]
    documents: dict[str, list[ReceiptDocument]] = field(default_factory=dict)

    accounts: list[LedgerAccount] = field(default_factory=list)

    products: list[LedgerProduct] = field(default_factory=list)

    # 메서드 이름 -> 다음 호출에서 발생시킬 예외 (1회성)
    failures: dict[str, Exception] = field(default_factory=dict)

    # 호출 기록 (메서드 이름 순서)
    calls: list[str] = field(default_factory=list)

    id_counter: int = 1000


class MockLedgerClient:
    """Mock 원장 클라이언트

    사용 예시:
    ```python
    ledger = MockLedgerClient()

    # 다음 첨부 실패 시뮬레이션
    ledger.fail_next("attach_document", FikenTransientError("down", status_code=503))

    sale_id = await ledger.create_posting(posting)
    assert ledger.count_postings("#3403") == 1
    ```
    """

    def __init__(self, state: MockLedgerState | None = None):
        self.state = state or MockLedgerState()

    # -------------------------------------------------------------------------
    # 상태 조작 메서드 (테스트용)
    # -------------------------------------------------------------------------

    def fail_next(self, method: str, error: Exception) -> None:
        """다음 method 호출 1회 실패"""
        self.state.failures[method] = error

    def add_contact(self, name: str, email: str | None = None) -> Counterparty:
        contact = Counterparty(contact_id=self._next_id(), name=name, email=email)
        self.state.contacts[contact.contact_id] = contact
        return contact

    def add_account(self, code: str, name: str) -> LedgerAccount:
        account = LedgerAccount(code=code, name=name)
        self.state.accounts.append(account)
        return account

    def add_product(self, name: str, unit_price: int | None = None) -> LedgerProduct:
        product = LedgerProduct(product_id=self._next_id(), name=name, unit_price=unit_price)
        self.state.products.append(product)
        return product

    def count_postings(self, business_key: str) -> int:
        return sum(1 for sale in self.state.sales.values() if sale.sale_number == business_key)

    def _next_id(self) -> str:
        self.state.id_counter += 1
        return str(self.state.id_counter)

    def _enter(self, method: str) -> None:
        self.state.calls.append(method)
        error = self.state.failures.pop(method, None)
        if error is not None:
            raise error

    def _sale(self, posting_id: str) -> RemotePosting:
        sale = self.state.sales.get(posting_id)
        if sale is None:
            raise FikenValidationError(
                f"Sale {posting_id} not found", status_code=404, body='{"error":"not found"}'
            )
        return sale

    @staticmethod
    def _page(items: list, page: int, page_size: int) -> Page:
        start = page * page_size
        page_count = max((len(items) + page_size - 1) // page_size, 1)
        return Page(
            items=items[start:start + page_size],
            page=page,
            page_size=page_size,
            page_count=page_count,
            result_count=len(items),
        )

    # -------------------------------------------------------------------------
    # 거래처
    # -------------------------------------------------------------------------

    async def search_counterparty(self, email: str) -> list[Counterparty]:
        self._enter("search_counterparty")
        needle = email.strip().lower()
        return [
            contact for contact in self.state.contacts.values()
            if contact.email and needle in contact.email.lower()
        ]

    async def create_counterparty(self, draft: CounterpartyDraft) -> Counterparty:
        self._enter("create_counterparty")
        contact = Counterparty(
            contact_id=self._next_id(),
            name=draft.name,
            email=draft.email,
            raw=draft.to_payload(),
        )
        self.state.contacts[contact.contact_id] = contact
        return contact

    async def list_counterparties(self, page: int = 0, page_size: int = 100) -> Page[Counterparty]:
        self._enter("list_counterparties")
        return self._page(list(self.state.contacts.values()), page, page_size)

    # -------------------------------------------------------------------------
    # Posting
    # -------------------------------------------------------------------------

    async def search_posting(self, business_key: str) -> list[RemotePosting]:
        self._enter("search_posting")
        return [sale for sale in self.state.sales.values() if sale.sale_number == business_key]

    async def get_posting(self, posting_id: str) -> RemotePosting:
        self._enter("get_posting")
        return self._sale(posting_id)

    async def create_posting(self, posting: PostingRequest) -> str:
        self._enter("create_posting")
        if posting.counterparty_id not in self.state.contacts:
            raise FikenValidationError(
                "Unknown customer",
                status_code=400,
                body='{"error":"customerId does not exist"}',
            )

        sale_id = self._next_id()
        totals = posting.totals
        self.state.sales[sale_id] = RemotePosting(
            sale_id=sale_id,
            sale_number=posting.business_key,
            date=posting.posting_date.isoformat(),
            net_amount=totals.net,
            vat_amount=totals.vat,
            raw=posting.to_payload(),
        )
        self.state.requests[sale_id] = posting
        return sale_id

    async def add_payment(self, posting_id: str, payment: PaymentLine) -> str:
        self._enter("add_payment")
        sale = self._sale(posting_id)

        paid = sale.total_paid + payment.amount
        if paid > sale.gross_amount:
            raise FikenValidationError(
                "Payment exceeds sale total",
                status_code=400,
                body='{"error":"amount too large"}',
            )

        self.state.sales[posting_id] = replace(
            sale, total_paid=paid, settled=paid == sale.gross_amount
        )
        self.state.payments.setdefault(posting_id, []).append(payment)
        return self._next_id()

    async def attach_document(self, posting_id: str, document: ReceiptDocument) -> None:
        self._enter("attach_document")
        sale = self._sale(posting_id)

        attachment = RemoteAttachment(
            identifier=self._next_id(),
            filename=document.filename,
            download_url=f"https://mock.fiken/attachments/{document.filename}",
            comment=document.description,
        )
        self.state.sales[posting_id] = replace(
            sale, attachments=sale.attachments + (attachment,)
        )
        self.state.documents.setdefault(posting_id, []).append(document)

    async def list_postings(self, page: int = 0, page_size: int = 100) -> Page[RemotePosting]:
        self._enter("list_postings")
        return self._page(list(self.state.sales.values()), page, page_size)

    # -------------------------------------------------------------------------
    # 기타
    # -------------------------------------------------------------------------

    async def list_accounts(self, page: int = 0, page_size: int = 100) -> Page[LedgerAccount]:
        self._enter("list_accounts")
        return self._page(list(self.state.accounts), page, page_size)

    async def list_products(self, page: int = 0, page_size: int = 100) -> Page[LedgerProduct]:
        self._enter("list_products")
        return self._page(list(self.state.products), page, page_size)

    async def test_connection(self) -> bool:
        self._enter("test_connection")
        return True

    async def close(self) -> None:
        return None
