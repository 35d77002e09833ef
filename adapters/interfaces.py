"""
어댑터 인터페이스 정의

Protocol 기반으로 정의하여 의존성 주입 및 Mock 교체 가능.
모든 구현체는 이 Protocol을 준수해야 함.
"""

from typing import Protocol, runtime_checkable

from adapters.models import (
    Counterparty,
    CounterpartyDraft,
    LedgerAccount,
    LedgerProduct,
    Page,
    ReceiptDocument,
    RemotePosting,
)
from core.domain.orders import Order
from core.ledger.types import PaymentLine, PostingRequest, SettlementOutcome


@runtime_checkable
class ILedgerClient(Protocol):
    """원격 원장(Fiken) 클라이언트 인터페이스

    금액은 minor unit 정수. 생성 메서드는 원격 리소스 ID를 반환.
    """

    # -------------------------------------------------------------------------
    # 거래처
    # -------------------------------------------------------------------------

    async def search_counterparty(self, email: str) -> list[Counterparty]:
        """이메일로 거래처 검색 (원격 부분 일치 가능, 호출자가 정확히 비교)"""
        ...

    async def create_counterparty(self, draft: CounterpartyDraft) -> Counterparty:
        """거래처 생성"""
        ...

    async def list_counterparties(self, page: int = 0, page_size: int = 100) -> Page[Counterparty]:
        """거래처 페이지 조회"""
        ...

    # -------------------------------------------------------------------------
    # Posting (sale)
    # -------------------------------------------------------------------------

    async def search_posting(self, business_key: str) -> list[RemotePosting]:
        """비즈니스 키(saleNumber)로 Posting 검색"""
        ...

    async def get_posting(self, posting_id: str) -> RemotePosting:
        """Posting 단건 조회 (첨부 포함)"""
        ...

    async def create_posting(self, posting: PostingRequest) -> str:
        """Posting 생성

        Returns:
            생성된 Posting ID
        """
        ...

    async def add_payment(self, posting_id: str, payment: PaymentLine) -> str:
        """결제 등록

        Returns:
            결제 ID
        """
        ...

    async def attach_document(self, posting_id: str, document: ReceiptDocument) -> None:
        """Posting에 문서 첨부"""
        ...

    async def list_postings(self, page: int = 0, page_size: int = 100) -> Page[RemotePosting]:
        """Posting 페이지 조회"""
        ...

    # -------------------------------------------------------------------------
    # 기타
    # -------------------------------------------------------------------------

    async def list_accounts(self, page: int = 0, page_size: int = 100) -> Page[LedgerAccount]:
        """계정과목 페이지 조회"""
        ...

    async def list_products(self, page: int = 0, page_size: int = 100) -> Page[LedgerProduct]:
        """상품 페이지 조회"""
        ...

    async def test_connection(self) -> bool:
        """인증/회사 접근 확인"""
        ...

    async def close(self) -> None:
        """연결 종료"""
        ...


@runtime_checkable
class IOrderSource(Protocol):
    """주문 소스 인터페이스 (Shopify API 또는 백업 디렉토리)"""

    async def get_order(self, order_id: str) -> Order:
        """주문 ID로 조회

        Raises:
            OrderSourceError: 조회 실패 또는 주문 없음
        """
        ...

    async def list_paid_orders(self, limit: int | None = None) -> list[Order]:
        """결제 완료 주문 목록 (오래된 순)"""
        ...

    async def close(self) -> None:
        """연결 종료"""
        ...


@runtime_checkable
class IReceiptRenderer(Protocol):
    """영수증 렌더러 인터페이스"""

    def render(self, order: Order, outcome: SettlementOutcome) -> ReceiptDocument:
        """주문 + 정산 결과 → 첨부 문서"""
        ...
