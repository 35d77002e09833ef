"""
원장(Fiken) 측 데이터 모델

원격 응답을 파싱한 불변 레코드. 금액은 minor unit 정수.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class CounterpartyAddress:
    """거래처 주소"""

    address1: str | None = None
    postal_code: str | None = None
    city: str | None = None
    country: str = "NO"

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"country": self.country}
        if self.address1:
            payload["address1"] = self.address1
        if self.postal_code:
            payload["postalCode"] = self.postal_code
        if self.city:
            payload["city"] = self.city
        return payload


@dataclass(frozen=True)
class CounterpartyDraft:
    """거래처 생성 요청"""

    name: str
    email: str | None = None
    address: CounterpartyAddress | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "name": self.name,
            "customer": True,
        }
        if self.email:
            payload["email"] = self.email
        if self.address is not None:
            payload["address"] = self.address.to_payload()
        return payload


@dataclass(frozen=True)
class Counterparty:
    """원격 거래처 (Fiken contact)"""

    contact_id: str
    name: str
    email: str | None = None
    customer_number: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def email_key(self) -> str | None:
        return self.email.strip().lower() if self.email else None


@dataclass(frozen=True)
class RemoteAttachment:
    """Posting 첨부 문서"""

    identifier: str | None
    filename: str | None = None
    download_url: str | None = None
    comment: str | None = None

    def matches(self, stem: str) -> bool:
        """파일명 stem이 이 첨부와 일치하는지 (다운로드 URL/파일명/설명 기준)

        stem은 독립된 이름 조각이어야 함: "shopify-order-34"는
        "shopify-order-3403.txt"와 일치하지 않는다.
        """
        pattern = re.compile(rf"(?<![\w-]){re.escape(stem)}(?![\w-])")
        return any(
            value is not None and pattern.search(value) is not None
            for value in (self.filename, self.download_url, self.comment)
        )


@dataclass(frozen=True)
class RemotePosting:
    """원격 Posting (Fiken sale)"""

    sale_id: str
    sale_number: str | None
    date: str | None = None
    net_amount: int = 0
    vat_amount: int = 0
    total_paid: int = 0
    settled: bool = False
    attachments: tuple[RemoteAttachment, ...] = ()
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def gross_amount(self) -> int:
        return self.net_amount + self.vat_amount

    def has_attachment(self, stem: str) -> bool:
        return any(attachment.matches(stem) for attachment in self.attachments)


@dataclass(frozen=True)
class LedgerAccount:
    """계정과목 (chart of accounts)"""

    code: str
    name: str
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)


@dataclass(frozen=True)
class LedgerProduct:
    """원장 상품 (Fiken product)

    unit_price는 minor unit, 없으면 None.
    """

    product_id: str
    name: str
    product_number: str | None = None
    unit_price: int | None = None
    vat_type: str | None = None
    active: bool = True
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)


@dataclass(frozen=True)
class Page(Generic[T]):
    """페이지 조회 결과

    page는 0부터 시작. page_count를 모르면 None.
    """

    items: list[T]
    page: int
    page_size: int
    page_count: int | None = None
    result_count: int | None = None

    @property
    def has_next(self) -> bool:
        if self.page_count is not None:
            return self.page + 1 < self.page_count
        return len(self.items) >= self.page_size


@dataclass(frozen=True)
class ReceiptDocument:
    """Posting에 첨부할 영수증"""

    filename: str
    content: bytes
    content_type: str = "application/pdf"
    description: str | None = None
