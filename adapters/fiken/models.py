"""
Fiken API 응답 파싱

Fiken JSON → adapters.models 레코드.
금액 필드는 øre 정수로 내려오므로 그대로 int 변환.
"""

from typing import Any

import httpx

from adapters.fiken.rate_limiter import FikenProtocolError
from adapters.models import (
    Counterparty,
    LedgerAccount,
    LedgerProduct,
    Page,
    RemoteAttachment,
    RemotePosting,
)

# 페이지 헤더
PAGE_HEADER = "Fiken-Api-Page"
PAGE_SIZE_HEADER = "Fiken-Api-Page-Size"
PAGE_COUNT_HEADER = "Fiken-Api-Page-Count"
RESULT_COUNT_HEADER = "Fiken-Api-Result-Count"


def _int(value: Any, default: int = 0) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _optional_str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def parse_counterparty(data: dict[str, Any]) -> Counterparty:
    """contact JSON → Counterparty"""
    contact_id = data.get("contactId")
    if contact_id is None:
        raise FikenProtocolError("Contact without contactId", body=str(data))

    return Counterparty(
        contact_id=str(contact_id),
        name=str(data.get("name") or ""),
        email=_optional_str(data.get("email")),
        customer_number=_optional_str(data.get("customerNumber")),
        raw=data,
    )


def parse_attachment(data: dict[str, Any]) -> RemoteAttachment:
    return RemoteAttachment(
        identifier=_optional_str(data.get("identifier")),
        filename=_optional_str(data.get("filename")),
        download_url=_optional_str(data.get("downloadUrl")),
        comment=_optional_str(data.get("comment")),
    )


def parse_posting(data: dict[str, Any]) -> RemotePosting:
    """sale JSON → RemotePosting

    첨부 키는 salesAttachments/saleAttachments 모두 허용.
    """
    sale_id = data.get("saleId")
    if sale_id is None:
        raise FikenProtocolError("Sale without saleId", body=str(data))

    attachments = data.get("salesAttachments") or data.get("saleAttachments") or []

    return RemotePosting(
        sale_id=str(sale_id),
        sale_number=_optional_str(data.get("saleNumber")),
        date=_optional_str(data.get("date")),
        net_amount=_int(data.get("netAmount")),
        vat_amount=_int(data.get("vatAmount")),
        total_paid=_int(data.get("totalPaid")),
        settled=bool(data.get("settled", False)),
        attachments=tuple(parse_attachment(item) for item in attachments if isinstance(item, dict)),
        raw=data,
    )


def parse_account(data: dict[str, Any]) -> LedgerAccount:
    code = data.get("code")
    if code is None:
        raise FikenProtocolError("Account without code", body=str(data))
    return LedgerAccount(code=str(code), name=str(data.get("name") or ""), raw=data)


def parse_product(data: dict[str, Any]) -> LedgerProduct:
    product_id = data.get("productId")
    if product_id is None:
        raise FikenProtocolError("Product without productId", body=str(data))
    unit_price = data.get("unitPrice")
    return LedgerProduct(
        product_id=str(product_id),
        name=str(data.get("name") or ""),
        product_number=_optional_str(data.get("productNumber")),
        unit_price=_int(unit_price) if unit_price is not None else None,
        vat_type=_optional_str(data.get("vatType")),
        active=bool(data.get("active", True)),
        raw=data,
    )


def parse_page(
    response: httpx.Response,
    items: list[Any],
    page: int,
    page_size: int,
) -> Page[Any]:
    """Fiken-Api-Page* 헤더에서 페이지 정보 추출"""
    headers = response.headers
    page_count = headers.get(PAGE_COUNT_HEADER)
    result_count = headers.get(RESULT_COUNT_HEADER)

    return Page(
        items=items,
        page=_int(headers.get(PAGE_HEADER), page),
        page_size=_int(headers.get(PAGE_SIZE_HEADER), page_size),
        page_count=_int(page_count) if page_count is not None else None,
        result_count=_int(result_count) if result_count is not None else None,
    )


def id_from_location(response: httpx.Response) -> str:
    """Location 헤더 마지막 경로 조각 → 생성된 리소스 ID

    Raises:
        FikenProtocolError: Location 헤더 없음
    """
    location = response.headers.get("Location")
    if not location:
        raise FikenProtocolError(
            "Created resource without Location header",
            status_code=response.status_code,
            body=response.text,
        )

    resource_id = location.rstrip("/").rsplit("/", 1)[-1]
    if not resource_id:
        raise FikenProtocolError(
            f"Cannot parse id from Location header: {location}",
            status_code=response.status_code,
            body=response.text,
        )
    return resource_id
