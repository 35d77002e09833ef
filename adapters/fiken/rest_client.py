"""
Fiken REST API 클라이언트

Bearer 토큰 인증, 요청 페이싱, 재시도/백오프.
ILedgerClient Protocol 준수.
"""

import asyncio
import logging
from typing import Any

import httpx

from adapters.fiken.models import (
    id_from_location,
    parse_account,
    parse_product,
    parse_counterparty,
    parse_page,
    parse_posting,
)
from adapters.fiken.rate_limiter import (
    FikenApiError,
    FikenProtocolError,
    FikenTransientError,
    FikenValidationError,
    RequestPacer,
    backoff_delay,
    parse_retry_after,
)
from adapters.models import (
    Counterparty,
    CounterpartyDraft,
    LedgerAccount,
    LedgerProduct,
    Page,
    ReceiptDocument,
    RemotePosting,
)
from core.constants import FikenEndpoints, Pacing
from core.ledger.types import PaymentLine, PostingRequest

logger = logging.getLogger(__name__)


class FikenRestClient:
    """Fiken REST API 클라이언트

    ILedgerClient Protocol 구현.
    모든 금액은 øre 정수.

    Args:
        api_token: Fiken 개인 API 토큰
        company_slug: 회사 slug
        base_url: REST API 베이스 URL
        timeout: 요청 타임아웃 (초)
        max_retries: 재시도 횟수 (첫 시도 제외)
        pacer: 요청 페이서 (None이면 생성)
    """

    def __init__(
        self,
        api_token: str,
        company_slug: str,
        base_url: str = FikenEndpoints.BASE_URL,
        timeout: float = Pacing.TIMEOUT_SEC,
        max_retries: int = Pacing.MAX_RETRIES,
        pacer: RequestPacer | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_token = api_token
        self.company_slug = company_slug
        self.timeout = timeout
        self.max_retries = max_retries
        self.pacer = pacer or RequestPacer()

        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """HTTP 클라이언트 가져오기 (lazy initialization)"""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
                headers={
                    "Authorization": f"Bearer {self.api_token}",
                    "Accept": "application/json",
                },
            )
        return self._client

    async def close(self) -> None:
        """HTTP 클라이언트 종료"""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def _company_path(self, suffix: str = "") -> str:
        return f"/companies/{self.company_slug}{suffix}"

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json_body: Any = None,
        files: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
        resend_safe: bool = True,
    ) -> httpx.Response:
        """API 요청 실행

        5xx/429/타임아웃/네트워크 오류는 지수 백오프로 재시도.
        4xx는 즉시 FikenValidationError.

        resend_safe=False(리소스 생성 POST)면 서버가 처리했을 수 있는 실패
        (응답 타임아웃, 전송 중 끊김, 5xx)는 재전송하지 않고 바로 FikenTransientError.
        연결 실패와 429는 서버가 처리하지 않았으므로 재시도.

        Returns:
            성공 응답 (2xx)

        Raises:
            FikenValidationError: 4xx 응답
            FikenTransientError: 재시도 소진 또는 재전송 불가
        """
        url = f"{self.base_url}{path}"
        client = await self._get_client()
        last_error: FikenTransientError | None = None

        for attempt in range(self.max_retries + 1):
            # 이번 실패가 재전송해도 안전한지
            retryable = True
            try:
                async with self.pacer:
                    response = await client.request(
                        method,
                        url,
                        params=params,
                        json=json_body,
                        files=files,
                        data=data,
                    )
            except (httpx.ConnectError, httpx.ConnectTimeout) as e:
                last_error = FikenTransientError(f"Connection failed: {e}")
                delay = backoff_delay(attempt)
                logger.warning(
                    "Fiken 연결 실패",
                    extra={"path": path, "error": str(e), "attempt": attempt + 1},
                )
            except httpx.TimeoutException as e:
                last_error = FikenTransientError(f"Timeout: {e}")
                retryable = resend_safe
                delay = backoff_delay(attempt)
                logger.warning(
                    "Fiken 요청 타임아웃",
                    extra={"path": path, "attempt": attempt + 1, "delay": delay},
                )
            except httpx.RequestError as e:
                last_error = FikenTransientError(f"Network error: {e}")
                retryable = resend_safe
                delay = backoff_delay(attempt)
                logger.warning(
                    "Fiken 요청 네트워크 오류",
                    extra={"path": path, "error": str(e), "attempt": attempt + 1},
                )
            else:
                status = response.status_code

                if status < 400:
                    return response

                if status == 429 or status >= 500:
                    last_error = FikenTransientError(
                        f"{method} {path} failed",
                        status_code=status,
                        body=response.text,
                    )
                    retryable = status == 429 or resend_safe
                    retry_after = parse_retry_after(response.headers.get("Retry-After"))
                    delay = retry_after if retry_after is not None else backoff_delay(attempt)
                    delay = min(delay, Pacing.BACKOFF_MAX_SEC)
                    logger.warning(
                        "Fiken 일시 오류",
                        extra={
                            "path": path,
                            "status": status,
                            "attempt": attempt + 1,
                            "delay": delay,
                        },
                    )
                else:
                    logger.error(
                        "Fiken 요청 거부",
                        extra={"path": path, "status": status, "body": response.text},
                    )
                    raise FikenValidationError(
                        f"{method} {path} rejected",
                        status_code=status,
                        body=response.text,
                    )

            if not retryable:
                # 원격에 반영됐을 수 있음: 재큐잉 시 IdempotencyGuard가 판단
                logger.error(
                    "Fiken 생성 요청 결과 불명, 재전송 안 함",
                    extra={"path": path, "status": last_error.status_code, "body": last_error.body},
                )
                raise last_error

            if attempt < self.max_retries:
                await asyncio.sleep(delay)

        # 모든 재시도 실패
        assert last_error is not None
        logger.error(
            "Fiken 재시도 소진",
            extra={"path": path, "status": last_error.status_code, "body": last_error.body},
        )
        raise last_error

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise FikenProtocolError(
                "Invalid JSON response",
                status_code=response.status_code,
                body=response.text,
            ) from e

    def _json_list(self, response: httpx.Response) -> list[dict[str, Any]]:
        payload = self._json(response)
        if payload is None:
            return []
        if not isinstance(payload, list):
            raise FikenProtocolError(
                "Expected JSON array",
                status_code=response.status_code,
                body=response.text,
            )
        return payload

    # -------------------------------------------------------------------------
    # 거래처
    # -------------------------------------------------------------------------

    async def search_counterparty(self, email: str) -> list[Counterparty]:
        """이메일로 거래처 검색"""
        response = await self._request(
            "GET",
            self._company_path("/contacts"),
            params={"email": email, "customer": "true", "pageSize": 25},
        )
        return [parse_counterparty(item) for item in self._json_list(response)]

    async def create_counterparty(self, draft: CounterpartyDraft) -> Counterparty:
        """거래처 생성 (ID는 Location 헤더)"""
        response = await self._request(
            "POST",
            self._company_path("/contacts"),
            json_body=draft.to_payload(),
            resend_safe=False,
        )
        contact_id = id_from_location(response)

        logger.info("Fiken 거래처 생성", extra={"contact_id": contact_id})

        return Counterparty(
            contact_id=contact_id,
            name=draft.name,
            email=draft.email,
            raw=draft.to_payload(),
        )

    async def list_counterparties(self, page: int = 0, page_size: int = 100) -> Page[Counterparty]:
        response = await self._request(
            "GET",
            self._company_path("/contacts"),
            params={"page": page, "pageSize": page_size},
        )
        items = [parse_counterparty(item) for item in self._json_list(response)]
        return parse_page(response, items, page, page_size)

    # -------------------------------------------------------------------------
    # Posting (sale)
    # -------------------------------------------------------------------------

    async def search_posting(self, business_key: str) -> list[RemotePosting]:
        """saleNumber로 판매 검색"""
        response = await self._request(
            "GET",
            self._company_path("/sales"),
            params={"saleNumber": business_key, "pageSize": 25},
        )
        return [parse_posting(item) for item in self._json_list(response)]

    async def get_posting(self, posting_id: str) -> RemotePosting:
        response = await self._request("GET", self._company_path(f"/sales/{posting_id}"))
        payload = self._json(response)
        if not isinstance(payload, dict):
            raise FikenProtocolError(
                "Expected JSON object",
                status_code=response.status_code,
                body=response.text,
            )
        return parse_posting(payload)

    async def create_posting(self, posting: PostingRequest) -> str:
        """판매 생성

        Returns:
            saleId (Location 헤더)
        """
        response = await self._request(
            "POST",
            self._company_path("/sales"),
            json_body=posting.to_payload(),
            resend_safe=False,
        )
        sale_id = id_from_location(response)

        logger.info(
            "Fiken 판매 생성",
            extra={"sale_id": sale_id, "business_key": posting.business_key},
        )
        return sale_id

    async def add_payment(self, posting_id: str, payment: PaymentLine) -> str:
        response = await self._request(
            "POST",
            self._company_path(f"/sales/{posting_id}/payments"),
            json_body=payment.to_payload(),
            resend_safe=False,
        )
        payment_id = id_from_location(response)

        logger.info(
            "Fiken 결제 등록",
            extra={
                "sale_id": posting_id,
                "payment_id": payment_id,
                "account": payment.account,
                "amount": payment.amount,
            },
        )
        return payment_id

    async def attach_document(self, posting_id: str, document: ReceiptDocument) -> None:
        """판매에 파일 첨부 (multipart)"""
        data = {"filename": document.filename}
        if document.description:
            data["comment"] = document.description

        await self._request(
            "POST",
            self._company_path(f"/sales/{posting_id}/attachments"),
            files={"file": (document.filename, document.content, document.content_type)},
            data=data,
            resend_safe=False,
        )

        logger.info(
            "Fiken 첨부 완료",
            extra={"sale_id": posting_id, "document": document.filename},
        )

    async def list_postings(self, page: int = 0, page_size: int = 100) -> Page[RemotePosting]:
        response = await self._request(
            "GET",
            self._company_path("/sales"),
            params={"page": page, "pageSize": page_size},
        )
        items = [parse_posting(item) for item in self._json_list(response)]
        return parse_page(response, items, page, page_size)

    # -------------------------------------------------------------------------
    # 기타
    # -------------------------------------------------------------------------

    async def list_accounts(self, page: int = 0, page_size: int = 100) -> Page[LedgerAccount]:
        response = await self._request(
            "GET",
            self._company_path("/accounts"),
            params={"page": page, "pageSize": page_size},
        )
        items = [parse_account(item) for item in self._json_list(response)]
        return parse_page(response, items, page, page_size)

    async def list_products(self, page: int = 0, page_size: int = 100) -> Page[LedgerProduct]:
        response = await self._request(
            "GET",
            self._company_path("/products"),
            params={"page": page, "pageSize": page_size},
        )
        items = [parse_product(item) for item in self._json_list(response)]
        return parse_page(response, items, page, page_size)

    async def test_connection(self) -> bool:
        """회사 조회로 토큰/slug 확인"""
        try:
            await self._request("GET", self._company_path())
        except FikenApiError as e:
            logger.warning(
                "Fiken 연결 확인 실패",
                extra={"status": e.status_code, "body": e.body},
            )
            return False
        return True
