"""
Shopify Admin REST 클라이언트

X-Shopify-Access-Token 인증, Link 헤더 페이지네이션.
IOrderSource Protocol 준수.
"""

import asyncio
import logging
from typing import Any

import httpx

from adapters.shopify.models import OrderSourceError, parse_order
from core.constants import Pacing, ShopifyDefaults
from core.domain.orders import Order

logger = logging.getLogger(__name__)


class ShopifyRestClient:
    """Shopify 주문 조회 클라이언트

    Args:
        base_url: https://<shop>/admin/api/<version>
        access_token: Admin API 액세스 토큰
        timeout: 요청 타임아웃 (초)
        max_retries: 재시도 횟수 (429/5xx)
    """

    def __init__(
        self,
        base_url: str,
        access_token: str,
        timeout: float = Pacing.TIMEOUT_SEC,
        max_retries: int = 3,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.access_token = access_token
        self.timeout = timeout
        self.max_retries = max_retries

        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """HTTP 클라이언트 가져오기 (lazy initialization)"""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
                headers={
                    ShopifyDefaults.ACCESS_TOKEN_HEADER: self.access_token,
                    "Accept": "application/json",
                },
            )
        return self._client

    async def close(self) -> None:
        """HTTP 클라이언트 종료"""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _get(self, url: str, params: dict[str, Any] | None = None) -> httpx.Response:
        client = await self._get_client()

        for attempt in range(self.max_retries + 1):
            try:
                response = await client.get(url, params=params)
            except httpx.RequestError as e:
                if attempt < self.max_retries:
                    logger.warning(
                        "Shopify 요청 오류, 재시도",
                        extra={"url": url, "error": str(e), "attempt": attempt + 1},
                    )
                    await asyncio.sleep(attempt + 1)
                    continue
                raise OrderSourceError(f"Shopify request failed: {e}") from e

            if response.status_code == 429 or response.status_code >= 500:
                if attempt < self.max_retries:
                    try:
                        retry_after = float(response.headers.get("Retry-After", attempt + 1))
                    except ValueError:
                        retry_after = float(attempt + 1)
                    logger.warning(
                        "Shopify 일시 오류, 재시도",
                        extra={"status": response.status_code, "attempt": attempt + 1},
                    )
                    await asyncio.sleep(retry_after)
                    continue

            if response.status_code >= 400:
                raise OrderSourceError(
                    f"Shopify GET {url} failed",
                    status_code=response.status_code,
                    body=response.text,
                    not_found=response.status_code == 404,
                )

            return response

        raise OrderSourceError("All retries failed")

    async def get_order(self, order_id: str) -> Order:
        """주문 단건 조회"""
        response = await self._get(f"{self.base_url}/orders/{order_id}.json")
        payload = response.json()
        return parse_order(payload.get("order") or {})

    async def list_paid_orders(self, limit: int | None = None) -> list[Order]:
        """결제 완료 주문 목록 (오래된 순, Link 페이지네이션)"""
        orders: list[Order] = []
        url: str | None = f"{self.base_url}/orders.json"
        params: dict[str, Any] | None = {
            "status": "any",
            "financial_status": "paid",
            "order": "created_at asc",
            "limit": ShopifyDefaults.PAGE_LIMIT,
        }

        while url:
            response = await self._get(url, params=params)
            for data in response.json().get("orders") or []:
                orders.append(parse_order(data))
                if limit is not None and len(orders) >= limit:
                    return orders

            url = next_page_url(response.headers.get("Link"))
            # 다음 페이지 URL에 page_info가 포함되어 있으므로 params는 제외
            params = None

        logger.info("Shopify 결제 주문 조회", extra={"count": len(orders)})
        return orders


def next_page_url(link_header: str | None) -> str | None:
    """Link 헤더에서 rel="next" URL 추출"""
    if not link_header:
        return None

    for part in link_header.split(","):
        segments = part.split(";")
        if len(segments) < 2:
            continue
        url = segments[0].strip().strip("<>")
        rels = [segment.strip() for segment in segments[1:]]
        if 'rel="next"' in rels or "rel=next" in rels:
            return url
    return None
