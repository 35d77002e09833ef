"""
Ingestion 서비스

Shopify orders/paid webhook → 서명 검증 → 주문 ID 추출 → 큐 저장.
원장 API는 호출하지 않음 (워커가 큐에서 꺼내 처리).
"""

import json
import logging
from dataclasses import dataclass

from core.domain.order_ref import extract_order_reference
from core.storage.queue_store import QueueStore
from core.utils.signature import verify_webhook_signature

logger = logging.getLogger(__name__)

WEBHOOK_SOURCE = "webhook"


class WebhookSignatureError(Exception):
    """서명 누락/불일치 또는 서명 키 미설정"""

    pass


@dataclass(frozen=True)
class IngestionResult:
    """webhook 처리 결과

    status: enqueued | duplicate | ignored
    """

    status: str
    order_id: str | None = None
    strategy: str | None = None


class IngestionService:
    """Webhook 수신 서비스

    Args:
        queue_store: 큐 저장소 (쓰기 가능)
        webhook_secret: Shopify webhook 서명 키
    """

    def __init__(self, queue_store: QueueStore, webhook_secret: str):
        self.queue_store = queue_store
        self.webhook_secret = webhook_secret

    async def ingest(self, raw_body: bytes, signature: str | None) -> IngestionResult:
        """webhook 본문 처리

        Raises:
            WebhookSignatureError: 서명 검증 실패 (큐 변경 없음)
            aiosqlite.Error: 큐 저장 실패 (호출자가 500 응답 → 송신측 재전송)
        """
        if not verify_webhook_signature(raw_body, signature, self.webhook_secret):
            logger.warning(
                "webhook 서명 검증 실패",
                extra={
                    "has_signature": bool(signature),
                    "has_secret": bool(self.webhook_secret),
                },
            )
            raise WebhookSignatureError("Invalid webhook signature")

        try:
            payload = json.loads(raw_body)
        except (UnicodeDecodeError, json.JSONDecodeError):
            logger.warning("webhook 본문이 JSON이 아님", extra={"size": len(raw_body)})
            return IngestionResult(status="ignored")

        reference = extract_order_reference(payload)
        if reference is None:
            logger.warning(
                "webhook에서 주문 ID를 찾을 수 없음",
                extra={"keys": sorted(payload)[:20] if isinstance(payload, dict) else None},
            )
            return IngestionResult(status="ignored")

        inserted = await self.queue_store.enqueue(reference.order_id, source=WEBHOOK_SOURCE)

        logger.info(
            "webhook 주문 수신",
            extra={
                "order_id": reference.order_id,
                "strategy": reference.strategy,
                "duplicate": not inserted,
            },
        )

        return IngestionResult(
            status="enqueued" if inserted else "duplicate",
            order_id=reference.order_id,
            strategy=reference.strategy,
        )
