"""
Webhook 라우트

POST /webhooks/orders-paid - Shopify 결제 완료 주문 수신
"""

import logging

import aiosqlite
from fastapi import APIRouter, Depends, Header, HTTPException, Request

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.constants import ShopifyDefaults
from core.storage.queue_store import QueueStore
from web.dependencies import get_db_write, get_webhook_secret
from web.models.responses import WebhookAcceptedResponse
from web.services.ingestion_service import IngestionService, WebhookSignatureError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


@router.post("/orders-paid", status_code=202, response_model=WebhookAcceptedResponse)
async def orders_paid(
    request: Request,
    x_shopify_hmac_sha256: str | None = Header(default=None, alias=ShopifyDefaults.HMAC_HEADER),
    db: SQLiteAdapter = Depends(get_db_write),
    webhook_secret: str = Depends(get_webhook_secret),
) -> WebhookAcceptedResponse:
    """Shopify orders/paid webhook

    - 서명 불일치/누락 → 401 (큐 변경 없음)
    - 주문 ID 없음 → 202 (로그만)
    - 큐 저장 실패 → 500 (Shopify가 재전송)
    """
    raw_body = await request.body()
    service = IngestionService(QueueStore(db), webhook_secret)

    try:
        result = await service.ingest(raw_body, x_shopify_hmac_sha256)
    except WebhookSignatureError:
        raise HTTPException(status_code=401, detail="Invalid webhook signature")
    except aiosqlite.Error as e:
        logger.error("webhook 큐 저장 실패", extra={"error": str(e)}, exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to persist webhook")

    return WebhookAcceptedResponse(status=result.status, order_id=result.order_id)
