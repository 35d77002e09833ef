"""
운영 라우트

큐 수동 조작 및 동기화 실행 API
- POST /api/queue/{order_id}          주문 수동 enqueue
- POST /api/queue/{order_id}/requeue  DONE/FAILED → PENDING
- GET  /api/queue?status=             엔트리 목록
- POST /api/sync                      원장 → 미러 동기화 1회
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Path, Query

from adapters.db.sqlite_adapter import SQLiteAdapter
from adapters.interfaces import ILedgerClient
from core.storage.checkpoint_store import CheckpointStore
from core.storage.mirror_store import MirrorStore
from core.storage.queue_store import QueueStore
from core.types import QueueStatus
from web.dependencies import get_db, get_db_write, get_ledger_client
from web.models.responses import (
    QueueActionResponse,
    QueueEntryResponse,
    QueueListResponse,
    SyncResponse,
)
from worker.poller.sync_poller import LedgerSyncPoller

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Operations"])

MANUAL_SOURCE = "manual"


@router.post("/queue/{order_id}", response_model=QueueActionResponse)
async def enqueue_order(
    order_id: str = Path(..., pattern=r"^\d+$", description="Shopify 주문 ID"),
    db: SQLiteAdapter = Depends(get_db_write),
) -> QueueActionResponse:
    """주문 수동 enqueue (이미 있으면 변경 없음)"""
    inserted = await QueueStore(db).enqueue(order_id, source=MANUAL_SOURCE)
    return QueueActionResponse(
        order_id=order_id,
        result="enqueued" if inserted else "already_queued",
    )


@router.post("/queue/{order_id}/requeue", response_model=QueueActionResponse)
async def requeue_order(
    order_id: str = Path(..., description="Shopify 주문 ID"),
    db: SQLiteAdapter = Depends(get_db_write),
) -> QueueActionResponse:
    """DONE/FAILED 엔트리 재큐잉

    - 엔트리 없음 → 404
    - PENDING/IN_PROGRESS → 409
    """
    store = QueueStore(db)
    entry = await store.get(order_id)
    if entry is None:
        raise HTTPException(status_code=404, detail=f"Queue entry not found: {order_id}")

    if not await store.requeue(order_id):
        raise HTTPException(
            status_code=409,
            detail=f"Entry is {entry.status.value}; only DONE or FAILED entries can be requeued",
        )

    return QueueActionResponse(order_id=order_id, result="requeued")


@router.get("/queue", response_model=QueueListResponse)
async def list_queue(
    status: str | None = Query(default=None, description="상태 필터 (PENDING/IN_PROGRESS/DONE/FAILED)"),
    limit: int = Query(default=100, ge=1, le=1000, description="조회 제한"),
    db: SQLiteAdapter = Depends(get_db),
) -> QueueListResponse:
    """큐 엔트리 목록 (최근 순)"""
    status_filter = None
    if status:
        try:
            status_filter = QueueStatus(status.upper())
        except ValueError:
            raise HTTPException(
                status_code=400,
                detail=f"Invalid status: {status}. Valid: {[s.value for s in QueueStatus]}",
            )

    entries = await QueueStore(db).list_by_status(status_filter, limit=limit)
    return QueueListResponse(
        entries=[QueueEntryResponse(**entry.to_dict()) for entry in entries],
        count=len(entries),
    )


@router.post("/sync", response_model=SyncResponse)
async def run_sync(
    db: SQLiteAdapter = Depends(get_db_write),
    ledger: ILedgerClient = Depends(get_ledger_client),
) -> SyncResponse:
    """원장 동기화 1회 실행"""
    poller = LedgerSyncPoller(
        ledger=ledger,
        adapter=db,
        mirror_store=MirrorStore(db),
        checkpoint_store=CheckpointStore(db),
        queue_store=QueueStore(db),
    )
    report = await poller.run_once()
    return SyncResponse(**report.to_dict())
