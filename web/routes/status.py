"""
Status 라우트

GET /status - 큐 깊이, 가장 오래된 PENDING 경과 시간, 체크포인트
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.storage.checkpoint_store import CheckpointStore
from core.storage.mirror_store import MirrorStore
from core.storage.queue_store import QueueStore
from web.dependencies import get_db
from web.models.responses import QueueMetricsResponse, StatusResponse

router = APIRouter(tags=["Status"])


@router.get("/status", response_model=StatusResponse)
async def get_status(db: SQLiteAdapter = Depends(get_db)) -> StatusResponse:
    """운영 현황"""
    metrics = await QueueStore(db).get_metrics()

    return StatusResponse(
        queue=QueueMetricsResponse(
            pending=metrics.pending,
            in_progress=metrics.in_progress,
            done=metrics.done,
            failed=metrics.failed,
            depth=metrics.depth,
            oldest_pending_at=metrics.oldest_pending_at,
            oldest_pending_age_sec=metrics.oldest_pending_age_sec,
        ),
        checkpoints=await CheckpointStore(db).get_all(),
        mirror=await MirrorStore(db).counts(),
        timestamp=datetime.now(timezone.utc),
    )
