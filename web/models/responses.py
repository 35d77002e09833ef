"""
응답 스키마 (Pydantic)

Web API 응답 데이터 직렬화
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """헬스 체크 응답"""

    status: str = Field(default="ok", description="서비스 상태")
    database: str = Field(default="ok", description="DB 연결 상태")
    timestamp: datetime = Field(..., description="응답 시간 (UTC)")


class LedgerHealthResponse(BaseModel):
    """원장 연결 확인 응답"""

    status: str = Field(default="ok", description="ok / degraded")
    ledger: str = Field(default="ok", description="ok / unavailable")
    timestamp: datetime = Field(..., description="응답 시간 (UTC)")


class WebhookAcceptedResponse(BaseModel):
    """webhook 수신 응답 (202)"""

    status: str = Field(..., description="enqueued / duplicate / ignored")
    order_id: str | None = Field(default=None, description="추출된 주문 ID")


class QueueMetricsResponse(BaseModel):
    """큐 현황"""

    pending: int = Field(..., description="PENDING 수")
    in_progress: int = Field(..., description="IN_PROGRESS 수")
    done: int = Field(..., description="DONE 수")
    failed: int = Field(..., description="FAILED 수")
    depth: int = Field(..., description="처리 대기 (PENDING + IN_PROGRESS)")
    oldest_pending_at: str | None = Field(default=None, description="가장 오래된 PENDING 생성 시각")
    oldest_pending_age_sec: float | None = Field(default=None, description="가장 오래된 PENDING 경과 초")


class StatusResponse(BaseModel):
    """운영 현황 응답"""

    queue: QueueMetricsResponse
    checkpoints: dict[str, str] = Field(default_factory=dict, description="체크포인트 key/value")
    mirror: dict[str, int] = Field(default_factory=dict, description="미러 테이블별 행 수")
    timestamp: datetime = Field(..., description="응답 시간 (UTC)")


class QueueEntryResponse(BaseModel):
    """큐 엔트리 응답"""

    seq: int
    order_key: str
    status: str
    attempts: int
    last_error: str | None = None
    error_kind: str | None = None
    last_step: str | None = None
    business_key: str | None = None
    posting_id: str | None = None
    receipt_attached: bool = False
    source: str
    created_at: str
    updated_at: str
    claimed_at: str | None = None
    completed_at: str | None = None


class QueueListResponse(BaseModel):
    """큐 목록 응답"""

    entries: list[QueueEntryResponse] = Field(default_factory=list)
    count: int = Field(..., description="반환된 엔트리 수")


class QueueActionResponse(BaseModel):
    """enqueue / requeue 결과"""

    order_id: str
    result: str = Field(..., description="enqueued / already_queued / requeued")


class SyncResponse(BaseModel):
    """동기화 패스 결과"""

    ok: bool
    counts: dict[str, int] = Field(default_factory=dict)
    errors: dict[str, str] = Field(default_factory=dict)
    drift: list[dict[str, Any]] = Field(default_factory=list)
    started_at: str


class MirrorListResponse(BaseModel):
    """로컬 미러 조회 응답"""

    items: list[dict[str, Any]] = Field(default_factory=list)
    count: int = Field(..., description="반환된 항목 수")
