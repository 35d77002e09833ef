"""
Web 모델 패키지

Pydantic 스키마 정의
"""

from web.models.responses import (
    HealthResponse,
    MirrorListResponse,
    QueueActionResponse,
    QueueEntryResponse,
    QueueListResponse,
    QueueMetricsResponse,
    StatusResponse,
    SyncResponse,
    WebhookAcceptedResponse,
)

__all__ = [
    "HealthResponse",
    "MirrorListResponse",
    "QueueActionResponse",
    "QueueEntryResponse",
    "QueueListResponse",
    "QueueMetricsResponse",
    "StatusResponse",
    "SyncResponse",
    "WebhookAcceptedResponse",
]
