"""
Web 서비스 패키지

비즈니스 로직 처리
"""

from web.services.ingestion_service import (
    IngestionResult,
    IngestionService,
    WebhookSignatureError,
)

__all__ = [
    "IngestionResult",
    "IngestionService",
    "WebhookSignatureError",
]
