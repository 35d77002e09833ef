"""
FastAPI 애플리케이션

라우터 등록 및 앱 설정.
Webhook 수신은 큐 저장만 수행하고 원장 API는 호출하지 않음.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from adapters.db.sqlite_adapter import SQLiteAdapter, init_schema
from core.config.loader import get_settings
from core.logging import setup_logging
from web.routes import health, mirror, operations, status, webhooks
from worker.bootstrap import build_ledger_client

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """앱 생명주기 관리"""
    setup_logging("web")
    settings = get_settings()

    # 시작 시 - DB 스키마 자동 초기화
    async with SQLiteAdapter(settings.db_path) as db:
        await init_schema(db)

    if not settings.webhook_secret:
        logger.warning("shopify.webhook_secret 미설정: 모든 webhook이 401로 거부됩니다")

    # 원장 클라이언트는 프로세스당 1개 (요청 페이서 공유)
    app.state.ledger_client = build_ledger_client(settings.config)

    logger.info("Web 시작", extra={"db_path": str(settings.db_path)})
    yield

    await app.state.ledger_client.close()
    logger.info("Web 종료")


def create_app() -> FastAPI:
    """FastAPI 앱 생성"""
    app = FastAPI(
        title="Shopify Fiken Settlement API",
        description="Shopify 주문 → Fiken 원장 정산 (webhook 수신 및 운영 API)",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # =========================================================================
    # API 라우터 등록
    # =========================================================================

    app.include_router(health.router)
    app.include_router(status.router)
    app.include_router(webhooks.router)
    app.include_router(operations.router)
    app.include_router(mirror.router)

    return app


app = create_app()
