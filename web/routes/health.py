"""
헬스 체크 엔드포인트

GET /healthz - 프로세스 생존 확인 (DB 미접속)
GET /health  - DB 연결 포함 상태 확인
GET /health/ledger - Fiken 토큰/회사 접근 확인 (원격 호출 1회)
"""

import logging
from datetime import datetime, timezone

import aiosqlite
from fastapi import APIRouter, Depends

from adapters.db.sqlite_adapter import SQLiteAdapter
from adapters.fiken.rate_limiter import FikenApiError
from adapters.interfaces import ILedgerClient
from web.dependencies import get_db, get_ledger_client
from web.models.responses import HealthResponse, LedgerHealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    """프로세스 생존 확인"""
    return {"status": "ok"}


@router.get("/health", response_model=HealthResponse)
async def health_check(db: SQLiteAdapter = Depends(get_db)) -> HealthResponse:
    """서버 상태 확인

    Returns:
        HealthResponse: status, database, timestamp
    """
    database = "ok"
    try:
        await db.fetchone("SELECT 1")
    except aiosqlite.Error as e:
        logger.warning("헬스 체크 DB 조회 실패", extra={"error": str(e)})
        database = "error"

    return HealthResponse(
        status="ok" if database == "ok" else "degraded",
        database=database,
        timestamp=datetime.now(timezone.utc),
    )


@router.get("/health/ledger", response_model=LedgerHealthResponse)
async def ledger_health(ledger: ILedgerClient = Depends(get_ledger_client)) -> LedgerHealthResponse:
    """원장 연결 확인"""
    try:
        connected = await ledger.test_connection()
    except FikenApiError as e:
        logger.warning(
            "헬스 체크 원장 연결 실패",
            extra={"kind": e.kind.value, "status": e.status_code, "body": e.body},
        )
        connected = False

    return LedgerHealthResponse(
        status="ok" if connected else "degraded",
        ledger="ok" if connected else "unavailable",
        timestamp=datetime.now(timezone.utc),
    )
