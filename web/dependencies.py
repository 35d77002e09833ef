"""
의존성 주입

FastAPI의 Depends를 사용한 의존성 관리.
테스트에서는 app.dependency_overrides로 교체.
"""

from typing import AsyncGenerator

from fastapi import Request

from adapters.db.sqlite_adapter import SQLiteAdapter
from adapters.interfaces import ILedgerClient
from core.config.loader import get_settings
from worker.bootstrap import build_ledger_client


def get_webhook_secret() -> str:
    """Shopify webhook 서명 키 (미설정이면 빈 문자열 → 모든 webhook 401)"""
    return get_settings().webhook_secret


async def get_db() -> AsyncGenerator[SQLiteAdapter, None]:
    """DB 세션 반환 (읽기 전용)

    상태/미러 조회용.
    """
    settings = get_settings()
    async with SQLiteAdapter(settings.db_path, readonly=True) as db:
        yield db


async def get_db_write() -> AsyncGenerator[SQLiteAdapter, None]:
    """DB 세션 반환 (쓰기 가능)

    webhook 큐 저장, 재큐잉, 동기화 시 사용.
    """
    settings = get_settings()
    async with SQLiteAdapter(settings.db_path, readonly=False) as db:
        yield db


def get_ledger_client(request: Request) -> ILedgerClient:
    """프로세스 공유 Fiken 클라이언트

    한 프로세스의 모든 요청이 같은 클라이언트(같은 RequestPacer)를 사용하므로
    원장 요청은 프로세스당 한 번에 하나만 진행. lifespan이 생성하고 닫는다.
    lifespan 없이 앱을 띄운 경우(테스트 클라이언트)에는 첫 요청에서 생성.
    """
    client = getattr(request.app.state, "ledger_client", None)
    if client is None:
        client = build_ledger_client(get_settings().config)
        request.app.state.ledger_client = client
    return client
