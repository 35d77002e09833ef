"""
pytest 공통 fixture 정의

설정 파일, 임시 DB, 주문 JSON 샘플, Mock 원장/주문 소스
"""

import copy
import tempfile
from pathlib import Path
from typing import Any, AsyncGenerator, Callable

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI

from adapters.db.sqlite_adapter import SQLiteAdapter, init_schema
from adapters.mock.ledger_client import MockLedgerClient
from adapters.mock.order_source import MockOrderSource
from core.config.loader import AppConfig, Settings, load_config
from core.storage.checkpoint_store import CheckpointStore
from core.storage.mirror_store import MirrorStore
from core.storage.queue_store import QueueStore
from web.app import create_app
from web.dependencies import get_db, get_db_write, get_ledger_client, get_webhook_secret
from worker.bootstrap import WorkerContext, build_context

# Shopify 주문 #3403 (상품 578.00 + 배송 64.00 = 642.00 NOK, 25% VAT 포함)
ORDER_3403: dict[str, Any] = {
    "id": 5012345678,
    "order_number": 3403,
    "name": "#3403",
    "financial_status": "paid",
    "currency": "NOK",
    "total_price": "642.00",
    "total_tax": "128.40",
    "total_discounts": "0.00",
    "processed_at": "2024-11-02T14:05:00+01:00",
    "created_at": "2024-11-02T14:04:00+01:00",
    "email": "kari.nordmann@example.no",
    "customer": {
        "email": "Kari.Nordmann@Example.no",
        "first_name": "Kari",
        "last_name": "Nordmann",
    },
    "billing_address": {
        "address1": "Storgata 1",
        "zip": "0155",
        "city": "Oslo",
        "country_code": "NO",
    },
    "line_items": [
        {"title": "Ullgenser", "price": "578.00", "quantity": 1},
    ],
    "shipping_lines": [
        {"title": "Posten", "price": "64.00"},
    ],
}


@pytest.fixture(autouse=True)
def reset_settings() -> None:
    """테스트마다 설정 싱글턴 초기화"""
    Settings.reset()
    yield
    Settings.reset()


@pytest.fixture
def temp_dir() -> Path:
    """OS 독립적인 임시 디렉토리 생성"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def temp_secrets_file(temp_dir: Path) -> Path:
    """테스트용 secrets.yaml 파일 생성"""
    secrets_content = """# 테스트용 secrets.yaml
fiken:
  api_token: "fiken_test_token"
  company_slug: "demo-as"

shopify:
  shop_domain: "demo-shop.myshopify.com"
  access_token: "shpat_test"
  webhook_secret: "whsec_test"

source:
  kind: shopify_api

accounting:
  vat_rate: "0.25"
  currency: NOK
  accounts:
    sales: "3000"
    bank: "1920:10001"
    fee: "7770"
  fee:
    percent: "0.029"
    fixed_minor: 0

worker:
  poll_interval_sec: 5
  worker_index: 0
  worker_count: 1
  max_attempts: 3

web:
  host: "127.0.0.1"
  port: 8787

db_path: data/test.db
"""
    secrets_path = temp_dir / "secrets.yaml"
    secrets_path.write_text(secrets_content, encoding="utf-8")
    return secrets_path


# -------------------------------------------------------------------------
# 주문 JSON
# -------------------------------------------------------------------------

@pytest.fixture
def order_payload() -> dict[str, Any]:
    """주문 #3403 JSON (테스트마다 새 사본)"""
    return copy.deepcopy(ORDER_3403)


@pytest.fixture
def order_factory() -> Callable[..., dict[str, Any]]:
    """주문 JSON 생성기

    사용 예시:
        order_factory(order_id=7001, order_number=3404, email="a@b.no")
    """

    def _make(
        order_id: int = 5012345678,
        order_number: int = 3403,
        email: str | None = "Kari.Nordmann@Example.no",
        **overrides: Any,
    ) -> dict[str, Any]:
        data = copy.deepcopy(ORDER_3403)
        data["id"] = order_id
        data["order_number"] = order_number
        data["name"] = f"#{order_number}"
        data["customer"]["email"] = email
        data["email"] = email
        data.update(overrides)
        return data

    return _make


# -------------------------------------------------------------------------
# DB
# -------------------------------------------------------------------------

@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "settlement.db"


@pytest_asyncio.fixture
async def db(db_path: Path) -> AsyncGenerator[SQLiteAdapter, None]:
    """스키마가 초기화된 임시 SQLite 어댑터"""
    adapter = SQLiteAdapter(db_path)
    await adapter.connect()
    await init_schema(adapter)
    yield adapter
    await adapter.close()


@pytest.fixture
def queue_store(db: SQLiteAdapter) -> QueueStore:
    return QueueStore(db)


@pytest.fixture
def checkpoint_store(db: SQLiteAdapter) -> CheckpointStore:
    return CheckpointStore(db)


@pytest.fixture
def mirror_store(db: SQLiteAdapter) -> MirrorStore:
    return MirrorStore(db)


# -------------------------------------------------------------------------
# Mock 어댑터
# -------------------------------------------------------------------------

@pytest.fixture
def mock_ledger() -> MockLedgerClient:
    """Mock 원장"""
    return MockLedgerClient()


@pytest.fixture
def mock_source(order_payload: dict[str, Any]) -> MockOrderSource:
    """주문 #3403이 들어 있는 Mock 주문 소스"""
    return MockOrderSource([order_payload])


# -------------------------------------------------------------------------
# 워커 조립
# -------------------------------------------------------------------------

@pytest.fixture
def app_config(temp_secrets_file: Path) -> AppConfig:
    """테스트 secrets.yaml에서 로드한 설정"""
    return load_config(temp_secrets_file)


@pytest.fixture
def worker_context(
    app_config: AppConfig,
    db: SQLiteAdapter,
    mock_ledger: MockLedgerClient,
    mock_source: MockOrderSource,
) -> WorkerContext:
    """Mock 원장/주문 소스로 조립한 워커 컴포넌트"""
    return build_context(app_config, db, ledger=mock_ledger, order_source=mock_source)


# -------------------------------------------------------------------------
# Web
# -------------------------------------------------------------------------

WEBHOOK_SECRET = "whsec_test"


@pytest.fixture
def web_app(db_path: Path, db: SQLiteAdapter, mock_ledger: MockLedgerClient) -> FastAPI:
    """임시 DB + Mock 원장으로 의존성을 바꾼 앱"""
    app = create_app()

    async def override_db() -> AsyncGenerator[SQLiteAdapter, None]:
        async with SQLiteAdapter(db_path) as adapter:
            yield adapter

    async def override_ledger() -> AsyncGenerator[MockLedgerClient, None]:
        yield mock_ledger

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_db_write] = override_db
    app.dependency_overrides[get_webhook_secret] = lambda: WEBHOOK_SECRET
    app.dependency_overrides[get_ledger_client] = override_ledger
    return app


@pytest_asyncio.fixture
async def api_client(web_app: FastAPI) -> AsyncGenerator[httpx.AsyncClient, None]:
    """ASGI 전송 HTTP 클라이언트 (lifespan 미실행)"""
    transport = httpx.ASGITransport(app=web_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
