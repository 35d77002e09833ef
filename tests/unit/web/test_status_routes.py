"""
헬스/현황/미러 조회 라우트 테스트
"""

import httpx
import pytest

from adapters.fiken.rate_limiter import FikenTransientError
from adapters.mock.ledger_client import MockLedgerClient
from adapters.models import Counterparty, LedgerAccount, LedgerProduct, RemotePosting
from core.storage.checkpoint_store import CheckpointStore
from core.storage.mirror_store import MirrorStore
from core.storage.queue_store import QueueStore


class TestHealth:
    """헬스 체크"""

    @pytest.mark.asyncio
    async def test_healthz(self, api_client: httpx.AsyncClient) -> None:
        response = await api_client.get("/healthz")

        assert response.json() == {"status": "ok"}

    @pytest.mark.asyncio
    async def test_health_with_db(self, api_client: httpx.AsyncClient) -> None:
        body = (await api_client.get("/health")).json()

        assert body["status"] == "ok"
        assert body["database"] == "ok"

    @pytest.mark.asyncio
    async def test_ledger_health(self, api_client: httpx.AsyncClient, mock_ledger: MockLedgerClient) -> None:
        body = (await api_client.get("/health/ledger")).json()

        assert body["status"] == "ok"
        assert body["ledger"] == "ok"
        assert mock_ledger.state.calls == ["test_connection"]

    @pytest.mark.asyncio
    async def test_ledger_unavailable(self, api_client: httpx.AsyncClient, mock_ledger: MockLedgerClient) -> None:
        """원장 연결 실패 → degraded (200)"""
        mock_ledger.fail_next("test_connection", FikenTransientError("down", status_code=503))

        response = await api_client.get("/health/ledger")

        assert response.status_code == 200
        assert response.json()["status"] == "degraded"
        assert response.json()["ledger"] == "unavailable"


class TestStatus:
    """GET /status"""

    @pytest.mark.asyncio
    async def test_status(
        self,
        api_client: httpx.AsyncClient,
        queue_store: QueueStore,
        checkpoint_store: CheckpointStore,
    ) -> None:
        await queue_store.enqueue("1")
        await queue_store.enqueue("2")
        await queue_store.claim_one()
        await checkpoint_store.set("sync:sales", "2024-11-02T00:00:00+00:00")

        body = (await api_client.get("/status")).json()

        assert body["queue"]["pending"] == 1
        assert body["queue"]["in_progress"] == 1
        assert body["queue"]["depth"] == 2
        assert body["queue"]["oldest_pending_age_sec"] >= 0
        assert body["checkpoints"] == {"sync:sales": "2024-11-02T00:00:00+00:00"}
        assert body["mirror"] == {"contacts": 0, "sales": 0, "accounts": 0, "products": 0}

    @pytest.mark.asyncio
    async def test_empty_queue(self, api_client: httpx.AsyncClient) -> None:
        body = (await api_client.get("/status")).json()

        assert body["queue"]["depth"] == 0
        assert body["queue"]["oldest_pending_at"] is None


class TestMirrorRoutes:
    """GET /api/local/*"""

    @pytest.mark.asyncio
    async def test_contacts_search(self, api_client: httpx.AsyncClient, mirror_store: MirrorStore) -> None:
        await mirror_store.upsert_contacts([
            Counterparty(contact_id="1", name="Kari Nordmann", email="kari.nordmann@example.no"),
            Counterparty(contact_id="2", name="Ola Hansen", email="ola@example.no"),
        ])

        body = (await api_client.get("/api/local/contacts", params={"q": "ola"})).json()

        assert body["count"] == 1
        assert body["items"][0]["contact_id"] == "2"

    @pytest.mark.asyncio
    async def test_sales_paging(self, api_client: httpx.AsyncClient, mirror_store: MirrorStore) -> None:
        await mirror_store.upsert_sales([
            RemotePosting(sale_id="1", sale_number="#1", date="2024-01-01"),
            RemotePosting(sale_id="2", sale_number="#2", date="2024-02-01"),
        ])

        body = (await api_client.get("/api/local/sales", params={"limit": 1, "offset": 1})).json()

        assert [item["sale_id"] for item in body["items"]] == ["1"]

    @pytest.mark.asyncio
    async def test_accounts(self, api_client: httpx.AsyncClient, mirror_store: MirrorStore) -> None:
        await mirror_store.upsert_accounts([LedgerAccount(code="3000", name="Salgsinntekt")])

        body = (await api_client.get("/api/local/accounts")).json()

        assert body["items"][0]["code"] == "3000"

    @pytest.mark.asyncio
    async def test_products_search(self, api_client: httpx.AsyncClient, mirror_store: MirrorStore) -> None:
        await mirror_store.upsert_products([
            LedgerProduct(product_id="11", name="Ullgenser", unit_price=46240),
            LedgerProduct(product_id="12", name="Lue"),
        ])

        body = (await api_client.get("/api/local/products", params={"q": "genser"})).json()

        assert body["count"] == 1
        assert body["items"][0]["product_id"] == "11"
        assert body["items"][0]["unit_price"] == 46240
