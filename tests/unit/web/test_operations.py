"""
운영 라우트 테스트

/api/queue, /api/sync
"""

from types import SimpleNamespace

import httpx
import pytest
from fastapi import Request

from adapters.mock.ledger_client import MockLedgerClient
from core.storage.queue_store import QueueStore
from core.types import ErrorKind, QueueStatus
from web import dependencies
from web.app import create_app


class TestQueueRoutes:
    """큐 조작 API"""

    @pytest.mark.asyncio
    async def test_manual_enqueue(self, api_client: httpx.AsyncClient, queue_store: QueueStore) -> None:
        first = await api_client.post("/api/queue/5012345678")
        second = await api_client.post("/api/queue/5012345678")

        assert first.json() == {"order_id": "5012345678", "result": "enqueued"}
        assert second.json()["result"] == "already_queued"
        assert (await queue_store.get("5012345678")).source == "manual"

    @pytest.mark.asyncio
    async def test_enqueue_rejects_non_numeric(self, api_client: httpx.AsyncClient) -> None:
        response = await api_client.post("/api/queue/abc")

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_requeue_failed(self, api_client: httpx.AsyncClient, queue_store: QueueStore) -> None:
        await queue_store.enqueue("1")
        await queue_store.claim_one()
        await queue_store.mark_failed("1", error="boom", error_kind=ErrorKind.TRANSIENT_REMOTE)

        response = await api_client.post("/api/queue/1/requeue")

        assert response.status_code == 200
        assert response.json()["result"] == "requeued"
        assert (await queue_store.get("1")).status == QueueStatus.PENDING

    @pytest.mark.asyncio
    async def test_requeue_missing(self, api_client: httpx.AsyncClient) -> None:
        response = await api_client.post("/api/queue/404/requeue")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_requeue_pending_conflict(self, api_client: httpx.AsyncClient, queue_store: QueueStore) -> None:
        await queue_store.enqueue("1")

        response = await api_client.post("/api/queue/1/requeue")

        assert response.status_code == 409
        assert "PENDING" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_list_queue(self, api_client: httpx.AsyncClient, queue_store: QueueStore) -> None:
        await queue_store.enqueue("1")
        await queue_store.enqueue("2")
        await queue_store.claim_one()
        await queue_store.mark_failed("1", error="[LOADING] OrderSourceError: gone", error_kind=ErrorKind.VALIDATION)

        everything = (await api_client.get("/api/queue")).json()
        failed = (await api_client.get("/api/queue", params={"status": "failed"})).json()

        assert everything["count"] == 2
        assert failed["count"] == 1
        assert failed["entries"][0]["order_key"] == "1"
        assert failed["entries"][0]["error_kind"] == "VALIDATION"
        assert failed["entries"][0]["last_error"].startswith("[LOADING]")

    @pytest.mark.asyncio
    async def test_list_queue_invalid_status(self, api_client: httpx.AsyncClient) -> None:
        response = await api_client.get("/api/queue", params={"status": "LOST"})

        assert response.status_code == 400


class TestSyncRoute:
    """POST /api/sync"""

    @pytest.mark.asyncio
    async def test_sync(self, api_client: httpx.AsyncClient, mock_ledger: MockLedgerClient) -> None:
        mock_ledger.add_contact("Kari Nordmann", "kari.nordmann@example.no")
        mock_ledger.add_account("3000", "Salgsinntekt")

        response = await api_client.post("/api/sync")

        body = response.json()
        assert response.status_code == 200
        assert body["ok"]
        assert body["counts"] == {"contacts": 1, "sales": 0, "accounts": 1, "products": 0}

        contacts = (await api_client.get("/api/local/contacts")).json()
        assert contacts["count"] == 1


class TestLedgerClientDependency:
    """프로세스 공유 원장 클라이언트"""

    def test_one_client_per_app(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """요청마다 같은 클라이언트 (같은 페이서)"""
        built: list[MockLedgerClient] = []

        def fake_build(config):
            client = MockLedgerClient()
            built.append(client)
            return client

        monkeypatch.setattr(dependencies, "build_ledger_client", fake_build)
        monkeypatch.setattr(dependencies, "get_settings", lambda: SimpleNamespace(config=None))
        app = create_app()

        first = dependencies.get_ledger_client(Request({"type": "http", "app": app}))
        second = dependencies.get_ledger_client(Request({"type": "http", "app": app}))

        assert first is second
        assert app.state.ledger_client is first
        assert len(built) == 1

    def test_uses_lifespan_client(self) -> None:
        app = create_app()
        app.state.ledger_client = MockLedgerClient()

        client = dependencies.get_ledger_client(Request({"type": "http", "app": app}))

        assert client is app.state.ledger_client
