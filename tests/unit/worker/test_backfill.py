"""
BackfillRunner 테스트
"""

from typing import Any, Callable

import pytest

from adapters.mock.ledger_client import MockLedgerClient
from adapters.mock.order_source import MockOrderSource
from core.types import QueueStatus
from worker.bootstrap import WorkerContext


@pytest.fixture
def three_orders(mock_source: MockOrderSource, order_factory: Callable[..., dict[str, Any]]) -> None:
    """#3403 + #3404 (결제) + #3405 (미결제)"""
    mock_source.add(order_factory(order_id=7001, order_number=3404, email="ola@example.no"))
    mock_source.add(order_factory(order_id=7002, order_number=3405, financial_status="pending"))


class TestBackfillRunner:
    """BackfillRunner 테스트"""

    @pytest.mark.asyncio
    async def test_dry_run(
        self, worker_context: WorkerContext, mock_ledger: MockLedgerClient, three_orders: None
    ) -> None:
        """큐/원격 쓰기 없이 결과만"""
        report = await worker_context.backfill.run(dry_run=True)

        assert report.orders_found == 2
        assert [result.business_key for result in report.results] == ["#3403", "#3404"]
        assert all(result.success for result in report.results)
        assert sum((await worker_context.queue_store.count_by_status()).values()) == 0
        assert mock_ledger.state.sales == {}
        assert "create_counterparty" not in mock_ledger.state.calls

    @pytest.mark.asyncio
    async def test_run_enqueues_and_processes(
        self, worker_context: WorkerContext, mock_ledger: MockLedgerClient, three_orders: None
    ) -> None:
        report = await worker_context.backfill.run()

        assert report.enqueued == 2
        assert report.batch.done == 2
        entry = await worker_context.queue_store.get("7001")
        assert entry.status == QueueStatus.DONE
        assert entry.source == "backfill"
        assert mock_ledger.count_postings("#3404") == 1

    @pytest.mark.asyncio
    async def test_rerun_is_idempotent(
        self, worker_context: WorkerContext, mock_ledger: MockLedgerClient, three_orders: None
    ) -> None:
        """두 번째 실행은 이미 큐에 있는 주문을 건너뜀"""
        await worker_context.backfill.run()
        second = await worker_context.backfill.run()

        assert second.enqueued == 0
        assert second.already_queued == 2
        assert second.batch.processed == 0
        assert mock_ledger.count_postings("#3403") == 1

    @pytest.mark.asyncio
    async def test_limit(self, worker_context: WorkerContext, three_orders: None) -> None:
        report = await worker_context.backfill.run(limit=1)

        assert report.orders_found == 1
        assert report.to_dict()["batch"]["processed"] == 1
