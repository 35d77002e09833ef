"""
SettlementWorker 테스트
"""

from typing import Any, Callable
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from adapters.fiken.rate_limiter import FikenTransientError
from adapters.mock.ledger_client import MockLedgerClient
from adapters.mock.order_source import MockOrderSource
from core.config.loader import WorkerConfig
from core.storage.checkpoint_store import LAST_PROCESSED_ORDER, sync_key
from core.types import ErrorKind, QueueStatus
from worker.bootstrap import WorkerContext
from worker.loop import BatchReport, SettlementWorker

ORDER_KEY = "5012345678"


class TestRunBatch:
    """run_batch 테스트"""

    @pytest.mark.asyncio
    async def test_processes_pending(self, worker_context: WorkerContext, mock_ledger: MockLedgerClient) -> None:
        """PENDING → DONE, 체크포인트 갱신"""
        await worker_context.queue_store.enqueue(ORDER_KEY)

        report = await worker_context.worker.run_batch()

        assert (report.processed, report.done, report.failed, report.created) == (1, 1, 0, 1)
        entry = await worker_context.queue_store.get(ORDER_KEY)
        assert entry.status == QueueStatus.DONE
        assert entry.business_key == "#3403"
        assert entry.posting_id is not None
        assert entry.receipt_attached
        assert entry.last_step == "DONE"
        assert await worker_context.checkpoint_store.get(LAST_PROCESSED_ORDER) == ORDER_KEY

        # 설정된 2.9% 수수료 분할
        amounts = [payment.amount for payment in mock_ledger.state.payments[entry.posting_id]]
        assert amounts == [62338, 1862]

    @pytest.mark.asyncio
    async def test_failure_recorded(self, worker_context: WorkerContext) -> None:
        """실패는 FAILED + 오류 문자열, 다른 주문은 계속 처리"""
        await worker_context.queue_store.enqueue("404")
        await worker_context.queue_store.enqueue(ORDER_KEY)

        report = await worker_context.worker.run_batch()

        assert (report.done, report.failed) == (1, 1)
        failed = await worker_context.queue_store.get("404")
        assert failed.status == QueueStatus.FAILED
        assert failed.error_kind == ErrorKind.VALIDATION
        assert failed.last_step == "LOADING"
        assert failed.last_error.startswith("[LOADING] OrderSourceError:")
        assert (await worker_context.queue_store.get(ORDER_KEY)).status == QueueStatus.DONE

    @pytest.mark.asyncio
    async def test_limit(
        self,
        worker_context: WorkerContext,
        mock_source: MockOrderSource,
        order_factory: Callable[..., dict[str, Any]],
    ) -> None:
        mock_source.add(order_factory(order_id=7001, order_number=3404))
        await worker_context.queue_store.enqueue(ORDER_KEY)
        await worker_context.queue_store.enqueue("7001")

        report = await worker_context.worker.run_batch(limit=1)

        assert report.processed == 1
        assert (await worker_context.queue_store.get("7001")).status == QueueStatus.PENDING

    @pytest.mark.asyncio
    async def test_dry_run_leaves_queue(self, worker_context: WorkerContext, mock_ledger: MockLedgerClient) -> None:
        """dry-run: 클레임/원격 쓰기 없음"""
        await worker_context.queue_store.enqueue(ORDER_KEY)

        report = await worker_context.worker.run_batch(dry_run=True)

        assert report.dry_run
        assert report.done == 1
        entry = await worker_context.queue_store.get(ORDER_KEY)
        assert entry.status == QueueStatus.PENDING
        assert entry.attempts == 0
        assert mock_ledger.state.sales == {}
        assert await worker_context.mirror_store.counts() == {"contacts": 0, "sales": 0, "accounts": 0, "products": 0}

    @pytest.mark.asyncio
    async def test_stop_before_batch(self, worker_context: WorkerContext) -> None:
        await worker_context.queue_store.enqueue(ORDER_KEY)
        worker_context.worker.request_stop()

        report = await worker_context.worker.run_batch()

        assert report.stopped
        assert report.processed == 0

    @pytest.mark.asyncio
    async def test_report_dict(self, worker_context: WorkerContext) -> None:
        await worker_context.queue_store.enqueue(ORDER_KEY)

        report = await worker_context.worker.run_batch()
        data = report.to_dict(include_results=True)

        assert data["done"] == 1
        assert data["results"][0]["business_key"] == "#3403"
        assert data["results"][0]["gross"] == 64200


class TestRequeueTransient:
    """일시 오류 자동 재큐잉"""

    @pytest.mark.asyncio
    async def test_transient_failure_retried(
        self, worker_context: WorkerContext, mock_ledger: MockLedgerClient
    ) -> None:
        mock_ledger.fail_next("search_posting", FikenTransientError("down", status_code=503))
        await worker_context.queue_store.enqueue(ORDER_KEY)

        first = await worker_context.worker.run_batch()
        requeued = await worker_context.worker.requeue_transient()
        second = await worker_context.worker.run_batch()

        assert first.failed == 1
        assert requeued == 1
        assert second.done == 1
        entry = await worker_context.queue_store.get(ORDER_KEY)
        assert entry.status == QueueStatus.DONE
        assert entry.attempts == 2
        assert mock_ledger.count_postings("#3403") == 1

    @pytest.mark.asyncio
    async def test_validation_failure_not_retried(self, worker_context: WorkerContext) -> None:
        await worker_context.queue_store.enqueue("404")
        await worker_context.worker.run_batch()

        assert await worker_context.worker.requeue_transient() == 0


class TestRunForever:
    """상주 루프"""

    @pytest.mark.asyncio
    async def test_runs_until_stopped(self, worker_context: WorkerContext) -> None:
        """중단 엔트리 복구 → 배치 후 정지"""
        worker = SettlementWorker(
            worker_context.processor,
            worker_context.queue_store,
            worker_context.checkpoint_store,
            config=WorkerConfig(poll_interval_sec=0),
            sync_poller=worker_context.sync_poller,
        )

        # 이전 실행에서 중단된 엔트리
        await worker_context.queue_store.enqueue(ORDER_KEY)
        await worker_context.queue_store.claim_one()

        batches = []
        original = worker.run_batch

        async def run_batch_once(*args: Any, **kwargs: Any):
            report = await original(*args, **kwargs)
            batches.append(report)
            worker.request_stop()
            return report

        worker.run_batch = run_batch_once

        await worker.run_forever()

        assert len(batches) == 1
        assert batches[0].done == 1
        assert (await worker_context.queue_store.get(ORDER_KEY)).status == QueueStatus.DONE
        # 정지 요청 후에는 동기화 생략
        assert await worker_context.checkpoint_store.get(sync_key("sales")) is None

    @pytest.mark.asyncio
    async def test_sync_between_batches(self, worker_context: WorkerContext) -> None:
        """배치 사이에 동기화 주기가 되면 poll 호출, 종료 시 stop"""
        sync_poller = MagicMock()
        sync_poller.initialize = AsyncMock()
        sync_poller.should_poll = AsyncMock(return_value=True)
        sync_poller.poll = AsyncMock(return_value={"records": 3})
        sync_poller.stop = AsyncMock()

        worker = SettlementWorker(
            worker_context.processor,
            worker_context.queue_store,
            worker_context.checkpoint_store,
            config=WorkerConfig(poll_interval_sec=0),
            sync_poller=sync_poller,
        )

        calls = 0

        async def fake_batch(*args: Any, **kwargs: Any) -> BatchReport:
            nonlocal calls
            calls += 1
            if calls == 2:
                worker.request_stop()
            return BatchReport()

        with patch.object(worker, "run_batch", side_effect=fake_batch):
            await worker.run_forever()

        assert calls == 2
        sync_poller.initialize.assert_awaited_once()
        assert sync_poller.poll.await_count == 1
        sync_poller.stop.assert_awaited_once()
