"""
Settlement Worker

큐 엔트리를 클레임하여 SettlementProcessor로 처리하고 결과를 큐에 기록.
배치마다 CounterpartyCache 1개를 생성하여 주문 간 공유.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from core.config.loader import WorkerConfig
from core.domain.state_machines import SettlementStep
from core.storage.checkpoint_store import CheckpointStore
from core.storage.queue_store import QueueEntry, QueueStore
from core.types import ErrorKind
from worker.claimer import QueueClaimer
from worker.counterparty import CounterpartyCache
from worker.poller.sync_poller import LedgerSyncPoller
from worker.processor import ProcessResult, SettlementProcessor

logger = logging.getLogger(__name__)

# dry-run에서 limit 없이 조회할 최대 엔트리 수
PEEK_LIMIT = 1000


@dataclass
class BatchReport:
    """배치 1회 결과"""

    dry_run: bool = False
    processed: int = 0
    done: int = 0
    failed: int = 0
    created: int = 0
    skipped_existing: int = 0
    receipts_missing: int = 0
    stopped: bool = False
    results: list[ProcessResult] = field(default_factory=list)

    def add(self, result: ProcessResult) -> None:
        self.processed += 1
        self.results.append(result)
        if not result.success:
            self.failed += 1
            return

        self.done += 1
        if result.created:
            self.created += 1
        if result.skipped_existing:
            self.skipped_existing += 1
        if not result.receipt_attached:
            self.receipts_missing += 1

    def to_dict(self, include_results: bool = False) -> dict[str, Any]:
        data: dict[str, Any] = {
            "dry_run": self.dry_run,
            "processed": self.processed,
            "done": self.done,
            "failed": self.failed,
            "created": self.created,
            "skipped_existing": self.skipped_existing,
            "receipts_missing": self.receipts_missing,
            "stopped": self.stopped,
        }
        if include_results:
            data["results"] = [result.to_dict() for result in self.results]
        return data


class SettlementWorker:
    """정산 워커

    Args:
        processor: 주문 처리기
        queue_store: 큐 저장소
        checkpoint_store: 체크포인트 저장소
        config: 워커 설정 (파티션, 간격, 재시도 상한)
        sync_poller: 주기적 원장 동기화 (선택)

    사용 예시:
    ```python
    worker = SettlementWorker(processor, queue_store, checkpoint_store, settings.worker)

    report = await worker.run_batch(limit=10)

    # 상주 실행 (request_stop()으로 종료)
    await worker.run_forever()
    ```
    """

    def __init__(
        self,
        processor: SettlementProcessor,
        queue_store: QueueStore,
        checkpoint_store: CheckpointStore,
        config: WorkerConfig | None = None,
        sync_poller: LedgerSyncPoller | None = None,
    ):
        self.processor = processor
        self.queue_store = queue_store
        self.checkpoint_store = checkpoint_store
        self.config = config or WorkerConfig()
        self.sync_poller = sync_poller
        self.claimer = QueueClaimer(
            queue_store,
            worker_index=self.config.worker_index,
            worker_count=self.config.worker_count,
        )

        self._stop_event = asyncio.Event()

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    def request_stop(self) -> None:
        """현재 주문 처리 후 정지"""
        if not self._stop_event.is_set():
            logger.info("워커 정지 요청")
        self._stop_event.set()

    async def run_batch(self, limit: int | None = None, dry_run: bool = False) -> BatchReport:
        """배치 1회 실행

        Args:
            limit: 최대 처리 수 (None이면 대기 중인 엔트리 전부)
            dry_run: True면 클레임 없이 조회만 하고 원격 쓰기/큐 변경 없음
        """
        report = BatchReport(dry_run=dry_run)
        cache = CounterpartyCache()

        if dry_run:
            entries = await self.claimer.peek(limit=limit if limit is not None else PEEK_LIMIT)
            for entry in entries:
                if self.stop_requested:
                    report.stopped = True
                    break
                report.add(await self.processor.process(entry.order_key, cache, dry_run=True))
        else:
            while limit is None or report.processed < limit:
                if self.stop_requested:
                    report.stopped = True
                    break

                entry = await self.claimer.claim_one()
                if entry is None:
                    break

                result = await self.processor.process(entry.order_key, cache)
                await self._commit(entry, result)
                report.add(result)

        if report.processed:
            logger.info(
                "배치 완료",
                extra={
                    "dry_run": dry_run,
                    "processed": report.processed,
                    "done": report.done,
                    "failed": report.failed,
                    "postings_created": report.created,
                    "skipped_existing": report.skipped_existing,
                    "counterparty_cache": len(cache),
                },
            )
        return report

    async def _commit(self, entry: QueueEntry, result: ProcessResult) -> None:
        """처리 결과를 큐에 기록"""
        if result.success:
            await self.queue_store.mark_done(
                entry.order_key,
                business_key=result.business_key,
                posting_id=result.posting_id,
                receipt_attached=result.receipt_attached,
                last_step=SettlementStep.DONE.value,
            )
            await self.checkpoint_store.mark_order_processed(entry.order_key)
            return

        await self.queue_store.mark_failed(
            entry.order_key,
            error=result.error or "[UNKNOWN] processing failed",
            error_kind=result.error_kind or ErrorKind.UNEXPECTED,
            last_step=result.failed_step.value if result.failed_step else None,
            business_key=result.business_key,
        )

    async def requeue_transient(self) -> int:
        """TRANSIENT_REMOTE 실패 중 재시도 상한 미만인 엔트리 재큐잉"""
        return await self.queue_store.requeue_failed(
            max_attempts=self.config.max_attempts,
            error_kinds=[ErrorKind.TRANSIENT_REMOTE],
        )

    async def run_forever(self) -> None:
        """상주 루프

        시작 시 중단된 IN_PROGRESS 복구 → (재큐잉 → 배치 → 동기화 → 대기) 반복.
        """
        recovered = await self.claimer.recover()
        logger.info(
            "워커 시작",
            extra={
                "worker_index": self.config.worker_index,
                "worker_count": self.config.worker_count,
                "recovered": recovered,
            },
        )

        if self.sync_poller is not None:
            await self.sync_poller.initialize()

        while not self.stop_requested:
            await self.requeue_transient()
            await self.run_batch()

            if (
                self.sync_poller is not None
                and not self.stop_requested
                and await self.sync_poller.should_poll()
            ):
                await self.sync_poller.poll()

            try:
                await asyncio.wait_for(
                    self._stop_event.wait(), timeout=self.config.poll_interval_sec
                )
            except asyncio.TimeoutError:
                pass

        if self.sync_poller is not None:
            await self.sync_poller.stop()

        logger.info("워커 정지", extra=self.claimer.get_stats())
