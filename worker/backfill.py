"""
Backfill Runner

주문 소스(Shopify API 또는 백업 디렉토리)의 결제 완료 주문을 일괄 정산.
- dry-run: 같은 처리기를 원격 쓰기/큐 변경 없이 실행 (결과 보고만)
- 실행: 결제 주문을 큐에 넣고 워커 배치를 limit만큼 실행
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from adapters.interfaces import IOrderSource
from core.storage.queue_store import QueueStore
from worker.counterparty import CounterpartyCache
from worker.loop import BatchReport, SettlementWorker
from worker.processor import ProcessResult, SettlementProcessor

logger = logging.getLogger(__name__)

BACKFILL_SOURCE = "backfill"


@dataclass
class BackfillReport:
    """백필 결과"""

    dry_run: bool
    orders_found: int = 0
    enqueued: int = 0
    already_queued: int = 0
    batch: BatchReport | None = None
    results: list[ProcessResult] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "dry_run": self.dry_run,
            "orders_found": self.orders_found,
            "enqueued": self.enqueued,
            "already_queued": self.already_queued,
        }
        if self.batch is not None:
            data["batch"] = self.batch.to_dict()
        if self.results:
            data["results"] = [result.to_dict() for result in self.results]
        return data


class BackfillRunner:
    """백필 실행기

    Args:
        order_source: 주문 소스
        processor: 주문 처리기 (dry-run용)
        queue_store: 큐 저장소
        worker: 정산 워커 (실행용)
    """

    def __init__(
        self,
        order_source: IOrderSource,
        processor: SettlementProcessor,
        queue_store: QueueStore,
        worker: SettlementWorker,
    ):
        self.order_source = order_source
        self.processor = processor
        self.queue_store = queue_store
        self.worker = worker

    async def run(self, limit: int | None = None, dry_run: bool = False) -> BackfillReport:
        """백필 실행

        Args:
            limit: 처리할 최대 주문 수
            dry_run: True면 원격 쓰기/큐 변경 없음
        """
        orders = await self.order_source.list_paid_orders(limit=limit)
        report = BackfillReport(dry_run=dry_run, orders_found=len(orders))

        logger.info(
            "백필 시작",
            extra={"orders_found": len(orders), "limit": limit, "dry_run": dry_run},
        )

        if dry_run:
            cache = CounterpartyCache()
            for order in orders:
                result = await self.processor.process(
                    order.order_id, cache, dry_run=True, order=order
                )
                report.results.append(result)

            logger.info(
                "백필 dry-run 완료",
                extra={
                    "orders_found": len(orders),
                    "would_succeed": sum(1 for result in report.results if result.success),
                    "would_fail": sum(1 for result in report.results if not result.success),
                },
            )
            return report

        for order in orders:
            if await self.queue_store.enqueue(order.order_id, source=BACKFILL_SOURCE):
                report.enqueued += 1
            else:
                report.already_queued += 1

        report.batch = await self.worker.run_batch(limit=limit)

        logger.info("백필 완료", extra=report.to_dict())
        return report
