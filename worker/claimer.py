"""
Queue Claimer

자기 파티션의 PENDING 엔트리를 클레임하여 IN_PROGRESS로 전환.
Worker 배치 루프에서 호출.
"""

import logging
from typing import Any

from core.storage.queue_store import QueueEntry, QueueStore

logger = logging.getLogger(__name__)


class QueueClaimer:
    """큐 클레이머

    crc32(order_key) % worker_count == worker_index 인 엔트리만 클레임.
    같은 키는 항상 같은 워커가 처리하므로 키 단위 순차 처리 보장.

    Args:
        queue_store: 큐 저장소
        worker_index: 이 워커의 파티션 번호 (0부터)
        worker_count: 전체 워커 수

    사용 예시:
    ```python
    claimer = QueueClaimer(queue_store, worker_index=0, worker_count=2)

    entry = await claimer.claim_one()
    if entry:
        # 처리...
    ```
    """

    def __init__(self, queue_store: QueueStore, worker_index: int = 0, worker_count: int = 1):
        if worker_count < 1:
            raise ValueError(f"worker_count는 1 이상이어야 합니다: {worker_count}")
        if not 0 <= worker_index < worker_count:
            raise ValueError(
                f"worker_index는 0 이상 {worker_count} 미만이어야 합니다: {worker_index}"
            )

        self.queue_store = queue_store
        self.worker_index = worker_index
        self.worker_count = worker_count

        # 통계
        self._claimed_count = 0

    async def claim_one(self) -> QueueEntry | None:
        """엔트리 하나 클레임 (PENDING → IN_PROGRESS)"""
        entry = await self.queue_store.claim_one(
            worker_index=self.worker_index,
            worker_count=self.worker_count,
        )

        if entry:
            self._claimed_count += 1
            logger.info(
                "주문 클레임",
                extra={
                    "order_key": entry.order_key,
                    "attempts": entry.attempts,
                    "worker_index": self.worker_index,
                },
            )

        return entry

    async def peek(self, limit: int = 100) -> list[QueueEntry]:
        """클레임 없이 PENDING 엔트리 조회 (dry-run)"""
        return await self.queue_store.list_pending(
            limit=limit,
            worker_index=self.worker_index,
            worker_count=self.worker_count,
        )

    async def recover(self) -> int:
        """자기 파티션의 IN_PROGRESS 엔트리를 PENDING으로 복구"""
        return await self.queue_store.recover_in_progress(
            worker_index=self.worker_index,
            worker_count=self.worker_count,
        )

    def get_stats(self) -> dict[str, Any]:
        """통계 반환"""
        return {
            "claimed_count": self._claimed_count,
            "worker_index": self.worker_index,
            "worker_count": self.worker_count,
        }
