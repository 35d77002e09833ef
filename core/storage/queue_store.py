"""
Queue Store

주문 작업 큐 (order_queue 테이블).
Webhook/백필이 주문 키를 넣고, Worker가 PENDING 엔트리를 클레임하여 처리.
엔트리는 삭제하지 않음 (감사 이력).
"""

import logging
import zlib
from dataclasses import dataclass
from typing import Any

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.domain.state_machines import QueueEntryStateMachine
from core.types import ErrorKind, QueueStatus
from core.utils.timezone import age_seconds, now_utc_iso

logger = logging.getLogger(__name__)

# 경쟁 클레임 재시도 횟수
_CLAIM_RETRIES = 5

_COLUMNS = """
    seq, order_key, status, attempts,
    last_error, error_kind, last_step,
    business_key, posting_id, receipt_attached, source,
    created_at, updated_at, claimed_at, completed_at
"""


def shard_of(order_key: str) -> int:
    """주문 키의 파티션 해시 (crc32, 부호 없음)"""
    return zlib.crc32(order_key.encode("utf-8")) & 0xFFFFFFFF


def partition_of(order_key: str, worker_count: int) -> int:
    """주문 키가 속한 워커 인덱스"""
    if worker_count < 1:
        raise ValueError(f"worker_count는 1 이상이어야 합니다: {worker_count}")
    return shard_of(order_key) % worker_count


@dataclass(frozen=True)
class QueueEntry:
    """큐 엔트리 1건"""

    seq: int
    order_key: str
    status: QueueStatus
    attempts: int
    last_error: str | None
    error_kind: ErrorKind | None
    last_step: str | None
    business_key: str | None
    posting_id: str | None
    receipt_attached: bool
    source: str
    created_at: str
    updated_at: str
    claimed_at: str | None
    completed_at: str | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "seq": self.seq,
            "order_key": self.order_key,
            "status": self.status.value,
            "attempts": self.attempts,
            "last_error": self.last_error,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "last_step": self.last_step,
            "business_key": self.business_key,
            "posting_id": self.posting_id,
            "receipt_attached": self.receipt_attached,
            "source": self.source,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "claimed_at": self.claimed_at,
            "completed_at": self.completed_at,
        }


@dataclass(frozen=True)
class QueueMetrics:
    """큐 현황 (status 엔드포인트용)"""

    pending: int
    in_progress: int
    done: int
    failed: int
    oldest_pending_at: str | None
    oldest_pending_age_sec: float | None

    @property
    def depth(self) -> int:
        """처리 대기 중인 엔트리 수 (PENDING + IN_PROGRESS)"""
        return self.pending + self.in_progress


class QueueStore:
    """주문 작업 큐 저장소

    Args:
        adapter: SQLite 어댑터

    사용 예시:
    ```python
    store = QueueStore(adapter)

    # Webhook 수신
    await store.enqueue("5012345678")

    # Worker
    entry = await store.claim_one(worker_index=0, worker_count=2)
    if entry:
        # 처리...
        await store.mark_done(entry.order_key, business_key="#3403", posting_id="991")
    ```
    """

    def __init__(self, adapter: SQLiteAdapter):
        self.adapter = adapter

    async def enqueue(self, order_key: str, source: str = "webhook") -> bool:
        """주문 키 저장

        order_key가 이미 존재하면 무시 (INSERT OR IGNORE).

        Returns:
            True: 새로 저장됨
            False: 이미 존재 (중복 배달)
        """
        if not order_key:
            raise ValueError("order_key는 비어 있을 수 없습니다")

        now = now_utc_iso()
        cursor = await self.adapter.execute(
            """
            INSERT OR IGNORE INTO order_queue (
                order_key, shard, status, source, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            (order_key, shard_of(order_key), QueueStatus.PENDING.value, source, now, now),
        )
        await self.adapter.commit()

        inserted = cursor.rowcount > 0
        if inserted:
            logger.info("주문 큐 등록", extra={"order_key": order_key, "source": source})
        else:
            logger.debug("주문 큐 중복", extra={"order_key": order_key})

        return inserted

    async def get(self, order_key: str) -> QueueEntry | None:
        """주문 키로 엔트리 조회"""
        row = await self.adapter.fetchone(
            f"SELECT {_COLUMNS} FROM order_queue WHERE order_key = ?",
            (order_key,),
        )
        return self._row_to_entry(row) if row else None

    async def list_pending(
        self,
        limit: int = 100,
        worker_index: int = 0,
        worker_count: int = 1,
    ) -> list[QueueEntry]:
        """PENDING 엔트리 조회 (클레임 없음, dry-run용)"""
        rows = await self.adapter.fetchall(
            f"""
            SELECT {_COLUMNS} FROM order_queue
            WHERE status = ? AND shard % ? = ?
            ORDER BY seq ASC
            LIMIT ?
            """,
            (QueueStatus.PENDING.value, worker_count, worker_index, limit),
        )
        return [self._row_to_entry(row) for row in rows]

    async def claim_one(
        self,
        worker_index: int = 0,
        worker_count: int = 1,
    ) -> QueueEntry | None:
        """PENDING 엔트리 하나 클레임

        자기 파티션(crc32(order_key) % worker_count == worker_index)에서
        가장 오래된 PENDING 엔트리를 IN_PROGRESS로 변경하고 반환.

        Returns:
            클레임된 QueueEntry 또는 None
        """
        for _ in range(_CLAIM_RETRIES):
            row = await self.adapter.fetchone(
                """
                SELECT order_key FROM order_queue
                WHERE status = ? AND shard % ? = ?
                ORDER BY seq ASC
                LIMIT 1
                """,
                (QueueStatus.PENDING.value, worker_count, worker_index),
            )
            if not row:
                return None

            order_key = row[0]
            now = now_utc_iso()
            cursor = await self.adapter.execute(
                """
                UPDATE order_queue
                SET status = ?, attempts = attempts + 1, claimed_at = ?, updated_at = ?
                WHERE order_key = ? AND status = ?
                """,
                (QueueStatus.IN_PROGRESS.value, now, now, order_key, QueueStatus.PENDING.value),
            )
            await self.adapter.commit()

            # 다른 프로세스가 먼저 클레임했을 수 있음
            if cursor.rowcount > 0:
                return await self.get(order_key)

        logger.warning("클레임 경합으로 재시도 소진", extra={"worker_index": worker_index})
        return None

    async def record_posting(
        self,
        order_key: str,
        business_key: str,
        posting_id: str | None,
        last_step: str | None = None,
    ) -> None:
        """Posting 생성/발견 직후 중간 기록 (상태 변경 없음)"""
        await self.adapter.execute(
            """
            UPDATE order_queue
            SET business_key = ?, posting_id = COALESCE(?, posting_id),
                last_step = COALESCE(?, last_step), updated_at = ?
            WHERE order_key = ?
            """,
            (business_key, posting_id, last_step, now_utc_iso(), order_key),
        )
        await self.adapter.commit()

    async def mark_done(
        self,
        order_key: str,
        business_key: str | None = None,
        posting_id: str | None = None,
        receipt_attached: bool = False,
        last_step: str | None = None,
    ) -> bool:
        """IN_PROGRESS → DONE"""
        now = now_utc_iso()
        cursor = await self.adapter.execute(
            """
            UPDATE order_queue
            SET status = ?, updated_at = ?, completed_at = ?,
                business_key = COALESCE(?, business_key),
                posting_id = COALESCE(?, posting_id),
                receipt_attached = ?,
                last_step = COALESCE(?, last_step),
                last_error = NULL, error_kind = NULL
            WHERE order_key = ?
            """,
            (
                QueueStatus.DONE.value, now, now,
                business_key, posting_id, int(receipt_attached), last_step,
                order_key,
            ),
        )
        await self.adapter.commit()
        return cursor.rowcount > 0

    async def mark_failed(
        self,
        order_key: str,
        error: str,
        error_kind: ErrorKind = ErrorKind.UNEXPECTED,
        last_step: str | None = None,
        business_key: str | None = None,
    ) -> bool:
        """IN_PROGRESS → FAILED (오류 기록)"""
        now = now_utc_iso()
        cursor = await self.adapter.execute(
            """
            UPDATE order_queue
            SET status = ?, updated_at = ?, completed_at = ?,
                last_error = ?, error_kind = ?, last_step = COALESCE(?, last_step),
                business_key = COALESCE(?, business_key)
            WHERE order_key = ?
            """,
            (
                QueueStatus.FAILED.value, now, now,
                error, error_kind.value, last_step, business_key,
                order_key,
            ),
        )
        await self.adapter.commit()
        return cursor.rowcount > 0

    async def requeue(self, order_key: str) -> bool:
        """운영자 재큐잉 (DONE/FAILED → PENDING)

        attempts는 유지. 이미 PENDING이거나 처리 중이면 False.
        """
        entry = await self.get(order_key)
        if entry is None:
            return False

        machine = QueueEntryStateMachine(entry.status.value)
        if entry.status == QueueStatus.IN_PROGRESS or not machine.can_transition(
            QueueStatus.PENDING
        ):
            logger.info(
                "재큐잉 불가 상태",
                extra={"order_key": order_key, "status": entry.status.value},
            )
            return False

        cursor = await self.adapter.execute(
            """
            UPDATE order_queue
            SET status = ?, updated_at = ?, completed_at = NULL
            WHERE order_key = ? AND status = ?
            """,
            (QueueStatus.PENDING.value, now_utc_iso(), order_key, entry.status.value),
        )
        await self.adapter.commit()

        requeued = cursor.rowcount > 0
        if requeued:
            logger.info(
                "주문 재큐잉",
                extra={"order_key": order_key, "from_status": entry.status.value},
            )
        return requeued

    async def requeue_failed(
        self,
        max_attempts: int | None = None,
        error_kinds: list[ErrorKind] | None = None,
    ) -> int:
        """FAILED 엔트리 일괄 재큐잉

        Args:
            max_attempts: attempts가 이 값 미만인 엔트리만 (None이면 제한 없음)
            error_kinds: 해당 오류 분류만 (None이면 전체)

        Returns:
            재큐잉된 수
        """
        conditions = ["status = ?"]
        params: list[Any] = [QueueStatus.FAILED.value]

        if max_attempts is not None:
            conditions.append("attempts < ?")
            params.append(max_attempts)

        if error_kinds:
            placeholders = ", ".join("?" for _ in error_kinds)
            conditions.append(f"error_kind IN ({placeholders})")
            params.extend(kind.value for kind in error_kinds)

        cursor = await self.adapter.execute(
            f"""
            UPDATE order_queue
            SET status = ?, updated_at = ?, completed_at = NULL
            WHERE {" AND ".join(conditions)}
            """,
            (QueueStatus.PENDING.value, now_utc_iso(), *params),
        )
        await self.adapter.commit()

        count = cursor.rowcount
        if count > 0:
            logger.info("FAILED 엔트리 재큐잉", extra={"count": count})
        return count

    async def recover_in_progress(
        self,
        worker_index: int | None = None,
        worker_count: int = 1,
    ) -> int:
        """중단된 IN_PROGRESS 엔트리를 PENDING으로 복구 (워커 시작 시)

        worker_index가 주어지면 자기 파티션만 복구.
        """
        sql = """
            UPDATE order_queue
            SET status = ?, updated_at = ?
            WHERE status = ?
        """
        params: tuple[Any, ...] = (
            QueueStatus.PENDING.value, now_utc_iso(), QueueStatus.IN_PROGRESS.value,
        )
        if worker_index is not None:
            sql += " AND shard % ? = ?"
            params = (*params, worker_count, worker_index)

        cursor = await self.adapter.execute(sql, params)
        await self.adapter.commit()

        count = cursor.rowcount
        if count > 0:
            logger.warning("중단된 엔트리 복구", extra={"count": count})
        return count

    async def list_by_status(
        self,
        status: QueueStatus | str | None = None,
        limit: int = 100,
    ) -> list[QueueEntry]:
        """상태별 엔트리 조회 (최근 순). status None이면 전체."""
        if status is None:
            rows = await self.adapter.fetchall(
                f"SELECT {_COLUMNS} FROM order_queue ORDER BY seq DESC LIMIT ?",
                (limit,),
            )
        else:
            status_str = status.value if isinstance(status, QueueStatus) else status
            rows = await self.adapter.fetchall(
                f"""
                SELECT {_COLUMNS} FROM order_queue
                WHERE status = ?
                ORDER BY seq DESC
                LIMIT ?
                """,
                (status_str, limit),
            )
        return [self._row_to_entry(row) for row in rows]

    async def count_by_status(self) -> dict[str, int]:
        """상태별 엔트리 수 (없는 상태는 0)"""
        rows = await self.adapter.fetchall(
            "SELECT status, COUNT(*) AS cnt FROM order_queue GROUP BY status"
        )
        counts = {status.value: 0 for status in QueueStatus}
        for status, cnt in rows:
            counts[status] = cnt
        return counts

    async def get_metrics(self) -> QueueMetrics:
        """큐 현황"""
        counts = await self.count_by_status()
        row = await self.adapter.fetchone(
            "SELECT MIN(created_at) FROM order_queue WHERE status = ?",
            (QueueStatus.PENDING.value,),
        )
        oldest = row[0] if row else None

        return QueueMetrics(
            pending=counts[QueueStatus.PENDING.value],
            in_progress=counts[QueueStatus.IN_PROGRESS.value],
            done=counts[QueueStatus.DONE.value],
            failed=counts[QueueStatus.FAILED.value],
            oldest_pending_at=oldest,
            oldest_pending_age_sec=age_seconds(oldest),
        )

    def _row_to_entry(self, row: tuple[Any, ...]) -> QueueEntry:
        """DB row → QueueEntry"""
        return QueueEntry(
            seq=row[0],
            order_key=row[1],
            status=QueueStatus(row[2]),
            attempts=row[3],
            last_error=row[4],
            error_kind=ErrorKind(row[5]) if row[5] else None,
            last_step=row[6],
            business_key=row[7],
            posting_id=row[8],
            receipt_attached=bool(row[9]),
            source=row[10],
            created_at=row[11],
            updated_at=row[12],
            claimed_at=row[13],
            completed_at=row[14],
        )
