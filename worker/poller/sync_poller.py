"""
Ledger Sync Poller

Fiken 원격 상태(거래처, 판매, 계정과목, 상품)를 로컬 미러로 동기화하고
큐와 미러를 비교하여 드리프트를 보고.

리소스마다 전체 페이지를 받은 뒤 미러 저장과 sync:<resource> 체크포인트를
한 트랜잭션으로 커밋. 실패한 리소스의 체크포인트는 그대로 유지.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, TypeVar

from adapters.db.sqlite_adapter import SQLiteAdapter
from adapters.fiken.rate_limiter import FikenApiError
from adapters.interfaces import ILedgerClient
from adapters.models import Page
from core.storage.checkpoint_store import CheckpointStore, sync_key
from core.storage.mirror_store import MirrorStore
from core.storage.queue_store import QueueStore
from core.types import QueueStatus
from core.utils.timezone import now_utc_iso
from worker.poller.base import BasePoller

logger = logging.getLogger(__name__)

T = TypeVar("T")

RESOURCES = ("contacts", "sales", "accounts", "products")

# 드리프트 점검 시 조회할 큐 엔트리 수
DRIFT_SCAN_LIMIT = 10_000


@dataclass
class DriftInfo:
    """큐와 미러 불일치 1건"""

    drift_kind: str  # missing_remote, resolved_remote
    order_key: str
    business_key: str | None
    description: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "drift_kind": self.drift_kind,
            "order_key": self.order_key,
            "business_key": self.business_key,
            "description": self.description,
        }


@dataclass
class SyncReport:
    """동기화 패스 결과"""

    counts: dict[str, int] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)
    drift: list[DriftInfo] = field(default_factory=list)
    started_at: str = field(default_factory=now_utc_iso)

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def total_records(self) -> int:
        return sum(self.counts.values())

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "counts": dict(self.counts),
            "errors": dict(self.errors),
            "drift": [item.to_dict() for item in self.drift],
            "started_at": self.started_at,
        }


class LedgerSyncPoller(BasePoller):
    """원장 동기화 Poller

    Args:
        ledger: 원장 클라이언트
        adapter: SQLite 어댑터 (트랜잭션용)
        mirror_store: 미러 저장소
        checkpoint_store: 체크포인트 저장소
        queue_store: 드리프트 점검용 큐 (선택)
        poll_interval_seconds: 동기화 간격
        page_size: 페이지 크기
    """

    def __init__(
        self,
        ledger: ILedgerClient,
        adapter: SQLiteAdapter,
        mirror_store: MirrorStore,
        checkpoint_store: CheckpointStore,
        queue_store: QueueStore | None = None,
        poll_interval_seconds: int = 6 * 60 * 60,
        page_size: int = 100,
    ):
        super().__init__(checkpoint_store, poll_interval_seconds)
        self.ledger = ledger
        self.adapter = adapter
        self.mirror_store = mirror_store
        self.queue_store = queue_store
        self.page_size = page_size
        self.last_report: SyncReport | None = None

    @property
    def poller_name(self) -> str:
        return "LedgerSync"

    async def _do_poll(self) -> int:
        report = await self.run_once()
        return report.total_records

    async def run_once(self) -> SyncReport:
        """동기화 1회 실행 (CLI, POST /api/sync)"""
        report = SyncReport()

        for resource in RESOURCES:
            try:
                count = await self._sync_resource(resource)
            except FikenApiError as e:
                report.errors[resource] = f"{type(e).__name__}: {e.message}"
                logger.error(
                    "리소스 동기화 실패, 체크포인트 유지",
                    extra={
                        "resource": resource,
                        "kind": e.kind.value,
                        "status": e.status_code,
                        "body": e.body,
                    },
                )
                continue

            report.counts[resource] = count

        if self.queue_store is not None and "sales" in report.counts:
            report.drift = await self.detect_drift()

        self.last_report = report
        logger.info(
            "원장 동기화 완료",
            extra={
                "counts": report.counts,
                "errors": list(report.errors),
                "drift": len(report.drift),
            },
        )
        return report

    async def _sync_resource(self, resource: str) -> int:
        """리소스 1개 동기화

        전체 페이지 수집 후 upsert, 원격에 없는 행 삭제, 체크포인트 갱신을
        한 트랜잭션으로 저장.
        """
        if resource == "contacts":
            items = await self._fetch_all(self.ledger.list_counterparties)
            upsert = self.mirror_store.upsert_contacts
            keep_ids = {item.contact_id for item in items}
        elif resource == "sales":
            items = await self._fetch_all(self.ledger.list_postings)
            upsert = self.mirror_store.upsert_sales
            keep_ids = {item.sale_id for item in items}
        elif resource == "accounts":
            items = await self._fetch_all(self.ledger.list_accounts)
            upsert = self.mirror_store.upsert_accounts
            keep_ids = {item.code for item in items}
        elif resource == "products":
            items = await self._fetch_all(self.ledger.list_products)
            upsert = self.mirror_store.upsert_products
            keep_ids = {item.product_id for item in items}
        else:
            raise ValueError(f"알 수 없는 리소스: {resource}")

        async with self.adapter.transaction():
            await upsert(items, commit=False)
            removed = await self.mirror_store.prune(resource, keep_ids, commit=False)
            await self.checkpoint_store.set(sync_key(resource), now_utc_iso(), commit=False)

        logger.debug(
            "리소스 동기화",
            extra={"resource": resource, "count": len(items), "removed": removed},
        )
        return len(items)

    async def _fetch_all(
        self,
        fetch_page: Callable[..., Awaitable[Page[T]]],
    ) -> list[T]:
        items: list[T] = []
        page_number = 0
        while True:
            page = await fetch_page(page=page_number, page_size=self.page_size)
            items.extend(page.items)
            if not page.has_next or not page.items:
                break
            page_number += 1
        return items

    async def detect_drift(self) -> list[DriftInfo]:
        """큐와 미러 비교

        - DONE인데 미러에 Posting이 없음 (원격에서 삭제되었을 수 있음)
        - FAILED인데 같은 비즈니스 키의 Posting이 원격에 존재 (재큐잉하면 skip 경로)
        """
        if self.queue_store is None:
            return []

        known = await self.mirror_store.sale_numbers()
        drift: list[DriftInfo] = []

        for entry in await self.queue_store.list_by_status(QueueStatus.DONE, limit=DRIFT_SCAN_LIMIT):
            if entry.posting_id and entry.business_key and entry.business_key not in known:
                drift.append(DriftInfo(
                    drift_kind="missing_remote",
                    order_key=entry.order_key,
                    business_key=entry.business_key,
                    description=(
                        f"Queue entry is DONE but sale {entry.business_key} "
                        f"(id {entry.posting_id}) is not in the ledger mirror"
                    ),
                ))

        for entry in await self.queue_store.list_by_status(QueueStatus.FAILED, limit=DRIFT_SCAN_LIMIT):
            if entry.business_key and entry.business_key in known:
                drift.append(DriftInfo(
                    drift_kind="resolved_remote",
                    order_key=entry.order_key,
                    business_key=entry.business_key,
                    description=(
                        f"Queue entry is FAILED but sale {entry.business_key} "
                        f"exists in the ledger; requeue to complete"
                    ),
                ))

        for item in drift:
            logger.warning(
                "큐/원장 드리프트",
                extra={
                    "drift_kind": item.drift_kind,
                    "order_key": item.order_key,
                    "business_key": item.business_key,
                },
            )

        return drift
