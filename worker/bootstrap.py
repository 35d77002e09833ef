"""
Worker Bootstrap

설정 로드, 의존성 주입, 메인 루프 관리.
CLI(python -m worker)와 Web 운영 라우트가 같은 조립 코드를 사용.
"""

import asyncio
import logging
import signal
import sys
from dataclasses import dataclass

from adapters.db.sqlite_adapter import SQLiteAdapter, init_schema
from adapters.fiken.rest_client import FikenRestClient
from adapters.interfaces import ILedgerClient, IOrderSource
from adapters.shopify.file_source import BackupDirectoryOrderSource
from adapters.shopify.rest_client import ShopifyRestClient
from core.config.loader import AppConfig, get_settings
from core.logging import setup_logging
from core.storage.checkpoint_store import CheckpointStore
from core.storage.mirror_store import MirrorStore
from core.storage.queue_store import QueueStore
from core.types import OrderSourceKind
from worker.backfill import BackfillRunner
from worker.loop import SettlementWorker
from worker.poller.sync_poller import LedgerSyncPoller
from worker.processor import SettlementProcessor

logger = logging.getLogger("worker")


def build_ledger_client(config: AppConfig) -> FikenRestClient:
    """Fiken 원장 클라이언트 생성"""
    return FikenRestClient(
        api_token=config.fiken.api_token,
        company_slug=config.fiken.company_slug,
        base_url=config.fiken.base_url,
    )


def build_order_source(config: AppConfig) -> IOrderSource:
    """설정된 종류의 주문 소스 생성"""
    if config.source.kind == OrderSourceKind.BACKUP_FILES:
        return BackupDirectoryOrderSource(config.source.backup_dir)

    return ShopifyRestClient(
        base_url=config.shopify.base_url,
        access_token=config.shopify.access_token,
    )


@dataclass
class WorkerContext:
    """조립된 워커 컴포넌트 묶음

    DB 어댑터는 호출자가 소유 (close하지 않음).
    """

    config: AppConfig
    db: SQLiteAdapter
    ledger: ILedgerClient
    order_source: IOrderSource
    queue_store: QueueStore
    checkpoint_store: CheckpointStore
    mirror_store: MirrorStore
    processor: SettlementProcessor
    sync_poller: LedgerSyncPoller
    worker: SettlementWorker
    backfill: BackfillRunner

    async def close(self) -> None:
        """원격 클라이언트 정리"""
        await self.ledger.close()
        await self.order_source.close()


def build_context(
    config: AppConfig,
    db: SQLiteAdapter,
    ledger: ILedgerClient | None = None,
    order_source: IOrderSource | None = None,
) -> WorkerContext:
    """의존성 조립

    ledger/order_source를 넘기면 그대로 사용 (테스트에서 Mock 주입).
    """
    ledger = ledger or build_ledger_client(config)
    order_source = order_source or build_order_source(config)

    queue_store = QueueStore(db)
    checkpoint_store = CheckpointStore(db)
    mirror_store = MirrorStore(db)

    processor = SettlementProcessor(
        ledger=ledger,
        order_source=order_source,
        accounting=config.accounting,
        mirror_store=mirror_store,
        queue_store=queue_store,
    )
    sync_poller = LedgerSyncPoller(
        ledger=ledger,
        adapter=db,
        mirror_store=mirror_store,
        checkpoint_store=checkpoint_store,
        queue_store=queue_store,
        poll_interval_seconds=config.worker.sync_interval_sec,
    )
    worker = SettlementWorker(
        processor=processor,
        queue_store=queue_store,
        checkpoint_store=checkpoint_store,
        config=config.worker,
        sync_poller=sync_poller,
    )
    backfill = BackfillRunner(
        order_source=order_source,
        processor=processor,
        queue_store=queue_store,
        worker=worker,
    )

    return WorkerContext(
        config=config,
        db=db,
        ledger=ledger,
        order_source=order_source,
        queue_store=queue_store,
        checkpoint_store=checkpoint_store,
        mirror_store=mirror_store,
        processor=processor,
        sync_poller=sync_poller,
        worker=worker,
        backfill=backfill,
    )


def _install_signal_handlers(worker: SettlementWorker) -> None:
    """SIGINT/SIGTERM → 현재 주문 처리 후 정지"""
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, worker.request_stop)
        except (NotImplementedError, RuntimeError):
            # Windows 이벤트 루프는 add_signal_handler 미지원
            pass


async def main() -> None:
    """Worker 메인 함수 (상주 실행)"""
    setup_logging("worker")

    logger.info("=" * 60)
    logger.info("Settlement Worker 시작")
    logger.info("=" * 60)

    # 1. 설정 로드
    try:
        settings = get_settings()
        config = settings.config
    except Exception as e:
        logger.error(f"설정 로드 실패: {e}")
        sys.exit(1)

    logger.info(f"DB: {config.db_path}")
    logger.info(f"Partition: {config.worker.worker_index}/{config.worker.worker_count}")

    # 2. DB 연결 및 스키마 초기화
    async with SQLiteAdapter(config.db_path) as db:
        await init_schema(db)

        # 3. 컴포넌트 조립
        context = build_context(config, db)
        _install_signal_handlers(context.worker)

        logger.info("Worker 메인 루프 시작 (종료: Ctrl+C)")

        try:
            if not await context.ledger.test_connection():
                logger.warning("Fiken 연결 확인 실패, 계속 진행")

            await context.worker.run_forever()

        except asyncio.CancelledError:
            logger.info("메인 루프 취소됨")
        finally:
            await context.close()

    logger.info("=" * 60)
    logger.info("Settlement Worker 정상 종료")
    logger.info("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
