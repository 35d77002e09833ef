"""
Worker CLI

사용법:
    python -m worker run [--once] [--limit N] [--dry-run]
    python -m worker backfill [--dry-run] [--limit N]
    python -m worker sync
    python -m worker enqueue ORDER_ID [ORDER_ID ...]
    python -m worker requeue ORDER_ID [ORDER_ID ...]
    python -m worker requeue --failed [--kind KIND]
    python -m worker status
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from adapters.db.sqlite_adapter import SQLiteAdapter, init_schema
from core.config.loader import ConfigLoadError, get_settings
from core.logging import setup_logging
from core.types import ErrorKind
from worker.bootstrap import WorkerContext, build_context, main as run_forever_main

logger = logging.getLogger("worker")

MANUAL_SOURCE = "manual"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m worker",
        description="Shopify 주문 → Fiken 원장 정산 워커",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="secrets.yaml 경로 (기본: config/secrets.yaml)",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="워커 실행 (기본: 상주)")
    run.add_argument("--once", action="store_true", help="배치 1회만 실행")
    run.add_argument("--limit", type=int, default=None, help="처리할 최대 주문 수 (--once)")
    run.add_argument("--dry-run", action="store_true", help="원격 쓰기 없이 실행 (--once)")

    backfill = sub.add_parser("backfill", help="주문 소스의 결제 주문 일괄 정산")
    backfill.add_argument("--dry-run", action="store_true", help="원격 쓰기/큐 변경 없이 결과만 보고")
    backfill.add_argument("--limit", type=int, default=None, help="처리할 최대 주문 수")

    sub.add_parser("sync", help="원장 → 로컬 미러 동기화 1회")

    enqueue = sub.add_parser("enqueue", help="주문 ID를 큐에 추가")
    enqueue.add_argument("order_ids", nargs="+")

    requeue = sub.add_parser("requeue", help="DONE/FAILED 엔트리를 PENDING으로 재큐잉")
    requeue.add_argument("order_ids", nargs="*")
    requeue.add_argument("--failed", action="store_true", help="FAILED 엔트리 전체")
    requeue.add_argument(
        "--kind",
        choices=[kind.value for kind in ErrorKind],
        default=None,
        help="--failed와 함께: 해당 오류 분류만",
    )

    sub.add_parser("status", help="큐 현황과 체크포인트 출력")

    return parser


def _print(data: Any) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False, default=str))


async def run_command(args: argparse.Namespace, context: WorkerContext) -> int:
    """단발성 명령 실행 (종료 코드 반환)"""
    if args.command == "run":
        await context.queue_store.recover_in_progress(
            worker_index=context.config.worker.worker_index,
            worker_count=context.config.worker.worker_count,
        )
        report = await context.worker.run_batch(limit=args.limit, dry_run=args.dry_run)
        _print(report.to_dict(include_results=True))
        return 0 if report.failed == 0 else 1

    if args.command == "backfill":
        report = await context.backfill.run(limit=args.limit, dry_run=args.dry_run)
        _print(report.to_dict())
        return 0

    if args.command == "sync":
        report = await context.sync_poller.run_once()
        _print(report.to_dict())
        return 0 if report.ok else 1

    if args.command == "enqueue":
        results = {}
        for order_id in args.order_ids:
            results[order_id] = "enqueued" if await context.queue_store.enqueue(
                order_id, source=MANUAL_SOURCE
            ) else "already_queued"
        _print(results)
        return 0

    if args.command == "requeue":
        if args.failed:
            kinds = [ErrorKind(args.kind)] if args.kind else None
            count = await context.queue_store.requeue_failed(error_kinds=kinds)
            _print({"requeued": count})
            return 0

        if not args.order_ids:
            print("requeue: ORDER_ID 또는 --failed가 필요합니다", file=sys.stderr)
            return 2

        results = {}
        for order_id in args.order_ids:
            results[order_id] = "requeued" if await context.queue_store.requeue(order_id) else "not_requeued"
        _print(results)
        return 0 if all(value == "requeued" for value in results.values()) else 1

    if args.command == "status":
        metrics = await context.queue_store.get_metrics()
        _print({
            "queue": {
                "pending": metrics.pending,
                "in_progress": metrics.in_progress,
                "done": metrics.done,
                "failed": metrics.failed,
                "depth": metrics.depth,
                "oldest_pending_at": metrics.oldest_pending_at,
                "oldest_pending_age_sec": metrics.oldest_pending_age_sec,
            },
            "checkpoints": await context.checkpoint_store.get_all(),
            "mirror": await context.mirror_store.counts(),
        })
        return 0

    raise ValueError(f"알 수 없는 명령: {args.command}")


async def _run_once(args: argparse.Namespace) -> int:
    setup_logging("worker")

    try:
        config = get_settings(args.config).config
    except ConfigLoadError as e:
        logger.error(f"설정 로드 실패: {e}")
        return 1

    async with SQLiteAdapter(config.db_path) as db:
        await init_schema(db)
        context = build_context(config, db)
        try:
            return await run_command(args, context)
        finally:
            await context.close()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "run" and not args.once:
        # 싱글턴을 지정 경로로 먼저 로드 (bootstrap.main은 get_settings()만 호출)
        if args.config is not None:
            try:
                get_settings(args.config)
            except ConfigLoadError as e:
                print(f"설정 로드 실패: {e}", file=sys.stderr)
                return 1
        asyncio.run(run_forever_main())
        return 0

    return asyncio.run(_run_once(args))
