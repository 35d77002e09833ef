"""
Checkpoint Store

key/value 진행 마커.
- last_processed_at / last_processed_order: Worker가 주문 커밋마다 갱신
- sync:<resource>: 동기화 패스가 전체 페이지 저장 후 갱신
"""

import logging

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.utils.timezone import now_utc_iso

logger = logging.getLogger(__name__)

LAST_PROCESSED_AT = "last_processed_at"
LAST_PROCESSED_ORDER = "last_processed_order"
SYNC_PREFIX = "sync:"


def sync_key(resource: str) -> str:
    """리소스별 동기화 체크포인트 키"""
    return f"{SYNC_PREFIX}{resource}"


class CheckpointStore:
    """체크포인트 저장소

    Args:
        adapter: SQLite 어댑터
    """

    def __init__(self, adapter: SQLiteAdapter):
        self.adapter = adapter

    async def get(self, key: str) -> str | None:
        row = await self.adapter.fetchone(
            "SELECT value FROM checkpoint_store WHERE checkpoint_key = ?",
            (key,),
        )
        return row[0] if row else None

    async def set(self, key: str, value: str, commit: bool = True) -> None:
        """체크포인트 저장 (upsert)

        commit=False면 호출자의 트랜잭션에 포함 (동기화 패스용).
        """
        await self.adapter.execute(
            """
            INSERT INTO checkpoint_store (checkpoint_key, value, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT(checkpoint_key) DO UPDATE SET
                value = excluded.value,
                updated_at = excluded.updated_at
            """,
            (key, value, now_utc_iso()),
        )
        if commit:
            await self.adapter.commit()

    async def get_all(self) -> dict[str, str]:
        rows = await self.adapter.fetchall(
            "SELECT checkpoint_key, value FROM checkpoint_store ORDER BY checkpoint_key"
        )
        return {key: value for key, value in rows}

    async def mark_order_processed(self, order_key: str, commit: bool = True) -> None:
        """주문 1건 커밋 후 last_processed_* 갱신"""
        await self.set(LAST_PROCESSED_AT, now_utc_iso(), commit=False)
        await self.set(LAST_PROCESSED_ORDER, order_key, commit=False)
        if commit:
            await self.adapter.commit()
