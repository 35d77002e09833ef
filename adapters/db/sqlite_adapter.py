"""
SQLite 어댑터

WAL 모드로 SQLite 연결 관리.
Worker와 Web이 동시에 접근 가능하도록 설정 (큐/체크포인트/미러 테이블 공유).

주의: SQLite alias로 time, count 사용 금지 (예약어)
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator

import aiosqlite

logger = logging.getLogger(__name__)


async def create_connection(
    db_path: Path | str,
    readonly: bool = False,
) -> aiosqlite.Connection:
    """SQLite 연결 생성 (WAL 모드)

    Args:
        db_path: DB 파일 경로
        readonly: 읽기 전용 여부

    Returns:
        aiosqlite 연결 객체
    """
    # pathlib.Path를 문자열로 변환
    db_path_str = str(db_path)

    # 디렉토리가 없으면 생성
    db_dir = Path(db_path).parent
    db_dir.mkdir(parents=True, exist_ok=True)

    # 연결 생성
    if readonly:
        # 읽기 전용 모드
        conn = await aiosqlite.connect(f"file:{db_path_str}?mode=ro", uri=True)
    else:
        conn = await aiosqlite.connect(db_path_str)

    # WAL 모드 설정
    await conn.execute("PRAGMA journal_mode=WAL")

    # 동시 접근 설정
    await conn.execute("PRAGMA busy_timeout=30000")  # 30초 대기

    logger.info(
        "SQLite 연결 생성",
        extra={"db_path": db_path_str, "readonly": readonly},
    )

    return conn


class SQLiteAdapter:
    """SQLite 어댑터

    WAL 모드로 SQLite 연결 관리.
    트랜잭션 컨텍스트 매니저 제공.

    Args:
        db_path: DB 파일 경로
        readonly: 읽기 전용 여부 (Web 조회용)

    사용 예시:
    ```python
    adapter = SQLiteAdapter(db_path)
    await adapter.connect()

    async with adapter.transaction() as conn:
        await conn.execute("INSERT INTO ...")

    await adapter.close()
    ```
    """

    def __init__(self, db_path: Path | str, readonly: bool = False):
        self.db_path = Path(db_path)
        self.readonly = readonly
        self._conn: aiosqlite.Connection | None = None

    @property
    def is_connected(self) -> bool:
        """연결 상태 확인"""
        return self._conn is not None

    async def connect(self) -> None:
        """연결 생성"""
        if self._conn is not None:
            return

        self._conn = await create_connection(self.db_path, self.readonly)

    async def close(self) -> None:
        """연결 종료"""
        if self._conn is not None:
            await self._conn.close()
            self._conn = None
            logger.info("SQLite 연결 종료")

    async def execute(
        self,
        sql: str,
        parameters: tuple[Any, ...] | None = None,
    ) -> aiosqlite.Cursor:
        """SQL 실행"""
        if self._conn is None:
            raise RuntimeError("Not connected to database")

        if parameters:
            return await self._conn.execute(sql, parameters)
        return await self._conn.execute(sql)

    async def executemany(
        self,
        sql: str,
        parameters: list[tuple[Any, ...]],
    ) -> aiosqlite.Cursor:
        """SQL 다중 실행"""
        if self._conn is None:
            raise RuntimeError("Not connected to database")

        return await self._conn.executemany(sql, parameters)

    async def fetchone(
        self,
        sql: str,
        parameters: tuple[Any, ...] | None = None,
    ) -> tuple[Any, ...] | None:
        """단일 행 조회"""
        cursor = await self.execute(sql, parameters)
        return await cursor.fetchone()

    async def fetchall(
        self,
        sql: str,
        parameters: tuple[Any, ...] | None = None,
    ) -> list[tuple[Any, ...]]:
        """전체 행 조회"""
        cursor = await self.execute(sql, parameters)
        return await cursor.fetchall()

    async def commit(self) -> None:
        """커밋"""
        if self._conn is not None:
            await self._conn.commit()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """트랜잭션 컨텍스트 매니저

        성공 시 자동 커밋, 예외 시 자동 롤백.

        사용 예시:
        ```python
        async with adapter.transaction() as conn:
            await conn.execute("INSERT INTO ...")
            # 성공 시 자동 커밋
        ```
        """
        if self._conn is None:
            raise RuntimeError("Not connected to database")

        try:
            yield self._conn
            await self._conn.commit()
        except Exception:
            await self._conn.rollback()
            raise

    async def table_exists(self, table_name: str) -> bool:
        """테이블 존재 여부 확인"""
        result = await self.fetchone(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?",
            (table_name,),
        )
        return result is not None

    # -------------------------------------------------------------------------
    # 컨텍스트 매니저
    # -------------------------------------------------------------------------

    async def __aenter__(self) -> "SQLiteAdapter":
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


async def init_schema(adapter: SQLiteAdapter) -> None:
    """스키마 초기화 (테이블 생성)

    Args:
        adapter: 연결된 SQLiteAdapter

    Worker/Web 시작 시 호출. 여러 번 호출해도 안전.
    """
    # order_queue (주문 작업 큐, 삭제하지 않음)
    await adapter.execute("""
        CREATE TABLE IF NOT EXISTS order_queue (
            seq              INTEGER PRIMARY KEY AUTOINCREMENT,
            order_key        TEXT NOT NULL UNIQUE,
            shard            INTEGER NOT NULL,
            status           TEXT NOT NULL DEFAULT 'PENDING',
            attempts         INTEGER NOT NULL DEFAULT 0,

            last_error       TEXT,
            error_kind       TEXT,
            last_step        TEXT,

            business_key     TEXT,
            posting_id       TEXT,
            receipt_attached INTEGER NOT NULL DEFAULT 0,
            source           TEXT NOT NULL DEFAULT 'webhook',

            created_at       TEXT NOT NULL DEFAULT (datetime('now')),
            updated_at       TEXT NOT NULL DEFAULT (datetime('now')),
            claimed_at       TEXT,
            completed_at     TEXT
        )
    """)

    # checkpoint_store (key/value 진행 마커)
    await adapter.execute("""
        CREATE TABLE IF NOT EXISTS checkpoint_store (
            checkpoint_key   TEXT PRIMARY KEY,
            value            TEXT NOT NULL,
            updated_at       TEXT NOT NULL DEFAULT (datetime('now'))
        )
    """)

    # mirror_contacts (Fiken 거래처 로컬 미러)
    await adapter.execute("""
        CREATE TABLE IF NOT EXISTS mirror_contacts (
            contact_id       TEXT PRIMARY KEY,
            name             TEXT NOT NULL,
            email            TEXT,
            customer_number  TEXT,
            raw_json         TEXT NOT NULL,
            synced_at        TEXT NOT NULL DEFAULT (datetime('now'))
        )
    """)

    # mirror_sales (Fiken 판매 로컬 미러)
    await adapter.execute("""
        CREATE TABLE IF NOT EXISTS mirror_sales (
            sale_id          TEXT PRIMARY KEY,
            sale_number      TEXT,
            sale_date        TEXT,
            net_amount       INTEGER NOT NULL DEFAULT 0,
            vat_amount       INTEGER NOT NULL DEFAULT 0,
            total_paid       INTEGER NOT NULL DEFAULT 0,
            settled          INTEGER NOT NULL DEFAULT 0,
            raw_json         TEXT NOT NULL,
            synced_at        TEXT NOT NULL DEFAULT (datetime('now'))
        )
    """)

    # mirror_accounts (계정과목 로컬 미러)
    await adapter.execute("""
        CREATE TABLE IF NOT EXISTS mirror_accounts (
            code             TEXT PRIMARY KEY,
            name             TEXT NOT NULL,
            raw_json         TEXT NOT NULL,
            synced_at        TEXT NOT NULL DEFAULT (datetime('now'))
        )
    """)

    # mirror_products (Fiken 상품 로컬 미러)
    await adapter.execute("""
        CREATE TABLE IF NOT EXISTS mirror_products (
            product_id       TEXT PRIMARY KEY,
            name             TEXT NOT NULL,
            product_number   TEXT,
            unit_price       INTEGER,
            vat_type         TEXT,
            active           INTEGER NOT NULL DEFAULT 1,
            raw_json         TEXT NOT NULL,
            synced_at        TEXT NOT NULL DEFAULT (datetime('now'))
        )
    """)

    # 인덱스 생성
    await adapter.execute("""
        CREATE INDEX IF NOT EXISTS ix_order_queue_status
        ON order_queue(status, seq)
    """)

    await adapter.execute("""
        CREATE INDEX IF NOT EXISTS ix_mirror_sales_number
        ON mirror_sales(sale_number)
    """)

    await adapter.execute("""
        CREATE INDEX IF NOT EXISTS ix_mirror_contacts_email
        ON mirror_contacts(email)
    """)

    await adapter.commit()

    logger.info("스키마 초기화 완료")
