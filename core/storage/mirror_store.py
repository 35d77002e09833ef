"""
Mirror Store

Fiken 원격 상태의 로컬 미러 (거래처, 판매, 계정과목, 상품).
동기화 패스가 채우고 Web 조회/드리프트 점검이 읽음.
쓰기 경로의 중복 판단에는 사용하지 않음 (항상 원격 조회).
"""

import json
import logging
from typing import Any

from adapters.db.sqlite_adapter import SQLiteAdapter
from adapters.models import Counterparty, LedgerAccount, LedgerProduct, RemotePosting
from core.utils.timezone import now_utc_iso

logger = logging.getLogger(__name__)

# 리소스 -> (테이블, 기본 키)
MIRROR_TABLES: dict[str, tuple[str, str]] = {
    "contacts": ("mirror_contacts", "contact_id"),
    "sales": ("mirror_sales", "sale_id"),
    "accounts": ("mirror_accounts", "code"),
    "products": ("mirror_products", "product_id"),
}


class MirrorStore:
    """로컬 미러 저장소

    upsert_*/prune 메서드는 commit=False로 호출하면 호출자 트랜잭션에 포함.

    Args:
        adapter: SQLite 어댑터
    """

    def __init__(self, adapter: SQLiteAdapter):
        self.adapter = adapter

    # -------------------------------------------------------------------------
    # 쓰기
    # -------------------------------------------------------------------------

    async def upsert_contacts(self, contacts: list[Counterparty], commit: bool = True) -> int:
        now = now_utc_iso()
        await self.adapter.executemany(
            """
            INSERT INTO mirror_contacts (contact_id, name, email, customer_number, raw_json, synced_at)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(contact_id) DO UPDATE SET
                name = excluded.name,
                email = excluded.email,
                customer_number = excluded.customer_number,
                raw_json = excluded.raw_json,
                synced_at = excluded.synced_at
            """,
            [
                (
                    contact.contact_id,
                    contact.name,
                    contact.email_key,
                    contact.customer_number,
                    _dump(contact.raw),
                    now,
                )
                for contact in contacts
            ],
        )
        if commit:
            await self.adapter.commit()
        return len(contacts)

    async def upsert_sales(self, sales: list[RemotePosting], commit: bool = True) -> int:
        now = now_utc_iso()
        await self.adapter.executemany(
            """
            INSERT INTO mirror_sales (
                sale_id, sale_number, sale_date, net_amount, vat_amount,
                total_paid, settled, raw_json, synced_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(sale_id) DO UPDATE SET
                sale_number = excluded.sale_number,
                sale_date = excluded.sale_date,
                net_amount = excluded.net_amount,
                vat_amount = excluded.vat_amount,
                total_paid = excluded.total_paid,
                settled = excluded.settled,
                raw_json = excluded.raw_json,
                synced_at = excluded.synced_at
            """,
            [
                (
                    sale.sale_id,
                    sale.sale_number,
                    sale.date,
                    sale.net_amount,
                    sale.vat_amount,
                    sale.total_paid,
                    int(sale.settled),
                    _dump(sale.raw),
                    now,
                )
                for sale in sales
            ],
        )
        if commit:
            await self.adapter.commit()
        return len(sales)

    async def upsert_accounts(self, accounts: list[LedgerAccount], commit: bool = True) -> int:
        now = now_utc_iso()
        await self.adapter.executemany(
            """
            INSERT INTO mirror_accounts (code, name, raw_json, synced_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(code) DO UPDATE SET
                name = excluded.name,
                raw_json = excluded.raw_json,
                synced_at = excluded.synced_at
            """,
            [(account.code, account.name, _dump(account.raw), now) for account in accounts],
        )
        if commit:
            await self.adapter.commit()
        return len(accounts)

    async def upsert_products(self, products: list[LedgerProduct], commit: bool = True) -> int:
        now = now_utc_iso()
        await self.adapter.executemany(
            """
            INSERT INTO mirror_products (
                product_id, name, product_number, unit_price, vat_type,
                active, raw_json, synced_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(product_id) DO UPDATE SET
                name = excluded.name,
                product_number = excluded.product_number,
                unit_price = excluded.unit_price,
                vat_type = excluded.vat_type,
                active = excluded.active,
                raw_json = excluded.raw_json,
                synced_at = excluded.synced_at
            """,
            [
                (
                    product.product_id,
                    product.name,
                    product.product_number,
                    product.unit_price,
                    product.vat_type,
                    int(product.active),
                    _dump(product.raw),
                    now,
                )
                for product in products
            ],
        )
        if commit:
            await self.adapter.commit()
        return len(products)

    async def prune(self, resource: str, keep_ids: set[str], commit: bool = True) -> int:
        """전체 동기화 결과에 없는 행 삭제 (원격에서 삭제된 레코드)

        Args:
            resource: MIRROR_TABLES 키
            keep_ids: 원격에 존재하는 ID 전체

        Returns:
            삭제된 행 수
        """
        table, key = MIRROR_TABLES[resource]
        rows = await self.adapter.fetchall(f"SELECT {key} FROM {table}")
        stale = sorted({str(row[0]) for row in rows} - keep_ids)

        if stale:
            await self.adapter.executemany(
                f"DELETE FROM {table} WHERE {key} = ?",
                [(item,) for item in stale],
            )
            logger.info(
                "원격에 없는 미러 행 삭제",
                extra={"resource": resource, "removed": len(stale)},
            )
        if commit:
            await self.adapter.commit()
        return len(stale)

    # -------------------------------------------------------------------------
    # 조회
    # -------------------------------------------------------------------------

    async def find_sale_by_number(self, sale_number: str) -> dict[str, Any] | None:
        row = await self.adapter.fetchone(
            """
            SELECT sale_id, sale_number, sale_date, net_amount, vat_amount,
                   total_paid, settled, synced_at
            FROM mirror_sales
            WHERE sale_number = ?
            """,
            (sale_number,),
        )
        return _sale_row(row) if row else None

    async def list_sales(self, limit: int = 100, offset: int = 0) -> list[dict[str, Any]]:
        rows = await self.adapter.fetchall(
            """
            SELECT sale_id, sale_number, sale_date, net_amount, vat_amount,
                   total_paid, settled, synced_at
            FROM mirror_sales
            ORDER BY sale_date DESC, sale_id DESC
            LIMIT ? OFFSET ?
            """,
            (limit, offset),
        )
        return [_sale_row(row) for row in rows]

    async def sale_numbers(self) -> set[str]:
        """미러에 있는 모든 판매 번호"""
        rows = await self.adapter.fetchall(
            "SELECT sale_number FROM mirror_sales WHERE sale_number IS NOT NULL"
        )
        return {row[0] for row in rows}

    async def search_contacts(self, query: str | None = None, limit: int = 100) -> list[dict[str, Any]]:
        """거래처 검색 (이름/이메일 부분 일치, 대소문자 무시)"""
        if query:
            pattern = f"%{query.strip().lower()}%"
            rows = await self.adapter.fetchall(
                """
                SELECT contact_id, name, email, customer_number, synced_at
                FROM mirror_contacts
                WHERE lower(name) LIKE ? OR lower(COALESCE(email, '')) LIKE ?
                ORDER BY name
                LIMIT ?
                """,
                (pattern, pattern, limit),
            )
        else:
            rows = await self.adapter.fetchall(
                """
                SELECT contact_id, name, email, customer_number, synced_at
                FROM mirror_contacts
                ORDER BY name
                LIMIT ?
                """,
                (limit,),
            )
        return [
            {
                "contact_id": row[0],
                "name": row[1],
                "email": row[2],
                "customer_number": row[3],
                "synced_at": row[4],
            }
            for row in rows
        ]

    async def list_accounts(self) -> list[dict[str, Any]]:
        rows = await self.adapter.fetchall(
            "SELECT code, name, synced_at FROM mirror_accounts ORDER BY code"
        )
        return [{"code": row[0], "name": row[1], "synced_at": row[2]} for row in rows]

    async def search_products(self, query: str | None = None, limit: int = 100) -> list[dict[str, Any]]:
        """상품 검색 (이름/상품 번호 부분 일치, 대소문자 무시)"""
        where = ""
        params: tuple[Any, ...] = (limit,)
        if query:
            pattern = f"%{query.strip().lower()}%"
            where = "WHERE lower(name) LIKE ? OR lower(COALESCE(product_number, '')) LIKE ?"
            params = (pattern, pattern, limit)

        rows = await self.adapter.fetchall(
            f"""
            SELECT product_id, name, product_number, unit_price, vat_type, active, synced_at
            FROM mirror_products
            {where}
            ORDER BY name
            LIMIT ?
            """,
            params,
        )
        return [
            {
                "product_id": row[0],
                "name": row[1],
                "product_number": row[2],
                "unit_price": row[3],
                "vat_type": row[4],
                "active": bool(row[5]),
                "synced_at": row[6],
            }
            for row in rows
        ]

    async def counts(self) -> dict[str, int]:
        """테이블별 행 수"""
        result = {}
        for resource, (table, _) in MIRROR_TABLES.items():
            row = await self.adapter.fetchone(f"SELECT COUNT(*) FROM {table}")
            result[resource] = row[0] if row else 0
        return result


def _dump(raw: dict[str, Any]) -> str:
    return json.dumps(raw, ensure_ascii=False, default=str)


def _sale_row(row: tuple[Any, ...]) -> dict[str, Any]:
    return {
        "sale_id": row[0],
        "sale_number": row[1],
        "date": row[2],
        "net_amount": row[3],
        "vat_amount": row[4],
        "total_paid": row[5],
        "settled": bool(row[6]),
        "synced_at": row[7],
    }
