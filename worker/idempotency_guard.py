"""
Idempotency Guard

Posting 생성 전 원격 원장에서 같은 비즈니스 키를 검색.
로컬 미러는 참고용이며 판단 근거로 쓰지 않음.
"""

import logging

from adapters.interfaces import ILedgerClient
from adapters.models import RemotePosting
from core.storage.mirror_store import MirrorStore

logger = logging.getLogger(__name__)


class IdempotencyGuard:
    """중복 Posting 방지

    검색 실패는 그대로 전파 (확인 못 하면 생성하지 않음).

    Args:
        ledger: 원장 클라이언트
        mirror_store: 발견 시 미러 갱신 (선택)
    """

    def __init__(self, ledger: ILedgerClient, mirror_store: MirrorStore | None = None):
        self.ledger = ledger
        self.mirror_store = mirror_store

    async def find_existing(
        self,
        business_key: str,
        refresh_mirror: bool = True,
    ) -> RemotePosting | None:
        """같은 비즈니스 키의 원격 Posting 조회

        원격 검색은 부분 일치일 수 있으므로 sale_number 정확 일치만 인정.
        refresh_mirror=False면 로컬 미러를 건드리지 않음 (dry-run).
        """
        candidates = await self.ledger.search_posting(business_key)
        matches = [posting for posting in candidates if posting.sale_number == business_key]

        if not matches:
            return None

        if len(matches) > 1:
            logger.warning(
                "같은 비즈니스 키의 Posting이 여러 건",
                extra={
                    "business_key": business_key,
                    "sale_ids": [posting.sale_id for posting in matches],
                },
            )

        existing = matches[0]
        if refresh_mirror and self.mirror_store is not None:
            await self.mirror_store.upsert_sales([existing])

        return existing
