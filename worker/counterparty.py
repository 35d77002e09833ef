"""
거래처 확정

주문 연락처 → 원격 거래처 (조회 후 없으면 생성).
캐시는 배치마다 새로 만들어 명시적으로 전달 (전역 상태 없음).
"""

import logging

from adapters.fiken.rate_limiter import FikenApiError
from adapters.interfaces import ILedgerClient
from adapters.models import Counterparty, CounterpartyAddress, CounterpartyDraft
from core.constants import Defaults
from core.domain.orders import Order
from core.utils.idempotency import make_counterparty_key

logger = logging.getLogger(__name__)

DRY_RUN_PREFIX = "dry-run:"


class CounterpartyCache:
    """배치 범위 거래처 캐시 (counterparty key → Counterparty)"""

    def __init__(self) -> None:
        self._entries: dict[str, Counterparty] = {}
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Counterparty | None:
        found = self._entries.get(key)
        if found is None:
            self.misses += 1
        else:
            self.hits += 1
        return found

    def put(self, key: str, counterparty: Counterparty) -> None:
        self._entries[key] = counterparty

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries


def display_name(order: Order, fallback: str = Defaults.FALLBACK_CUSTOMER_NAME) -> str:
    """거래처 이름: 이름+성 → 회사 → 배송지 이름 → 기본 라벨"""
    contact = order.contact
    return contact.full_name or contact.company or contact.address_name or fallback


def build_draft(
    order: Order,
    fallback_name: str = Defaults.FALLBACK_CUSTOMER_NAME,
    default_country: str = Defaults.DEFAULT_COUNTRY,
) -> CounterpartyDraft:
    """주문 → 거래처 생성 요청"""
    address = None
    billing = order.billing_address
    if billing is not None:
        address = CounterpartyAddress(
            address1=billing.address1,
            postal_code=billing.postal_code,
            city=billing.city,
            country=billing.country_code or default_country,
        )

    return CounterpartyDraft(
        name=display_name(order, fallback_name),
        email=order.contact.email,
        address=address,
    )


class CounterpartyResolver:
    """거래처 확정기

    캐시 → 이메일 검색(대소문자 무시 정확 일치) → 생성 순서.
    검색 실패는 경고 후 '없음'으로 처리 (생성으로 진행).

    Args:
        ledger: 원장 클라이언트
        fallback_name: 이름 없는 주문의 거래처 이름
        default_country: 청구 주소 국가 기본값
    """

    def __init__(
        self,
        ledger: ILedgerClient,
        fallback_name: str = Defaults.FALLBACK_CUSTOMER_NAME,
        default_country: str = Defaults.DEFAULT_COUNTRY,
    ):
        self.ledger = ledger
        self.fallback_name = fallback_name
        self.default_country = default_country

    async def resolve(
        self,
        order: Order,
        cache: CounterpartyCache,
        dry_run: bool = False,
    ) -> Counterparty:
        """주문의 거래처 확정

        dry_run이면 생성하지 않고 placeholder 반환 (캐시에는 넣지 않음).
        """
        key = make_counterparty_key(order)

        cached = cache.get(key)
        if cached is not None:
            return cached

        found = await self._search(order)
        if found is not None:
            logger.info(
                "기존 거래처 발견",
                extra={"order_id": order.order_id, "contact_id": found.contact_id},
            )
            cache.put(key, found)
            return found

        draft = build_draft(order, self.fallback_name, self.default_country)

        if dry_run:
            logger.info(
                "dry-run: 거래처 생성 생략",
                extra={"order_id": order.order_id, "counterparty_name": draft.name},
            )
            return Counterparty(
                contact_id=f"{DRY_RUN_PREFIX}{key}",
                name=draft.name,
                email=draft.email,
            )

        created = await self.ledger.create_counterparty(draft)
        logger.info(
            "거래처 생성",
            extra={"order_id": order.order_id, "contact_id": created.contact_id},
        )
        cache.put(key, created)
        return created

    async def _search(self, order: Order) -> Counterparty | None:
        email = (order.contact.email or "").strip()
        if not email:
            return None

        try:
            candidates = await self.ledger.search_counterparty(email)
        except FikenApiError as e:
            logger.warning(
                "거래처 검색 실패, 신규 생성으로 진행",
                extra={"order_id": order.order_id, "status": e.status_code, "body": e.body},
            )
            return None

        wanted = email.lower()
        for candidate in candidates:
            if candidate.email_key == wanted:
                return candidate
        return None
