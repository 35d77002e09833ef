"""
백업 디렉토리 주문 소스

ordre_<id>.json 파일을 읽어 주문 제공 (과거 주문 백필용).
IOrderSource Protocol 준수.
"""

import json
import logging
from pathlib import Path

from adapters.shopify.models import OrderSourceError, parse_order
from core.constants import ShopifyDefaults
from core.domain.errors import OrderDataError
from core.domain.orders import Order

logger = logging.getLogger(__name__)


class BackupDirectoryOrderSource:
    """백업 JSON 디렉토리 주문 소스

    읽기 실패 파일은 경고 후 건너뜀 (목록 조회 시).

    Args:
        directory: 백업 디렉토리
    """

    def __init__(self, directory: Path | str):
        self.directory = Path(directory)

    def _files(self) -> list[Path]:
        if not self.directory.is_dir():
            raise OrderSourceError(
                f"Orders directory not found: {self.directory}",
                not_found=True,
            )
        return sorted(
            path
            for path in self.directory.iterdir()
            if path.is_file()
            and path.name.startswith(ShopifyDefaults.BACKUP_FILE_PREFIX)
            and path.suffix == ".json"
        )

    def _load(self, path: Path) -> Order:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise OrderSourceError(f"Failed to read order file {path.name}: {e}", not_found=True) from e
        return parse_order(data)

    async def get_order(self, order_id: str) -> Order:
        """주문 ID로 조회

        파일명 ordre_<id>.json 우선, 없으면 전체 파일에서 id 검색.
        """
        direct = self.directory / f"{ShopifyDefaults.BACKUP_FILE_PREFIX}{order_id}.json"
        if direct.is_file():
            return self._load(direct)

        for path in self._files():
            try:
                order = self._load(path)
            except (OrderSourceError, OrderDataError):
                continue
            if order.order_id == str(order_id):
                return order

        raise OrderSourceError(f"Order {order_id} not found in {self.directory}", not_found=True)

    async def list_paid_orders(self, limit: int | None = None) -> list[Order]:
        """결제 완료 주문 (파일명 순)"""
        orders: list[Order] = []
        total = 0

        for path in self._files():
            try:
                order = self._load(path)
            except (OrderSourceError, OrderDataError) as e:
                logger.warning("주문 파일 읽기 실패", extra={"file": path.name, "error": str(e)})
                continue

            total += 1
            if not order.is_paid:
                continue

            orders.append(order)
            if limit is not None and len(orders) >= limit:
                break

        logger.info(
            "백업 주문 로드",
            extra={"paid": len(orders), "scanned": total, "directory": str(self.directory)},
        )
        return orders

    async def close(self) -> None:
        return None
