"""
Mock 주문 소스

메모리 내 Shopify 주문 JSON 보관. IOrderSource Protocol 준수.
"""

from typing import Any

from adapters.shopify.models import OrderSourceError, parse_order
from core.domain.orders import Order


class MockOrderSource:
    """Mock 주문 소스

    주문 JSON을 그대로 보관하고 조회 시 parse_order로 변환
    (실제 어댑터와 같은 파싱 경로).

    Args:
        orders: 초기 주문 JSON 목록
    """

    def __init__(self, orders: list[dict[str, Any]] | None = None):
        self._orders: dict[str, dict[str, Any]] = {}
        self.fetch_count = 0
        for data in orders or []:
            self.add(data)

    def add(self, data: dict[str, Any]) -> None:
        self._orders[str(data["id"])] = data

    async def get_order(self, order_id: str) -> Order:
        self.fetch_count += 1
        data = self._orders.get(str(order_id))
        if data is None:
            raise OrderSourceError(f"Order {order_id} not found", status_code=404, not_found=True)
        return parse_order(data)

    async def list_paid_orders(self, limit: int | None = None) -> list[Order]:
        orders = [parse_order(data) for data in self._orders.values()]
        paid = [order for order in orders if order.is_paid]
        return paid[:limit] if limit is not None else paid

    async def close(self) -> None:
        return None
