"""
Webhook 페이로드에서 주문 ID 추출

알려진 페이로드 형태별 추출 전략을 순서대로 시도하고,
처음 매칭되는 전략의 결과를 사용.

지원 형태:
- direct_id: {"id": 820982911946154508, ...} (주문 본문)
- order_id: {"order_id": 820982911946154508}
- nested_order_id: {"order": {"id": 820982911946154508}}
- global_id: {"admin_graphql_api_id": "gid://shopify/Order/820982911946154508"}
"""

import re
from dataclasses import dataclass
from typing import Any, Callable

# gid://shopify/Order/<숫자> 형식만 허용 (다른 리소스 타입 제외)
GLOBAL_ORDER_ID_PATTERN = re.compile(r"^gid://shopify/Order/(\d+)$")


@dataclass(frozen=True)
class OrderReference:
    """추출된 주문 참조"""

    order_id: str
    strategy: str


@dataclass(frozen=True)
class ExtractionStrategy:
    """추출 전략 (이름 + 추출 함수)

    extract는 정규화된 주문 ID 문자열 또는 None을 반환.
    """

    name: str
    extract: Callable[[dict[str, Any]], str | None]


def _normalize_numeric(value: Any) -> str | None:
    """숫자 ID 정규화

    int 또는 숫자 문자열만 허용. bool은 제외.
    """
    if isinstance(value, bool) or value is None:
        return None

    if isinstance(value, int):
        return str(value) if value > 0 else None

    if isinstance(value, str):
        stripped = value.strip()
        if stripped.isdigit() and int(stripped) > 0:
            return str(int(stripped))

    return None


def _direct_id(payload: dict[str, Any]) -> str | None:
    return _normalize_numeric(payload.get("id"))


def _order_id_field(payload: dict[str, Any]) -> str | None:
    return _normalize_numeric(payload.get("order_id"))


def _nested_order_id(payload: dict[str, Any]) -> str | None:
    order = payload.get("order")
    if not isinstance(order, dict):
        return None
    return _normalize_numeric(order.get("id"))


def _global_id(payload: dict[str, Any]) -> str | None:
    value = payload.get("admin_graphql_api_id")
    if not isinstance(value, str):
        return None

    match = GLOBAL_ORDER_ID_PATTERN.match(value.strip())
    if match is None:
        return None
    return _normalize_numeric(match.group(1))


DEFAULT_STRATEGIES: tuple[ExtractionStrategy, ...] = (
    ExtractionStrategy("direct_id", _direct_id),
    ExtractionStrategy("order_id", _order_id_field),
    ExtractionStrategy("nested_order_id", _nested_order_id),
    ExtractionStrategy("global_id", _global_id),
)


def extract_order_reference(
    payload: Any,
    strategies: tuple[ExtractionStrategy, ...] = DEFAULT_STRATEGIES,
) -> OrderReference | None:
    """페이로드에서 주문 참조 추출

    Args:
        payload: JSON 디코딩된 webhook 본문
        strategies: 시도할 전략 목록 (순서대로)

    Returns:
        OrderReference 또는 None (추출 불가)

    Example:
        >>> extract_order_reference({"order": {"id": 42}})
        OrderReference(order_id='42', strategy='nested_order_id')
    """
    if not isinstance(payload, dict):
        return None

    for strategy in strategies:
        order_id = strategy.extract(payload)
        if order_id is not None:
            return OrderReference(order_id=order_id, strategy=strategy.name)

    return None
