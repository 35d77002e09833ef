"""
Idempotency 유틸리티

주문에서 결정적 비즈니스 키 생성 및 파싱.
규칙:
- Posting 비즈니스 키: #{order_number} (Fiken saleNumber)
- 거래처 키: 소문자 이메일, 없으면 order-{order_id}
- 영수증 파일명: shopify-order-{order_number}.{ext}
"""

from core.domain.orders import Order

# Posting 비즈니스 키 접두사
BUSINESS_KEY_PREFIX: str = "#"

# 영수증 파일명 접두사
RECEIPT_FILE_PREFIX: str = "shopify-order-"


def make_business_key(order: Order) -> str:
    """결정적 Posting 비즈니스 키 생성

    Args:
        order: 주문 스냅샷

    Returns:
        #{order_number} 형식 (order_number 없으면 order_id)

    Example:
        >>> make_business_key(order)  # order_number="3403"
        '#3403'
    """
    number = order.display_number
    if not number:
        raise ValueError("order_number와 order_id가 모두 비어 있습니다")

    return f"{BUSINESS_KEY_PREFIX}{number}"


def parse_business_key(business_key: str) -> str | None:
    """비즈니스 키에서 주문 번호 추출

    Example:
        >>> parse_business_key("#3403")
        '3403'
        >>> parse_business_key("3403")
        None
    """
    if not business_key or not business_key.startswith(BUSINESS_KEY_PREFIX):
        return None

    number = business_key[len(BUSINESS_KEY_PREFIX):]
    return number if number else None


def make_counterparty_key(order: Order) -> str:
    """거래처 비즈니스 키 생성

    이메일은 대소문자 무시. 이메일이 없으면 주문 ID 기반 합성 키.
    """
    email = (order.contact.email or "").strip().lower()
    if email:
        return email
    return f"order-{order.order_id}"


def receipt_stem(order: Order) -> str:
    """영수증 파일명 (확장자 제외)"""
    return f"{RECEIPT_FILE_PREFIX}{order.display_number}"
