"""
Webhook 서명 검증

Shopify: X-Shopify-Hmac-Sha256 = base64(HMAC-SHA256(secret, raw_body))
"""

import base64
import hashlib
import hmac


def compute_webhook_signature(raw_body: bytes, secret: str) -> str:
    """raw body의 base64 HMAC-SHA256 서명 생성"""
    digest = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_webhook_signature(
    raw_body: bytes,
    signature_header: str | None,
    secret: str | None,
) -> bool:
    """서명 검증 (상수 시간 비교)

    secret이 비어 있거나 헤더가 없으면 항상 False.
    본문은 파싱 전 원본 바이트 그대로 사용해야 함.
    """
    if not secret or not signature_header:
        return False

    expected = compute_webhook_signature(raw_body, secret)
    provided = signature_header.strip().encode("ascii", "replace")
    return hmac.compare_digest(expected.encode("ascii"), provided)
