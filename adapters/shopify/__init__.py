"""
Shopify 주문 소스 어댑터
"""

from adapters.shopify.file_source import BackupDirectoryOrderSource
from adapters.shopify.models import OrderSourceError, parse_order
from adapters.shopify.rest_client import ShopifyRestClient

__all__ = [
    "BackupDirectoryOrderSource",
    "OrderSourceError",
    "ShopifyRestClient",
    "parse_order",
]
