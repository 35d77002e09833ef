"""
Fiken 원장 어댑터
"""

from adapters.fiken.rate_limiter import (
    FikenApiError,
    FikenProtocolError,
    FikenTransientError,
    FikenValidationError,
    RequestPacer,
)
from adapters.fiken.rest_client import FikenRestClient

__all__ = [
    "FikenRestClient",
    "RequestPacer",
    "FikenApiError",
    "FikenTransientError",
    "FikenValidationError",
    "FikenProtocolError",
]
