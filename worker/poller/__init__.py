"""
Poller 모듈

원격 원장을 주기적으로 폴링하여 로컬 미러를 갱신.
"""

from worker.poller.base import BasePoller
from worker.poller.sync_poller import DriftInfo, LedgerSyncPoller, SyncReport

__all__ = [
    "BasePoller",
    "DriftInfo",
    "LedgerSyncPoller",
    "SyncReport",
]
