"""
스토리지 모듈

작업 큐, 체크포인트, 원격 원장 로컬 미러 저장소 제공
"""

from core.storage.checkpoint_store import CheckpointStore
from core.storage.mirror_store import MirrorStore
from core.storage.queue_store import QueueEntry, QueueMetrics, QueueStore

__all__ = [
    "CheckpointStore",
    "MirrorStore",
    "QueueEntry",
    "QueueMetrics",
    "QueueStore",
]
