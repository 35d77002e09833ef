"""
BasePoller

모든 Poller의 베이스 클래스.
공통 폴링 로직과 마지막 폴링 시간 관리 제공.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any

from core.storage.checkpoint_store import CheckpointStore
from core.utils.timezone import parse_iso

logger = logging.getLogger(__name__)


class BasePoller(ABC):
    """Poller 베이스 클래스

    주기적으로 원격 API를 호출하여 로컬 상태를 갱신하는 공통 로직 제공.

    Args:
        checkpoint_store: 체크포인트 저장소 (마지막 폴링 시간 저장)
        poll_interval_seconds: 폴링 간격 (초)
    """

    def __init__(
        self,
        checkpoint_store: CheckpointStore,
        poll_interval_seconds: int,
    ):
        self.checkpoint_store = checkpoint_store
        self.poll_interval_seconds = poll_interval_seconds

        self._last_poll_time: datetime | None = None
        self._is_running: bool = False

    @property
    @abstractmethod
    def poller_name(self) -> str:
        """Poller 이름 (로깅 및 체크포인트 키용)"""
        ...

    @property
    def checkpoint_key(self) -> str:
        """마지막 폴링 시간 체크포인트 키"""
        return f"poller:{self.poller_name}:last_poll"

    @property
    def is_running(self) -> bool:
        return self._is_running

    async def initialize(self) -> None:
        """초기화: 마지막 폴링 시간 복구"""
        saved = await self.checkpoint_store.get(self.checkpoint_key)
        self._last_poll_time = parse_iso(saved) if saved else None

        if self._last_poll_time:
            logger.info(
                f"{self.poller_name} Poller 초기화: 마지막 폴링 시간 복구됨",
                extra={"last_poll_time": saved},
            )
        else:
            logger.info(f"{self.poller_name} Poller 초기화: 첫 실행")

    async def should_poll(self) -> bool:
        """폴링 필요 여부 확인

        마지막 폴링 이후 poll_interval_seconds가 경과했는지 확인.
        """
        if self._is_running:
            return False

        if self._last_poll_time is None:
            return True

        now = datetime.now(timezone.utc)
        elapsed = (now - self._last_poll_time).total_seconds()

        return elapsed >= self.poll_interval_seconds

    async def poll(self) -> dict[str, Any]:
        """폴링 실행

        예외는 로그 후 결과에 기록 (워커 루프를 멈추지 않음).

        Returns:
            {"records": int, "poll_time": datetime, "duration_ms": float, ...}
        """
        if self._is_running:
            logger.warning(f"{self.poller_name} Poller가 이미 실행 중입니다")
            return {"records": 0, "skipped": True}

        self._is_running = True
        start_time = datetime.now(timezone.utc)

        try:
            logger.debug(f"{self.poller_name} Poller 시작")

            records = await self._do_poll()

            self._last_poll_time = start_time
            await self._save_last_poll_time()

            duration_ms = (datetime.now(timezone.utc) - start_time).total_seconds() * 1000

            logger.info(
                f"{self.poller_name} Poller 완료",
                extra={"records": records, "duration_ms": duration_ms},
            )

            return {
                "records": records,
                "poll_time": start_time,
                "duration_ms": duration_ms,
            }

        except Exception as e:
            logger.error(
                f"{self.poller_name} Poller 실패",
                extra={"error": str(e)},
                exc_info=True,
            )
            return {"records": 0, "error": str(e)}

        finally:
            self._is_running = False

    async def _save_last_poll_time(self) -> None:
        """마지막 폴링 시간 저장"""
        if self._last_poll_time:
            await self.checkpoint_store.set(
                self.checkpoint_key,
                self._last_poll_time.isoformat(),
            )

    @abstractmethod
    async def _do_poll(self) -> int:
        """실제 폴링 로직 구현

        Returns:
            반영된 레코드 수
        """
        ...

    async def stop(self) -> None:
        """Poller 정지"""
        logger.info(f"{self.poller_name} Poller 정지")
        await self._save_last_poll_time()
