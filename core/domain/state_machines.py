"""
State Machines

주문 정산 단계와 큐 엔트리의 상태 전이 관리.
"""

import logging
from enum import Enum

logger = logging.getLogger(__name__)


class StateMachineError(Exception):
    """상태 전이 오류"""
    pass


class SettlementStep(str, Enum):
    """주문 1건 정산 단계

    전이 규칙:
    - LOADING → RESOLVING_COUNTERPARTY: 주문 조회 완료
    - RESOLVING_COUNTERPARTY → BUILDING_POSTING: 거래처 확정
    - BUILDING_POSTING → CHECKING_IDEMPOTENCY: Posting 요청 생성
    - CHECKING_IDEMPOTENCY → CREATING: 기존 Posting 없음
    - CHECKING_IDEMPOTENCY → SKIPPING_EXISTING: 기존 Posting 발견
    - CREATING → SETTLING_PAYMENT: 생성 완료
    - SKIPPING_EXISTING → SETTLING_PAYMENT: 기존 Posting 미결제 (결제 0)
    - SKIPPING_EXISTING → ATTACHING_RECEIPT: 영수증 미첨부
    - SKIPPING_EXISTING → DONE: 영수증 첨부됨 (멱등 no-op)
    - SETTLING_PAYMENT → ATTACHING_RECEIPT: 결제 등록 완료
    - SETTLING_PAYMENT → DONE: 영수증이 이미 첨부된 기존 Posting
    - ATTACHING_RECEIPT → DONE: 첨부 성공 또는 실패 (실패는 비치명적)
    - 모든 비종료 상태 → FAILED
    """
    LOADING = "LOADING"
    RESOLVING_COUNTERPARTY = "RESOLVING_COUNTERPARTY"
    BUILDING_POSTING = "BUILDING_POSTING"
    CHECKING_IDEMPOTENCY = "CHECKING_IDEMPOTENCY"
    CREATING = "CREATING"
    SKIPPING_EXISTING = "SKIPPING_EXISTING"
    SETTLING_PAYMENT = "SETTLING_PAYMENT"
    ATTACHING_RECEIPT = "ATTACHING_RECEIPT"
    DONE = "DONE"
    FAILED = "FAILED"


class StateMachine:
    """상태 머신 기본 클래스

    Args:
        initial_state: 초기 상태
        transitions: 허용된 전이 정의 {from_state: [to_states]}
        name: 머신 이름 (로깅용)
    """

    def __init__(
        self,
        initial_state: str | Enum,
        transitions: dict[str, list[str]],
        name: str = "StateMachine",
    ):
        self._state = initial_state.value if isinstance(initial_state, Enum) else initial_state
        self._transitions = transitions
        self._name = name
        self._history: list[tuple[str, str]] = []

    @property
    def state(self) -> str:
        """현재 상태"""
        return self._state

    def can_transition(self, to_state: str | Enum) -> bool:
        """전이 가능 여부 확인"""
        target = to_state.value if isinstance(to_state, Enum) else to_state
        allowed = self._transitions.get(self._state, [])
        return target in allowed

    def transition(self, to_state: str | Enum) -> str:
        """상태 전이

        Args:
            to_state: 목표 상태

        Returns:
            새 상태

        Raises:
            StateMachineError: 허용되지 않은 전이
        """
        target = to_state.value if isinstance(to_state, Enum) else to_state

        if not self.can_transition(target):
            allowed = self._transitions.get(self._state, [])
            raise StateMachineError(
                f"{self._name}: Cannot transition from {self._state} to {target}. "
                f"Allowed: {allowed}"
            )

        old_state = self._state
        self._state = target
        self._history.append((old_state, target))

        logger.debug(f"{self._name}: {old_state} → {target}")

        return target

    @property
    def history(self) -> list[tuple[str, str]]:
        """상태 전이 이력"""
        return self._history.copy()


def _with_failure(transitions: dict[str, list[str]]) -> dict[str, list[str]]:
    """모든 비종료 상태에 FAILED 전이 추가"""
    return {
        state: targets + [SettlementStep.FAILED.value]
        for state, targets in transitions.items()
    }


class SettlementStateMachine(StateMachine):
    """주문 정산 상태 머신

    FAILED는 흡수 상태이며 DONE 이전 모든 단계에서 도달 가능.
    """

    TRANSITIONS: dict[str, list[str]] = _with_failure({
        "LOADING": ["RESOLVING_COUNTERPARTY"],
        "RESOLVING_COUNTERPARTY": ["BUILDING_POSTING"],
        "BUILDING_POSTING": ["CHECKING_IDEMPOTENCY"],
        "CHECKING_IDEMPOTENCY": ["CREATING", "SKIPPING_EXISTING"],
        "CREATING": ["SETTLING_PAYMENT"],
        "SKIPPING_EXISTING": ["SETTLING_PAYMENT", "ATTACHING_RECEIPT", "DONE"],
        "SETTLING_PAYMENT": ["ATTACHING_RECEIPT", "DONE"],
        "ATTACHING_RECEIPT": ["DONE"],
    })

    def __init__(self, order_key: str = ""):
        super().__init__(
            initial_state=SettlementStep.LOADING,
            transitions=self.TRANSITIONS,
            name=f"SettlementStateMachine[{order_key}]" if order_key else "SettlementStateMachine",
        )

    @property
    def is_terminal(self) -> bool:
        """종료 상태 여부"""
        return self._state in (SettlementStep.DONE.value, SettlementStep.FAILED.value)

    def fail(self) -> str:
        """FAILED로 전이 (이미 종료 상태면 그대로)"""
        if self.is_terminal:
            return self._state
        return self.transition(SettlementStep.FAILED)


class QueueEntryStateMachine(StateMachine):
    """큐 엔트리 상태 머신"""

    TRANSITIONS: dict[str, list[str]] = {
        "PENDING": ["IN_PROGRESS"],
        "IN_PROGRESS": ["DONE", "FAILED", "PENDING"],
        "FAILED": ["PENDING"],
        "DONE": ["PENDING"],
    }

    def __init__(self, initial_state: str = "PENDING"):
        super().__init__(
            initial_state=initial_state,
            transitions=self.TRANSITIONS,
            name="QueueEntryStateMachine",
        )
