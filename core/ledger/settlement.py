"""
결제 분할 계획

gross를 은행 계정 결제와 결제 대행 수수료 계정으로 분할.
수수료 >= gross 이면 수수료를 버리고 gross 전액을 은행으로 (이상 징후 로그).
"""

import logging
from decimal import ROUND_HALF_EVEN, Decimal

from core.ledger.types import FeeConfig, SettlementPlan

logger = logging.getLogger(__name__)


def compute_fee(gross: int, fee: FeeConfig) -> int:
    """수수료 계산 (minor unit)

    fee = fixed + round_half_even(gross × percent)
    """
    amount = fee.fixed_minor
    if fee.percent > 0:
        amount += int(
            (Decimal(gross) * fee.percent).quantize(Decimal(1), rounding=ROUND_HALF_EVEN)
        )
    return amount


def plan_settlement(gross: int, fee: FeeConfig | None = None) -> SettlementPlan:
    """결제 분할 계획 생성

    Args:
        gross: 총액 (minor unit)
        fee: 수수료 설정 (None이면 수수료 없음)

    Returns:
        SettlementPlan (bank_amount + fee_amount == gross)
    """
    if gross < 0:
        raise ValueError(f"gross는 음수일 수 없습니다: {gross}")

    if fee is None or not fee.is_enabled:
        return SettlementPlan(gross=gross, bank_amount=gross, fee_amount=0)

    fee_amount = compute_fee(gross, fee)

    if fee_amount >= gross:
        logger.warning(
            "수수료가 총액 이상, 수수료 무시",
            extra={"gross": gross, "fee_amount": fee_amount},
        )
        return SettlementPlan(gross=gross, bank_amount=gross, fee_amount=0, fee_dropped=True)

    if fee_amount < 0:
        logger.warning("음수 수수료 무시", extra={"gross": gross, "fee_amount": fee_amount})
        return SettlementPlan(gross=gross, bank_amount=gross, fee_amount=0, fee_dropped=True)

    return SettlementPlan(gross=gross, bank_amount=gross - fee_amount, fee_amount=fee_amount)
