"""
FeeCalculator — комиссии протокола и субъекта

Порядок применения:
    protocol_fee = floor(base * protocol_rate / 1e9)
    subject_fee  = floor(base * subject_rate / 1e9)

Комиссии считаются независимо (не компаундируются) от одной базы и обе
округляются к нулю.

    BUY/ISSUE: total = base + protocol_fee + subject_fee   (к оплате)
    SELL:      total = base - protocol_fee - subject_fee   (к получению)

Если на продаже комиссии превысили base, total обрезается до 0 и котировка
помечается degenerate=True. Это не ошибка.

КРИТИЧЕСКИЕ ИНВАРИАНТЫ:
1. Никакого float: одинаковые входы → побитово одинаковый результат
2. Переполнение → Overflow
"""

import logging

from socialcoin.core.domain.global_state import FEE_RATE_DENOMINATOR
from socialcoin.core.domain.trade import PriceQuote, TradeDirection
from socialcoin.core.math.checked import checked_add, mul_div_floor, validate_u64

logger = logging.getLogger(__name__)

# =============================================================================
# КОМИССИИ
# =============================================================================


def fee_amount(base: int, rate: int) -> int:
    """
    Одна комиссия: floor(base * rate / 1e9).

    Examples:
        >>> fee_amount(400_000_000, 30_000_000)
        12000000
        >>> fee_amount(33, 1)
        0
    """
    return mul_div_floor(base, rate, FEE_RATE_DENOMINATOR)


def apply_fees(
    base: int,
    protocol_rate: int,
    subject_rate: int,
    direction: TradeDirection,
    supply: int = 0,
    units: int = 0,
) -> PriceQuote:
    """
    Применение комиссий к базовой цене.

    Args:
        base: Цена по кривой без комиссий (u64)
        protocol_rate: Ставка протокола (доли 1e9)
        subject_rate: Ставка субъекта (доли 1e9)
        direction: Направление сделки
        supply: Supply на момент котировки (только для отчётности)
        units: Количество shares (только для отчётности)

    Returns:
        PriceQuote

    Raises:
        InvalidAmount: Если какое-либо значение отрицательное
        Overflow: Если total (buy) выходит за пределы u64
    """
    validate_u64(base, "base")
    validate_u64(protocol_rate, "protocol_rate")
    validate_u64(subject_rate, "subject_rate")
    direction = TradeDirection(direction)

    protocol_fee = fee_amount(base, protocol_rate)
    subject_fee = fee_amount(base, subject_rate)
    fees = checked_add(protocol_fee, subject_fee)

    degenerate = False
    if direction.is_buy:
        total = checked_add(base, fees)
    elif fees > base:
        # Комиссии съели всю цену: трейдер не получает ничего
        total = 0
        degenerate = True
        logger.warning(
            "Degenerate sell quote: fees %d exceed base price %d (supply=%d, units=%d)",
            fees,
            base,
            supply,
            units,
        )
    else:
        total = base - fees

    return PriceQuote(
        direction=direction,
        supply=supply,
        units=units,
        base_price=base,
        protocol_fee=protocol_fee,
        subject_fee=subject_fee,
        total=total,
        degenerate=degenerate,
    )
