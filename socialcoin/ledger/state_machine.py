"""SubjectLedger — state machine token line субъекта.

Переходы над immutable снапшотами SubjectState:
- UNINITIALIZED → ACTIVE при первом ISSUE (только сам субъект)
- ACTIVE остаётся ACTIVE (деактивации нет)
- BUY против UNINITIALIZED → NotActive
- SELL сверх holding → InsufficientShares

apply() — чистая функция: старый снапшот не меняется, новый снапшот
возвращается целиком. Поэтому вызывающий никогда не видит леджер, где
supply и holding обновлены несогласованно. Атомарность записи обеспечивает
LedgerStore (compare-and-set).
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from socialcoin.core.domain.global_state import GlobalConfig
from socialcoin.core.domain.identity import normalize_identity
from socialcoin.core.domain.subject import SubjectState, SubjectStatus
from socialcoin.core.domain.trade import PriceQuote, TradeDirection, TradeEvent
from socialcoin.core.errors import (
    InsufficientFunds,
    InsufficientShares,
    LedgerInvariantViolation,
    NotActive,
    PermissionDenied,
)
from socialcoin.core.math.checked import checked_add, validate_positive_u64, validate_u64
from socialcoin.core.math.fees import apply_fees
from socialcoin.core.math.price_curve import PriceCurve

logger = logging.getLogger(__name__)


class PayoutReason(str, Enum):
    """За что выплачивается сумма из сделки."""

    PROTOCOL_FEE = "protocol_fee"
    SUBJECT_FEE = "subject_fee"
    SELL_PROCEEDS = "sell_proceeds"
    REFUND = "refund"


@dataclass(frozen=True)
class Payout:
    """Выплата получателю, которую funding source оформляет новым unit."""

    recipient: str
    amount: int
    reason: PayoutReason


@dataclass(frozen=True)
class LedgerTransition:
    """Результат перехода состояния субъекта."""

    new_state: SubjectState
    previous_state: SubjectState
    quote: PriceQuote
    event: TradeEvent
    payouts: tuple[Payout, ...] = field(default_factory=tuple)

    # Диагностика
    activated: bool = False
    transition_reason: str = ""

    @property
    def refund(self) -> int:
        return sum(p.amount for p in self.payouts if p.reason == PayoutReason.REFUND)


class SubjectLedger:
    """State machine supply/holders субъекта.

    Не хранит состояния: снапшот субъекта и GlobalConfig передаются в каждый
    вызов, котировка считается заново при каждом apply по текущему supply
    и текущим ставкам.
    """

    def quote(
        self,
        state: SubjectState,
        config: GlobalConfig,
        direction: TradeDirection,
        units: int,
    ) -> PriceQuote:
        """Котировка сделки по текущему supply субъекта.

        BUY/ISSUE: price_of_range(supply, units) + комиссии
        SELL:      price_of_range(supply - units, units) - комиссии

        Raises:
            InvalidAmount: units <= 0
            InsufficientShares: sell больше, чем supply
            Overflow: переполнение u64
        """
        validate_positive_u64(units, "units")
        direction = TradeDirection(direction)
        curve = PriceCurve(config.curve)

        if direction.is_buy:
            base = curve.price_of_range(state.supply, units)
        else:
            if units > state.supply:
                raise InsufficientShares(None, state.subject, state.supply, units)
            base = curve.price_of_range(state.supply - units, units)

        return apply_fees(
            base,
            config.protocol_fee_rate,
            config.subject_fee_rate,
            direction,
            supply=state.supply,
            units=units,
        )

    def apply(
        self,
        state: SubjectState,
        config: GlobalConfig,
        trader: str,
        direction: TradeDirection,
        units: int,
        payment: int = 0,
    ) -> LedgerTransition:
        """Применение сделки к снапшоту субъекта.

        Args:
            state: текущий снапшот субъекта
            config: глобальная конфигурация (ставки, кривая)
            trader: кто торгует
            direction: BUY/SELL/ISSUE
            units: количество shares
            payment: value переданного funding piece (BUY/ISSUE)

        Returns:
            LedgerTransition с новым снапшотом, котировкой, событием и выплатами
        """
        trader = normalize_identity(trader)
        direction = TradeDirection(direction)
        validate_positive_u64(units, "units")
        validate_u64(payment, "payment")

        if direction == TradeDirection.SELL:
            transition = self._apply_sell(state, config, trader, units)
        else:
            transition = self._apply_buy(state, config, trader, direction, units, payment)

        self.check_invariants(transition.new_state)
        logger.info(
            "%s %s: trader=%s units=%d total=%d supply %d -> %d",
            direction.value,
            state.subject,
            trader,
            units,
            transition.quote.total,
            state.supply,
            transition.new_state.supply,
        )
        return transition

    def _apply_buy(
        self,
        state: SubjectState,
        config: GlobalConfig,
        trader: str,
        direction: TradeDirection,
        units: int,
        payment: int,
    ) -> LedgerTransition:
        # 1. Права и статус
        if direction == TradeDirection.ISSUE and trader != state.subject:
            raise PermissionDenied(
                f"Only subject {state.subject} can issue its own shares, not {trader}"
            )
        if direction == TradeDirection.BUY and not state.is_active:
            raise NotActive(state.subject)

        # 2. Котировка и оплата
        quote = self.quote(state, config, direction, units)
        if payment < quote.total:
            raise InsufficientFunds(available=payment, required=quote.total, owner=trader)

        # 3. Новый снапшот
        holding = dict(state.holding)
        holding[trader] = checked_add(holding.get(trader, 0), units)
        new_state = SubjectState(
            subject=state.subject,
            status=SubjectStatus.ACTIVE,
            supply=checked_add(state.supply, units),
            holding=holding,
            backing_value=checked_add(state.backing_value, quote.base_price),
        )

        payouts = [
            Payout(config.protocol_fee_destination, quote.protocol_fee, PayoutReason.PROTOCOL_FEE),
            Payout(state.subject, quote.subject_fee, PayoutReason.SUBJECT_FEE),
            Payout(trader, payment - quote.total, PayoutReason.REFUND),
        ]
        activated = not state.is_active

        return LedgerTransition(
            new_state=new_state,
            previous_state=state,
            quote=quote,
            event=TradeEvent(
                trader=trader,
                subject=state.subject,
                is_buy=True,
                share_amount=units,
                base_amount=quote.base_price,
                protocol_fee_amount=quote.protocol_fee,
                subject_fee_amount=quote.subject_fee,
                total_amount=quote.total,
                supply=new_state.supply,
            ),
            payouts=tuple(p for p in payouts if p.amount > 0),
            activated=activated,
            transition_reason="issue_activated" if activated else direction.value,
        )

    def _apply_sell(
        self,
        state: SubjectState,
        config: GlobalConfig,
        trader: str,
        units: int,
    ) -> LedgerTransition:
        # 1. Holding
        held = state.holding.get(trader, 0)
        if held < units:
            raise InsufficientShares(trader, state.subject, held, units)

        # 2. Котировка
        quote = self.quote(state, config, TradeDirection.SELL, units)
        if state.backing_value < quote.base_price:
            raise LedgerInvariantViolation(
                f"Subject {state.subject} backing {state.backing_value} "
                f"below sell base price {quote.base_price}"
            )

        # 3. Комиссии из освобождённой base: в degenerate случае протокол первым
        fee_budget = quote.base_price - quote.total
        protocol_paid = min(quote.protocol_fee, fee_budget)
        subject_paid = min(quote.subject_fee, fee_budget - protocol_paid)

        # 4. Новый снапшот
        holding = dict(state.holding)
        if held == units:
            del holding[trader]
        else:
            holding[trader] = held - units
        new_state = SubjectState(
            subject=state.subject,
            status=state.status,
            supply=state.supply - units,
            holding=holding,
            backing_value=state.backing_value - quote.base_price,
        )

        payouts = [
            Payout(trader, quote.total, PayoutReason.SELL_PROCEEDS),
            Payout(config.protocol_fee_destination, protocol_paid, PayoutReason.PROTOCOL_FEE),
            Payout(state.subject, subject_paid, PayoutReason.SUBJECT_FEE),
        ]

        return LedgerTransition(
            new_state=new_state,
            previous_state=state,
            quote=quote,
            event=TradeEvent(
                trader=trader,
                subject=state.subject,
                is_buy=False,
                share_amount=units,
                base_amount=quote.base_price,
                protocol_fee_amount=protocol_paid,
                subject_fee_amount=subject_paid,
                total_amount=quote.total,
                supply=new_state.supply,
            ),
            payouts=tuple(p for p in payouts if p.amount > 0),
            transition_reason="sell",
        )

    def check_invariants(self, state: SubjectState) -> None:
        """Проверка инвариантов снапшота.

        - sum(holding) == supply
        - нулевые балансы не хранятся (holders == ключи holding)
        - UNINITIALIZED: supply == 0, holding пуст, backing == 0

        Raises:
            LedgerInvariantViolation
        """
        total = sum(state.holding.values())
        if total != state.supply:
            raise LedgerInvariantViolation(
                f"Subject {state.subject}: sum(holding)={total} != supply={state.supply}"
            )
        empty = [k for k, v in state.holding.items() if v <= 0]
        if empty:
            raise LedgerInvariantViolation(
                f"Subject {state.subject}: non-positive holdings stored for {empty}"
            )
        if state.status == SubjectStatus.UNINITIALIZED and (
            state.supply or state.holding or state.backing_value
        ):
            raise LedgerInvariantViolation(
                f"Subject {state.subject} is UNINITIALIZED but has supply/holding/backing"
            )

    def update_fee_rates(
        self,
        config: GlobalConfig,
        caller: str,
        protocol_fee_rate: Optional[int] = None,
        subject_fee_rate: Optional[int] = None,
    ) -> GlobalConfig:
        """Смена ставок комиссий (только admin).

        Новые ставки действуют со следующей котировки.

        Raises:
            PermissionDenied: caller не admin
            ValidationError: ставка вне [0, 1e9]
        """
        if normalize_identity(caller) != config.admin:
            raise PermissionDenied(f"{caller} is not the admin")

        data = config.model_dump()
        if protocol_fee_rate is not None:
            data["protocol_fee_rate"] = protocol_fee_rate
        if subject_fee_rate is not None:
            data["subject_fee_rate"] = subject_fee_rate
        updated = GlobalConfig.model_validate(data)

        logger.info(
            "Fee rates updated: protocol %d -> %d, subject %d -> %d",
            config.protocol_fee_rate,
            updated.protocol_fee_rate,
            config.subject_fee_rate,
            updated.subject_fee_rate,
        )
        return updated
