"""
Тесты для SubjectLedger (state machine субъекта)

Проверяет:
1. UNINITIALIZED → ACTIVE только через issue самим субъектом
2. BUY против неактивного субъекта → NotActive
3. SELL сверх holding → InsufficientShares
4. Инварианты: sum(holding) == supply, holders == ключи с holding > 0
5. backing_value == reserve_at(supply) для неизменной кривой
6. Выплаты: комиссии, refund, выручка sell (в т.ч. degenerate)
7. update_fee_rates только для admin
"""

import logging

import pytest
from pydantic import ValidationError

from socialcoin.core.domain import (
    GlobalConfig,
    SubjectState,
    SubjectStatus,
    TradeDirection,
    normalize_identity,
)
from socialcoin.core.errors import (
    InsufficientFunds,
    InsufficientShares,
    InvalidAmount,
    LedgerInvariantViolation,
    NotActive,
    PermissionDenied,
)
from socialcoin.core.math import PriceCurve
from socialcoin.ledger import PayoutReason, SubjectLedger

ADMIN = normalize_identity("0xad")
TREASURY = normalize_identity("0xfee")
ALICE = normalize_identity("0xa11ce")
BOB = normalize_identity("0xb0b")


@pytest.fixture
def ledger() -> SubjectLedger:
    return SubjectLedger()


@pytest.fixture
def config() -> GlobalConfig:
    """Ставки по умолчанию: 3% протоколу, 2% субъекту"""
    return GlobalConfig(admin=ADMIN, protocol_fee_destination=TREASURY)


@pytest.fixture
def active_state(ledger, config) -> SubjectState:
    """ALICE выпустила первый (бесплатный) share"""
    transition = ledger.apply(
        SubjectState.uninitialized(ALICE), config, ALICE, TradeDirection.ISSUE, 1
    )
    return transition.new_state


def payouts_by_reason(transition):
    return {p.reason: (p.recipient, p.amount) for p in transition.payouts}


# =============================================================================
# ISSUE / ACTIVATION
# =============================================================================


class TestActivation:
    """Тесты для перехода UNINITIALIZED → ACTIVE"""

    def test_first_share_activates(self, ledger, config):
        state = SubjectState.uninitialized(ALICE)
        transition = ledger.apply(state, config, ALICE, TradeDirection.ISSUE, 1)

        new_state = transition.new_state
        assert new_state.status == SubjectStatus.ACTIVE
        assert new_state.supply == 1
        assert new_state.holding == {ALICE: 1}
        assert new_state.holders == [ALICE]
        assert new_state.backing_value == 0
        assert transition.activated
        assert transition.transition_reason == "issue_activated"
        assert transition.quote.total == 0
        assert transition.payouts == ()

    def test_previous_state_untouched(self, ledger, config):
        state = SubjectState.uninitialized(ALICE)
        transition = ledger.apply(state, config, ALICE, TradeDirection.ISSUE, 1)
        assert transition.previous_state is state
        assert state.supply == 0
        assert state.status == SubjectStatus.UNINITIALIZED

    def test_issue_by_other_denied(self, ledger, config):
        with pytest.raises(PermissionDenied):
            ledger.apply(SubjectState.uninitialized(ALICE), config, BOB, TradeDirection.ISSUE, 1)

    def test_buy_before_activation(self, ledger, config):
        with pytest.raises(NotActive):
            ledger.apply(
                SubjectState.uninitialized(ALICE), config, BOB, TradeDirection.BUY, 1,
                payment=10**12,
            )

    def test_issue_on_active_subject(self, ledger, config, active_state):
        """Субъект может докупать свои shares через issue"""
        payment = 105_000_000  # share при supply=1: 1e8 + 5%
        transition = ledger.apply(
            active_state, config, ALICE, TradeDirection.ISSUE, 1, payment=payment
        )
        assert transition.new_state.holding == {ALICE: 2}
        assert not transition.activated
        assert transition.transition_reason == "issue"

    def test_zero_units_rejected(self, ledger, config):
        with pytest.raises(InvalidAmount):
            ledger.apply(SubjectState.uninitialized(ALICE), config, ALICE, TradeDirection.ISSUE, 0)


# =============================================================================
# BUY
# =============================================================================


class TestBuy:
    """Тесты для покупки"""

    def test_buy_updates_state(self, ledger, config, active_state):
        transition = ledger.apply(
            active_state, config, BOB, TradeDirection.BUY, 1, payment=105_000_000
        )
        new_state = transition.new_state
        assert new_state.supply == 2
        assert new_state.holding == {ALICE: 1, BOB: 1}
        assert new_state.holders == sorted([ALICE, BOB])
        assert new_state.backing_value == 100_000_000

        event = transition.event
        assert event.is_buy
        assert event.trader == BOB
        assert event.subject == ALICE
        assert event.share_amount == 1
        assert event.base_amount == 100_000_000
        assert event.protocol_fee_amount == 3_000_000
        assert event.subject_fee_amount == 2_000_000
        assert event.total_amount == 105_000_000
        assert event.supply == 2

    def test_fee_payouts(self, ledger, config, active_state):
        transition = ledger.apply(
            active_state, config, BOB, TradeDirection.BUY, 1, payment=105_000_000
        )
        payouts = payouts_by_reason(transition)
        assert payouts[PayoutReason.PROTOCOL_FEE] == (TREASURY, 3_000_000)
        assert payouts[PayoutReason.SUBJECT_FEE] == (ALICE, 2_000_000)
        assert PayoutReason.REFUND not in payouts
        assert transition.refund == 0

    def test_overpayment_refunded(self, ledger, config, active_state):
        transition = ledger.apply(
            active_state, config, BOB, TradeDirection.BUY, 1, payment=200_000_000
        )
        assert transition.refund == 95_000_000
        assert payouts_by_reason(transition)[PayoutReason.REFUND] == (BOB, 95_000_000)

    def test_underpayment(self, ledger, config, active_state):
        with pytest.raises(InsufficientFunds) as exc_info:
            ledger.apply(active_state, config, BOB, TradeDirection.BUY, 1, payment=104_999_999)
        assert exc_info.value.required == 105_000_000
        assert active_state.supply == 1

    def test_logs_applied_trade(self, ledger, config, active_state, caplog):
        with caplog.at_level(logging.INFO, logger="socialcoin.ledger.state_machine"):
            ledger.apply(active_state, config, BOB, TradeDirection.BUY, 1, payment=105_000_000)
        assert "buy" in caplog.text


# =============================================================================
# SELL
# =============================================================================


class TestSell:
    """Тесты для продажи"""

    @pytest.fixture
    def two_holders(self, ledger, config, active_state) -> SubjectState:
        return ledger.apply(
            active_state, config, BOB, TradeDirection.BUY, 2, payment=10**12
        ).new_state

    def test_sell_releases_backing(self, ledger, config, two_holders):
        """BOB продаёт 1 из 2: base = share при supply=2 = 4e8"""
        transition = ledger.apply(two_holders, config, BOB, TradeDirection.SELL, 1)
        assert transition.quote.base_price == 400_000_000
        assert transition.quote.total == 380_000_000
        assert transition.new_state.supply == 2
        assert transition.new_state.holding_of(BOB) == 1
        assert transition.new_state.backing_value == 100_000_000
        assert not transition.event.is_buy

        payouts = payouts_by_reason(transition)
        assert payouts[PayoutReason.SELL_PROCEEDS] == (BOB, 380_000_000)
        assert payouts[PayoutReason.PROTOCOL_FEE] == (TREASURY, 12_000_000)
        assert payouts[PayoutReason.SUBJECT_FEE] == (ALICE, 8_000_000)

    def test_holder_removed_at_zero(self, ledger, config, two_holders):
        transition = ledger.apply(two_holders, config, BOB, TradeDirection.SELL, 2)
        assert BOB not in transition.new_state.holding
        assert transition.new_state.holders == [ALICE]
        assert transition.new_state.backing_value == 0

    def test_sell_more_than_held(self, ledger, config, two_holders):
        with pytest.raises(InsufficientShares) as exc_info:
            ledger.apply(two_holders, config, BOB, TradeDirection.SELL, 3)
        assert exc_info.value.held == 2
        assert exc_info.value.requested == 3

    def test_sell_without_holding(self, ledger, config, active_state):
        with pytest.raises(InsufficientShares):
            ledger.apply(active_state, config, BOB, TradeDirection.SELL, 1)

    def test_last_share_can_be_sold(self, ledger, config, active_state):
        """Продажа последнего share: supply → 0, статус остаётся ACTIVE"""
        transition = ledger.apply(active_state, config, ALICE, TradeDirection.SELL, 1)
        assert transition.new_state.supply == 0
        assert transition.new_state.holding == {}
        assert transition.new_state.status == SubjectStatus.ACTIVE
        assert transition.quote.total == 0
        assert transition.payouts == ()

    def test_degenerate_sell_fees_capped(self, ledger, active_state):
        """Комиссии 110% от base: трейдер получает 0, протокол берёт первым"""
        config = GlobalConfig(
            admin=ADMIN,
            protocol_fee_destination=TREASURY,
            protocol_fee_rate=600_000_000,
            subject_fee_rate=500_000_000,
        )
        state = ledger.apply(
            active_state, config, BOB, TradeDirection.BUY, 1, payment=10**12
        ).new_state
        transition = ledger.apply(state, config, BOB, TradeDirection.SELL, 1)

        assert transition.quote.degenerate
        assert transition.quote.total == 0
        payouts = payouts_by_reason(transition)
        assert PayoutReason.SELL_PROCEEDS not in payouts
        assert payouts[PayoutReason.PROTOCOL_FEE] == (TREASURY, 60_000_000)
        assert payouts[PayoutReason.SUBJECT_FEE] == (ALICE, 40_000_000)
        assert sum(p.amount for p in transition.payouts) == transition.quote.base_price


# =============================================================================
# INVARIANTS
# =============================================================================


class TestInvariants:
    """Тесты для check_invariants и сохранения стоимости"""

    def test_backing_matches_curve(self, ledger, config, active_state):
        state = active_state
        steps = [
            (BOB, TradeDirection.BUY, 3),
            (ALICE, TradeDirection.ISSUE, 2),
            (BOB, TradeDirection.SELL, 2),
            (ALICE, TradeDirection.SELL, 1),
            (BOB, TradeDirection.BUY, 1),
        ]
        curve = PriceCurve(config.curve)
        for trader, direction, units in steps:
            payment = 10**12 if direction.is_buy else 0
            state = ledger.apply(state, config, trader, direction, units, payment).new_state
            assert sum(state.holding.values()) == state.supply
            assert state.backing_value == curve.reserve_at(state.supply)

    def test_conservation_of_value(self, ledger, config, active_state):
        """Платёж = backing + комиссии + refund"""
        payment = 10**12
        transition = ledger.apply(
            active_state, config, BOB, TradeDirection.BUY, 4, payment=payment
        )
        backing_delta = transition.new_state.backing_value - active_state.backing_value
        assert backing_delta + sum(p.amount for p in transition.payouts) == payment

    def test_supply_mismatch_detected(self, ledger):
        state = SubjectState(
            subject=ALICE, status=SubjectStatus.ACTIVE, supply=2, holding={ALICE: 1}
        )
        with pytest.raises(LedgerInvariantViolation):
            ledger.check_invariants(state)

    def test_zero_holding_detected(self, ledger):
        state = SubjectState(
            subject=ALICE, status=SubjectStatus.ACTIVE, supply=1, holding={ALICE: 1, BOB: 0}
        )
        with pytest.raises(LedgerInvariantViolation):
            ledger.check_invariants(state)

    def test_uninitialized_with_supply_detected(self, ledger):
        state = SubjectState(subject=ALICE, supply=1, holding={ALICE: 1})
        with pytest.raises(LedgerInvariantViolation):
            ledger.check_invariants(state)


# =============================================================================
# QUOTES & FEE RATES
# =============================================================================


class TestQuote:
    """Тесты для SubjectLedger.quote"""

    def test_buy_quote(self, ledger, config, active_state):
        quote = ledger.quote(active_state, config, TradeDirection.BUY, 3)
        assert quote.base_price == PriceCurve().price_of_range(1, 3)
        assert quote.supply == 1
        assert quote.units == 3

    def test_sell_quote_beyond_supply(self, ledger, config, active_state):
        with pytest.raises(InsufficientShares):
            ledger.quote(active_state, config, TradeDirection.SELL, 2)


class TestUpdateFeeRates:
    """Тесты для update_fee_rates"""

    def test_admin_updates(self, ledger, config):
        updated = ledger.update_fee_rates(config, ADMIN, protocol_fee_rate=10_000_000)
        assert updated.protocol_fee_rate == 10_000_000
        assert updated.subject_fee_rate == config.subject_fee_rate
        # Исходная конфигурация не меняется
        assert config.protocol_fee_rate == 30_000_000

    def test_new_rates_apply_to_next_quote(self, ledger, config, active_state):
        updated = ledger.update_fee_rates(config, "0xAD", protocol_fee_rate=0, subject_fee_rate=0)
        quote = ledger.quote(active_state, updated, TradeDirection.BUY, 1)
        assert quote.total == quote.base_price

    def test_non_admin_denied(self, ledger, config):
        with pytest.raises(PermissionDenied):
            ledger.update_fee_rates(config, ALICE, protocol_fee_rate=0)

    def test_rate_out_of_range(self, ledger, config):
        with pytest.raises(ValidationError):
            ledger.update_fee_rates(config, ADMIN, subject_fee_rate=1_000_000_001)
