"""TradeOrchestrator — точка входа для issue/buy/sell.

Порядок шагов на запрос (терминально на успехе или первой ошибке):
1. Quote — PriceCurve + FeeCalculator по текущему supply
2. Fund  — FundingSelector на quote.total (только BUY/ISSUE)
3. Carve — merge выбранных units и split на точные куски + сдача
4. Apply — SubjectLedger.apply, compare-and-set снапшота, commit резерва

SELL пропускает шаги 2-3: леджер сам считает котировку и выплачивает
total из backing субъекта.

Первый share субъекта бесплатен. Для ISSUE при supply == 0 оркестратор
делит сделку на две операции: 1 share за кусок нулевого value и
units - 1 shares за кусок price_of_range(1, units - 1) + комиссии.

Всё-или-ничего: ошибка на любом шаге до успешного compare-and-set
оставляет и леджер, и funding units владельца без изменений.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from socialcoin.core.domain.funding import FundingUnit
from socialcoin.core.domain.subject import SubjectState
from socialcoin.core.domain.trade import PriceQuote, TradeDirection, TradeEvent, TradeRequest
from socialcoin.core.errors import NotActive, PermissionDenied
from socialcoin.core.math.checked import validate_positive_u64
from socialcoin.core.math.fees import apply_fees
from socialcoin.core.math.price_curve import PriceCurve
from socialcoin.exchange.operations import (
    BuyShares,
    LedgerOperation,
    MergeUnits,
    SellShares,
    SplitUnit,
    TradePlan,
)
from socialcoin.funding.pool import FundingPool
from socialcoin.funding.selector import (
    DEFAULT_PAGE_SIZE,
    FundingSelection,
    iter_funding_pages,
    select,
    select_from_pages,
    sorted_by_value,
)
from socialcoin.ledger.state_machine import LedgerTransition, SubjectLedger
from socialcoin.ledger.store import LedgerStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrchestratorConfig:
    """Конфигурация оркестратора.

    funding_page_size: размер страницы при обходе units владельца
    sort_funding: подбирать units в порядке убывания value (детерминированно)
        вместо порядка, в котором их отдаёт funding source
    """

    funding_page_size: int = DEFAULT_PAGE_SIZE
    sort_funding: bool = False


@dataclass(frozen=True)
class TradeReceipt:
    """Результат применённой сделки."""

    plan: TradePlan
    events: tuple[TradeEvent, ...]
    subject_state: SubjectState
    version: int
    change_unit: Optional[FundingUnit]
    payout_units: tuple[FundingUnit, ...]

    @property
    def request(self) -> TradeRequest:
        return self.plan.request

    @property
    def quote(self) -> PriceQuote:
        return self.plan.quote


class TradeOrchestrator:
    """Оркестратор сделок поверх LedgerStore и FundingPool."""

    def __init__(
        self,
        store: LedgerStore,
        funding: FundingPool,
        ledger: Optional[SubjectLedger] = None,
        config: Optional[OrchestratorConfig] = None,
    ):
        """
        Args:
            store: хранилище Global и снапшотов субъектов
            funding: источник funding units (перечисление, резерв, mint)
            ledger: state machine субъекта
            config: конфигурация оркестратора
        """
        self.store = store
        self.funding = funding
        self.ledger = ledger or SubjectLedger()
        self.config = config or OrchestratorConfig()

    # -------------------------------------------------------------------------
    # Quotes
    # -------------------------------------------------------------------------

    def quote_buy(self, subject: str, units: int) -> PriceQuote:
        """Цена покупки units shares субъекта с комиссиями."""
        state, _ = self.store.get_subject(subject)
        return self.ledger.quote(state, self.store.get_config(), TradeDirection.BUY, units)

    def quote_sell(self, subject: str, units: int) -> PriceQuote:
        """Выручка продажи units shares субъекта после комиссий."""
        state, _ = self.store.get_subject(subject)
        return self.ledger.quote(state, self.store.get_config(), TradeDirection.SELL, units)

    def quote_issue(self, subject: str, units: int) -> PriceQuote:
        """Цена issue units shares самим субъектом.

        При supply == 0 первый share бесплатен: считается
        price_of_range(1, units - 1) + комиссии.
        """
        validate_positive_u64(units, "units")
        state, _ = self.store.get_subject(subject)
        config = self.store.get_config()
        if state.supply > 0:
            return self.ledger.quote(state, config, TradeDirection.ISSUE, units)

        base = PriceCurve(config.curve).price_of_range(1, units - 1)
        return apply_fees(
            base,
            config.protocol_fee_rate,
            config.subject_fee_rate,
            TradeDirection.ISSUE,
            supply=0,
            units=units,
        )

    # -------------------------------------------------------------------------
    # Plans
    # -------------------------------------------------------------------------

    def plan_issue(self, trader: str, units: int) -> TradePlan:
        """План issue: subject == trader."""
        validate_positive_u64(units, "units")
        request = TradeRequest(
            trader=trader, subject=trader, direction=TradeDirection.ISSUE, units=units
        )
        state, _ = self.store.get_subject(request.subject)
        quote = self.quote_issue(request.subject, units)

        if state.supply > 0:
            funding, operations = self._fund_and_carve(request.trader, [quote.total])
            operations.append(
                BuyShares(
                    trader=request.trader,
                    subject=request.subject,
                    direction=TradeDirection.ISSUE,
                    units=units,
                    piece_index=0,
                    payment=quote.total,
                )
            )
        else:
            # Bootstrap: 1 share за ноль, остальные за рассчитанный кусок
            amounts = [0] if units == 1 else [0, quote.total]
            funding, operations = self._fund_and_carve(request.trader, amounts)
            operations.append(
                BuyShares(
                    trader=request.trader,
                    subject=request.subject,
                    direction=TradeDirection.ISSUE,
                    units=1,
                    piece_index=0,
                    payment=0,
                )
            )
            if units > 1:
                operations.append(
                    BuyShares(
                        trader=request.trader,
                        subject=request.subject,
                        direction=TradeDirection.ISSUE,
                        units=units - 1,
                        piece_index=1,
                        payment=quote.total,
                    )
                )

        return self._plan(request, quote, funding, operations)

    def plan_buy(self, trader: str, subject: str, units: int) -> TradePlan:
        """План покупки shares активного субъекта."""
        validate_positive_u64(units, "units")
        request = TradeRequest(
            trader=trader, subject=subject, direction=TradeDirection.BUY, units=units
        )
        state, _ = self.store.get_subject(request.subject)
        if not state.is_active:
            raise NotActive(request.subject)

        quote = self.ledger.quote(state, self.store.get_config(), TradeDirection.BUY, units)
        funding, operations = self._fund_and_carve(request.trader, [quote.total])
        operations.append(
            BuyShares(
                trader=request.trader,
                subject=request.subject,
                direction=TradeDirection.BUY,
                units=units,
                piece_index=0,
                payment=quote.total,
            )
        )
        return self._plan(request, quote, funding, operations)

    def plan_sell(self, trader: str, subject: str, units: int) -> TradePlan:
        """План продажи: одна операция, без funding."""
        validate_positive_u64(units, "units")
        request = TradeRequest(
            trader=trader, subject=subject, direction=TradeDirection.SELL, units=units
        )
        quote = self.quote_sell(request.subject, units)
        operations: list[LedgerOperation] = [
            SellShares(trader=request.trader, subject=request.subject, units=units)
        ]
        return self._plan(request, quote, None, operations)

    def _plan(
        self,
        request: TradeRequest,
        quote: PriceQuote,
        funding: Optional[FundingSelection],
        operations: list[LedgerOperation],
    ) -> TradePlan:
        logger.debug(
            "Planned %s of %d %s shares by %s: total=%d, %d operations",
            request.direction.value,
            request.units,
            request.subject,
            request.trader,
            quote.total,
            len(operations),
        )
        return TradePlan(
            request=request, quote=quote, funding=funding, operations=tuple(operations)
        )

    def _fund_and_carve(
        self, trader: str, amounts: list[int]
    ) -> tuple[Optional[FundingSelection], list[LedgerOperation]]:
        """Fund + Carve: подбор units на сумму кусков и операции merge/split."""
        target = sum(amounts)
        if target == 0:
            return None, [SplitUnit(owner=trader, unit_id=None, amounts=amounts)]

        selection = self._select_funding(trader, target)
        operations: list[LedgerOperation] = []
        primary, *rest = selection.unit_ids
        if rest:
            operations.append(
                MergeUnits(owner=trader, primary_unit_id=primary, merged_unit_ids=rest)
            )
        operations.append(SplitUnit(owner=trader, unit_id=primary, amounts=amounts))
        return selection, operations

    def _select_funding(self, trader: str, target: int) -> FundingSelection:
        if self.config.sort_funding:
            return select(trader, sorted_by_value(self.funding.units_of(trader)), target)
        pages = iter_funding_pages(self.funding, trader, self.config.funding_page_size)
        return select_from_pages(trader, pages, target)

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    def issue(self, trader: str, units: int) -> TradeReceipt:
        """Issue units собственных shares (первый share бесплатен)."""
        with self.store.subject_lock(trader):
            return self._execute_locked(self.plan_issue(trader, units))

    def buy(self, trader: str, subject: str, units: int) -> TradeReceipt:
        """Покупка units shares субъекта."""
        with self.store.subject_lock(subject):
            return self._execute_locked(self.plan_buy(trader, subject, units))

    def sell(self, trader: str, subject: str, units: int) -> TradeReceipt:
        """Продажа units shares субъекта."""
        with self.store.subject_lock(subject):
            return self._execute_locked(self.plan_sell(trader, subject, units))

    def execute(self, request: TradeRequest) -> TradeReceipt:
        """Исполнение запроса любого направления."""
        if request.direction == TradeDirection.ISSUE:
            if request.trader != request.subject:
                raise PermissionDenied(
                    f"Only subject {request.subject} can issue its own shares, not {request.trader}"
                )
            return self.issue(request.trader, request.units)
        if request.direction == TradeDirection.BUY:
            return self.buy(request.trader, request.subject, request.units)
        return self.sell(request.trader, request.subject, request.units)

    def execute_plan(self, plan: TradePlan) -> TradeReceipt:
        """Исполнение заранее построенного плана.

        Котировка плана могла устареть: леджер пересчитывает цену при apply,
        недостаточный кусок → InsufficientFunds, излишек → refund.
        """
        with self.store.subject_lock(plan.request.subject):
            return self._execute_locked(plan)

    def _execute_locked(self, plan: TradePlan) -> TradeReceipt:
        request = plan.request
        state, version = self.store.get_subject(request.subject)
        config = self.store.get_config()

        transitions: list[LedgerTransition] = []
        change_unit = None

        if request.direction == TradeDirection.SELL:
            for op in plan.operations:
                transition = self.ledger.apply(
                    state, config, op.trader, TradeDirection.SELL, op.units
                )
                transitions.append(transition)
                state = transition.new_state
            new_version = self.store.compare_and_set(request.subject, version, state)
        else:
            with self.funding.reserve(request.trader, plan.funding_unit_ids) as reservation:
                pieces: list[FundingUnit] = []
                for op in plan.operations:
                    if isinstance(op, MergeUnits):
                        reservation.merge()
                    elif isinstance(op, SplitUnit):
                        pieces = reservation.split(op.amounts)
                    elif isinstance(op, BuyShares):
                        piece = pieces[op.piece_index]
                        transition = self.ledger.apply(
                            state,
                            config,
                            op.trader,
                            op.direction,
                            op.units,
                            payment=piece.value,
                        )
                        reservation.consume(piece.unit_id)
                        transitions.append(transition)
                        state = transition.new_state
                new_version = self.store.compare_and_set(request.subject, version, state)
                change_unit = reservation.commit()

        payout_units = tuple(
            self.funding.mint(payout.recipient, payout.amount)
            for transition in transitions
            for payout in transition.payouts
        )

        logger.info(
            "Applied %s: trader=%s subject=%s units=%d total=%d supply=%d",
            request.direction.value,
            request.trader,
            request.subject,
            request.units,
            plan.quote.total,
            state.supply,
        )
        return TradeReceipt(
            plan=plan,
            events=tuple(t.event for t in transitions),
            subject_state=state,
            version=new_version,
            change_unit=change_unit,
            payout_units=payout_units,
        )

