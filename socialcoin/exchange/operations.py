"""
Operations — упорядоченный план сделки

Оркестратор описывает сделку списком операций, изменяющих леджер:
    MergeUnits → SplitUnit → BuyShares [→ BuyShares]
    SellShares

План строится без мутаций (аналог сборки transaction block) и исполняется
целиком или не исполняется вовсе.
"""

from dataclasses import dataclass
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field

from socialcoin.core.domain.identity import Identity
from socialcoin.core.domain.trade import PriceQuote, TradeDirection, TradeRequest
from socialcoin.core.math.checked import U64_MAX
from socialcoin.funding.selector import FundingSelection


# =============================================================================
# OPERATIONS
# =============================================================================


class MergeUnits(BaseModel):
    """Слияние выбранных units в первый (primary)."""

    kind: Literal["merge_units"] = "merge_units"
    owner: Identity
    primary_unit_id: str = Field(..., min_length=1)
    merged_unit_ids: list[str] = Field(..., min_length=1)

    model_config = {"frozen": True}


class SplitUnit(BaseModel):
    """
    Отделение кусков точного value от primary unit.

    unit_id=None: сделке не нужны units владельца (только бесплатный
    bootstrap share), кусок нулевого value создаётся из ничего.
    """

    kind: Literal["split_unit"] = "split_unit"
    owner: Identity
    unit_id: Optional[str] = None
    amounts: list[Annotated[int, Field(ge=0, le=U64_MAX)]] = Field(..., min_length=1)

    model_config = {"frozen": True}


class BuyShares(BaseModel):
    """Покупка shares за кусок piece_index из последнего SplitUnit."""

    kind: Literal["buy_shares"] = "buy_shares"
    trader: Identity
    subject: Identity
    direction: TradeDirection = TradeDirection.BUY
    units: int = Field(..., ge=1, le=U64_MAX)
    piece_index: int = Field(..., ge=0)
    payment: int = Field(..., ge=0, le=U64_MAX)

    model_config = {"frozen": True}


class SellShares(BaseModel):
    """Продажа shares; выплата из backing субъекта."""

    kind: Literal["sell_shares"] = "sell_shares"
    trader: Identity
    subject: Identity
    units: int = Field(..., ge=1, le=U64_MAX)

    model_config = {"frozen": True}


LedgerOperation = Annotated[
    Union[MergeUnits, SplitUnit, BuyShares, SellShares],
    Field(discriminator="kind"),
]


# =============================================================================
# PLAN
# =============================================================================


@dataclass(frozen=True)
class TradePlan:
    """План сделки: котировка, подобранные units и операции по порядку."""

    request: TradeRequest
    quote: PriceQuote
    funding: Optional[FundingSelection]
    operations: tuple[LedgerOperation, ...]

    @property
    def funding_unit_ids(self) -> list[str]:
        return self.funding.unit_ids if self.funding is not None else []

    @property
    def buy_operations(self) -> list[BuyShares]:
        return [op for op in self.operations if isinstance(op, BuyShares)]
