"""
Trade — Модели запроса сделки, котировки и события

Immutable Pydantic модели:
- TradeRequest: эфемерный запрос issue/buy/sell
- PriceQuote: цена диапазона units плюс комиссии
- TradeEvent: запись о применённой сделке (аналог события контракта)

Все суммы — целые u64 в минимальных единицах базового актива.
"""

from enum import Enum

from pydantic import BaseModel, Field, model_validator

from socialcoin.core.domain.identity import Identity
from socialcoin.core.math.checked import U64_MAX


# =============================================================================
# ENUMS
# =============================================================================


class TradeDirection(str, Enum):
    """Направление сделки"""

    BUY = "buy"
    SELL = "sell"
    ISSUE = "issue"  # Покупка субъектом собственных shares (в т.ч. первый share)

    @property
    def is_buy(self) -> bool:
        """True для направлений, за которые платит трейдер (BUY/ISSUE)."""
        return self is not TradeDirection.SELL


# =============================================================================
# TRADE REQUEST
# =============================================================================


class TradeRequest(BaseModel):
    """
    Запрос сделки.

    Sell дополнительно требует units <= holding[trader]; это проверяет леджер,
    а не модель (holding известен только в момент apply).
    """

    trader: Identity = Field(..., description="Кто торгует")
    subject: Identity = Field(..., description="Чьи shares")
    direction: TradeDirection = Field(..., description="buy/sell/issue")
    units: int = Field(..., ge=1, le=U64_MAX, description="Количество shares")

    model_config = {"frozen": True}


# =============================================================================
# PRICE QUOTE
# =============================================================================


class PriceQuote(BaseModel):
    """
    Котировка сделки.

    Buy/Issue: total = base_price + protocol_fee + subject_fee
    Sell:      total = max(base_price - protocol_fee - subject_fee, 0)

    degenerate=True только для sell, когда комиссии превысили base_price
    и total был обрезан до нуля. Это не ошибка.

    Котировка действительна только для supply, наблюдаемого в момент расчёта.
    """

    direction: TradeDirection
    supply: int = Field(0, ge=0, le=U64_MAX, description="Supply на момент котировки")
    units: int = Field(0, ge=0, le=U64_MAX, description="Количество shares")
    base_price: int = Field(..., ge=0, le=U64_MAX, description="Цена по кривой без комиссий")
    protocol_fee: int = Field(..., ge=0, le=U64_MAX)
    subject_fee: int = Field(..., ge=0, le=U64_MAX)
    total: int = Field(..., ge=0, le=U64_MAX, description="К оплате (buy) / к получению (sell)")
    degenerate: bool = Field(False, description="Sell: комиссии превысили base_price")

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_total(self) -> "PriceQuote":
        """Проверка согласованности total с base_price и комиссиями"""
        fees = self.protocol_fee + self.subject_fee
        if self.direction.is_buy:
            expected = self.base_price + fees
            if self.degenerate:
                raise ValueError("degenerate quotes are only possible for sell")
        else:
            expected = max(self.base_price - fees, 0)
            if self.degenerate != (fees > self.base_price):
                raise ValueError(
                    f"degenerate={self.degenerate} inconsistent with "
                    f"fees {fees} and base_price {self.base_price}"
                )
        if self.total != expected:
            raise ValueError(f"total {self.total} must equal {expected} for {self.direction.value}")
        return self

    @property
    def total_fees(self) -> int:
        return self.protocol_fee + self.subject_fee


# =============================================================================
# TRADE EVENT
# =============================================================================


class TradeEvent(BaseModel):
    """
    Событие применённой сделки.

    Повторяет набор полей события контракта (trader, subject, is_buy,
    share_amount, суммы, supply после сделки).
    """

    trader: Identity
    subject: Identity
    is_buy: bool
    share_amount: int = Field(..., ge=1, le=U64_MAX)
    base_amount: int = Field(..., ge=0, le=U64_MAX, description="Цена по кривой")
    protocol_fee_amount: int = Field(..., ge=0, le=U64_MAX)
    subject_fee_amount: int = Field(..., ge=0, le=U64_MAX)
    total_amount: int = Field(..., ge=0, le=U64_MAX, description="Оплачено / выплачено трейдеру")
    supply: int = Field(..., ge=0, le=U64_MAX, description="Supply после сделки")

    model_config = {"frozen": True}
