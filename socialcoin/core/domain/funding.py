"""
FundingUnit — дискретный контейнер стоимости для оплаты сделок

Unit тратится только целиком; сделка может создать сдачу новым unit.
Каждый unit в каждый момент принадлежит ровно одному владельцу.
"""

from pydantic import BaseModel, Field

from socialcoin.core.domain.identity import Identity
from socialcoin.core.math.checked import U64_MAX


class FundingUnit(BaseModel):
    """Funding unit (аналог coin object). Immutable."""

    unit_id: str = Field(..., min_length=1, description="Идентификатор unit")
    owner: Identity = Field(..., description="Владелец")
    value: int = Field(..., ge=0, le=U64_MAX, description="Стоимость в минимальных единицах")

    model_config = {"frozen": True}


class FundingPage(BaseModel):
    """
    Страница units владельца.

    next_cursor=None означает, что страниц больше нет.
    """

    units: list[FundingUnit] = Field(default_factory=list)
    next_cursor: str | None = Field(None, description="Курсор следующей страницы")

    model_config = {"frozen": True}

    @property
    def has_next_page(self) -> bool:
        return self.next_cursor is not None


def total_value(units: list[FundingUnit]) -> int:
    """Сумма стоимостей units."""
    return sum(unit.value for unit in units)
