"""
SubjectState — снапшот состояния token line субъекта

Immutable Pydantic модель. Каждый переход state machine (SubjectLedger)
создаёт новый снапшот, старый не меняется. Совместима с JSON Schema
(contracts/schema/subject_state.json).

Инварианты (проверяет SubjectLedger.check_invariants):
- sum(holding.values()) == supply
- holders == {k : holding[k] > 0}; нулевые балансы не хранятся
"""

from enum import Enum

from pydantic import BaseModel, Field, computed_field

from socialcoin.core.domain.identity import Identity, normalize_identity
from socialcoin.core.math.checked import U64_MAX


class SubjectStatus(str, Enum):
    """
    Состояние субъекта.

    UNINITIALIZED → ACTIVE при первом issue, деактивации нет.
    """

    UNINITIALIZED = "UNINITIALIZED"
    ACTIVE = "ACTIVE"


class SubjectState(BaseModel):
    """
    Состояние token line субъекта.

    backing_value — сумма base_price, заплаченная в кривую субъекта и ещё
    не выплаченная продавцам. Из неё выплачивается sell.
    """

    subject: Identity = Field(..., description="Владелец token line")
    status: SubjectStatus = Field(SubjectStatus.UNINITIALIZED)
    supply: int = Field(0, ge=0, le=U64_MAX, description="Выпущено shares")
    holding: dict[Identity, int] = Field(
        default_factory=dict, description="Баланс shares по держателям"
    )
    backing_value: int = Field(0, ge=0, le=U64_MAX, description="Обеспечение кривой")

    model_config = {"frozen": True}

    @classmethod
    def uninitialized(cls, subject: str) -> "SubjectState":
        """Пустой снапшот субъекта, который ещё ничего не выпустил."""
        return cls(subject=subject)

    @computed_field
    @property
    def holders(self) -> list[str]:
        """Держатели с ненулевым балансом (отсортированы для детерминизма)."""
        return sorted(k for k, v in self.holding.items() if v > 0)

    @property
    def is_active(self) -> bool:
        return self.status == SubjectStatus.ACTIVE

    @property
    def holder_count(self) -> int:
        return len(self.holders)

    def holding_of(self, trader: str) -> int:
        """Баланс shares трейдера (0, если не держатель)."""
        return self.holding.get(normalize_identity(trader), 0)
