"""
GlobalConfig — конфигурация биржи

Создаётся один раз при инициализации системы; меняются только ставки
комиссий (admin), и только для следующих котировок. Реестр субъектов
хранит LedgerStore.

Совместима с JSON Schema (contracts/schema/global_config.json).
"""

from typing import Final

from pydantic import BaseModel, Field

from socialcoin.core.domain.identity import Identity
from socialcoin.core.math.price_curve import CurveConfig

# Ставки комиссий задаются в долях 1e9 (parts-per-billion)
FEE_RATE_DENOMINATOR: Final[int] = 1_000_000_000

# 3% протоколу, 2% субъекту
DEFAULT_PROTOCOL_FEE_RATE: Final[int] = 30_000_000
DEFAULT_SUBJECT_FEE_RATE: Final[int] = 20_000_000


class GlobalConfig(BaseModel):
    """
    Глобальная конфигурация.

    Immutable модель: смена ставок создаёт новый экземпляр
    (SubjectLedger.update_fee_rates).
    """

    admin: Identity = Field(..., description="Владелец admin capability")
    protocol_fee_destination: Identity = Field(..., description="Получатель комиссии протокола")
    protocol_fee_rate: int = Field(
        DEFAULT_PROTOCOL_FEE_RATE, ge=0, le=FEE_RATE_DENOMINATOR, description="Доли 1e9"
    )
    subject_fee_rate: int = Field(
        DEFAULT_SUBJECT_FEE_RATE, ge=0, le=FEE_RATE_DENOMINATOR, description="Доли 1e9"
    )
    curve: CurveConfig = Field(default_factory=CurveConfig, description="Bonding curve")

    model_config = {"frozen": True}
