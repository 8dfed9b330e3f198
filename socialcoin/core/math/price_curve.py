"""
PriceCurve — Bonding curve и её интеграл по диапазону units

Цена share, выпускаемого при supply = i:
    marginal(i) = unit_price * f(i)

    QUADRATIC: f(i) = i^2   (сумма квадратов, кривая контракта)
    LINEAR:    f(i) = i

Стоимость диапазона [s, s + count) считается в замкнутой форме через
разность префиксных сумм:
    S2(n) = (n - 1) * n * (2n - 1) / 6     (сумма i^2 для i < n)
    S1(n) = n * (n - 1) / 2                (сумма i для i < n)
    price_of_range(s, count) = unit_price * (S(s + count) - S(s))

КРИТИЧЕСКИЕ ИНВАРИАНТЫ:
1. price_of_range(s, 0) == 0
2. Аддитивность: price_of_range(s, a + b) == price_of_range(s, a) + price_of_range(s + a, b)
3. Монотонность по s и по count
4. f(0) == 0 для всех форм: кривая без ветвлений, первый share стоит 0
5. Переполнение u64 → Overflow, никогда не wrap
"""

from enum import Enum
from typing import Final

from pydantic import BaseModel, Field

from socialcoin.core.math.checked import (
    U64_MAX,
    U128_MAX,
    checked_add,
    checked_mul,
    checked_sub,
    floor_div,
    validate_u64,
)

# =============================================================================
# ПАРАМЕТРЫ ПО УМОЛЧАНИЮ
# =============================================================================

# 1e9 / 10 минимальных единиц за "единицу" f(i); share при supply=2 стоит 4e8
DEFAULT_UNIT_PRICE: Final[int] = 100_000_000


# =============================================================================
# CONFIG
# =============================================================================


class CurveShape(str, Enum):
    """Форма кривой (маргинальная цена как функция supply)"""

    QUADRATIC = "quadratic"
    LINEAR = "linear"


class CurveConfig(BaseModel):
    """
    Конфигурация bonding curve.

    Часть Global: форма кривой задаётся конфигурацией, а не зашита в код.
    """

    shape: CurveShape = Field(CurveShape.QUADRATIC, description="Форма кривой")
    unit_price: int = Field(
        DEFAULT_UNIT_PRICE, ge=1, le=U64_MAX, description="Множитель маргинальной цены"
    )

    model_config = {"frozen": True}


# =============================================================================
# ПРЕФИКСНЫЕ СУММЫ
# =============================================================================


def _sum_of_squares_below(n: int) -> int:
    """S2(n) = sum(i^2 for i in range(n)), в ширине u128."""
    if n == 0:
        return 0
    product = checked_mul(n - 1, n, limit=U128_MAX)
    product = checked_mul(product, 2 * n - 1, limit=U128_MAX)
    return floor_div(product, 6)


def _sum_below(n: int) -> int:
    """S1(n) = sum(i for i in range(n)), в ширине u128."""
    if n == 0:
        return 0
    return floor_div(checked_mul(n, n - 1, limit=U128_MAX), 2)


_PREFIX_SUMS = {
    CurveShape.QUADRATIC: _sum_of_squares_below,
    CurveShape.LINEAR: _sum_below,
}


# =============================================================================
# PRICE CURVE
# =============================================================================


class PriceCurve:
    """
    Bonding curve: чистая функция supply-диапазона → цена.

    Без состояния и I/O, безопасна для вызова из любого потока.
    Bootstrap (первый share бесплатно) — забота оркестратора, не кривой.
    """

    def __init__(self, config: CurveConfig | None = None):
        """
        Args:
            config: конфигурация кривой (default: QUADRATIC, DEFAULT_UNIT_PRICE)
        """
        self.config = config or CurveConfig()
        self._prefix_sum = _PREFIX_SUMS[self.config.shape]

    def price_of_range(self, start_supply: int, count: int) -> int:
        """
        Стоимость выпуска count shares при уже выпущенных start_supply.

        Args:
            start_supply: supply до выпуска (u64)
            count: количество выпускаемых shares (u64, может быть 0)

        Returns:
            Стоимость в минимальных единицах базового актива (u64)

        Raises:
            Overflow: Если supply или цена выходят за пределы u64

        Examples:
            >>> PriceCurve().price_of_range(2, 1)
            400000000
            >>> PriceCurve().price_of_range(0, 1)
            0
        """
        validate_u64(start_supply, "start_supply")
        validate_u64(count, "count")
        if count == 0:
            return 0

        end_supply = checked_add(start_supply, count)
        summation = checked_sub(self._prefix_sum(end_supply), self._prefix_sum(start_supply))
        return checked_mul(summation, self.config.unit_price)

    def marginal_price(self, supply: int) -> int:
        """Цена одного share, выпускаемого при данном supply."""
        return self.price_of_range(supply, 1)

    def reserve_at(self, supply: int) -> int:
        """
        Сумма base_price, накопленная кривой от нуля до supply.

        Для неизменной кривой совпадает с backing_value субъекта.
        """
        return self.price_of_range(0, supply)
