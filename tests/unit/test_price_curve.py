"""
Тесты для PriceCurve (bonding curve)

Проверяет:
1. Конкретные значения (share при supply=2 стоит 4e8)
2. price_of_range(s, 0) == 0 и бесплатный первый share
3. Аддитивность и монотонность
4. Overflow вместо wrap
5. Форму LINEAR и unit_price из конфигурации
"""

import pytest
from pydantic import ValidationError

from socialcoin.core.errors import InvalidAmount, Overflow
from socialcoin.core.math import U64_MAX, CurveConfig, CurveShape, PriceCurve


@pytest.fixture
def curve() -> PriceCurve:
    """Кривая по умолчанию (QUADRATIC, unit_price=1e8)"""
    return PriceCurve()


class TestQuadraticCurve:
    """Тесты для квадратичной кривой"""

    def test_single_share_at_supply_two(self, curve):
        """Share, выпускаемый при supply=2, стоит 4e8"""
        assert curve.price_of_range(2, 1) == 400_000_000

    def test_first_share_is_free(self, curve):
        assert curve.price_of_range(0, 1) == 0

    def test_range_sum_of_squares(self, curve):
        """[1, 4): 1 + 4 + 9 = 14 единиц"""
        assert curve.price_of_range(1, 3) == 14 * 100_000_000

    @pytest.mark.parametrize("start", [0, 1, 17, 10_000])
    def test_zero_count_is_free(self, curve, start):
        assert curve.price_of_range(start, 0) == 0

    @pytest.mark.parametrize(
        "start,a,b",
        [(0, 1, 1), (0, 3, 5), (1, 1, 10), (7, 13, 2), (1000, 250, 750)],
    )
    def test_additivity(self, curve, start, a, b):
        """price(s, a+b) == price(s, a) + price(s+a, b)"""
        whole = curve.price_of_range(start, a + b)
        parts = curve.price_of_range(start, a) + curve.price_of_range(start + a, b)
        assert whole == parts

    def test_matches_marginal_sum(self, curve):
        """Замкнутая форма совпадает с поштучной суммой"""
        expected = sum(curve.marginal_price(i) for i in range(5, 25))
        assert curve.price_of_range(5, 20) == expected

    def test_monotonic_in_supply(self, curve):
        prices = [curve.price_of_range(s, 3) for s in range(0, 50)]
        assert prices == sorted(prices)
        assert all(b > a for a, b in zip(prices[1:], prices[2:]))

    def test_monotonic_in_count(self, curve):
        prices = [curve.price_of_range(4, c) for c in range(0, 50)]
        assert all(b > a for a, b in zip(prices, prices[1:]))

    def test_reserve_at(self, curve):
        """reserve_at(n) — стоимость всех shares от нуля"""
        assert curve.reserve_at(0) == 0
        assert curve.reserve_at(4) == curve.price_of_range(0, 4) == 14 * 100_000_000


class TestCurveBounds:
    """Тесты для границ u64"""

    def test_supply_overflow(self, curve):
        with pytest.raises(Overflow):
            curve.price_of_range(U64_MAX, 1)

    def test_price_overflow(self, curve):
        """Сумма квадратов помещается в u128, но цена не помещается в u64"""
        with pytest.raises(Overflow):
            curve.price_of_range(0, 10_000_000)

    def test_negative_supply_rejected(self, curve):
        with pytest.raises(InvalidAmount):
            curve.price_of_range(-1, 1)

    def test_largest_affordable_range(self):
        """С unit_price=1 большие диапазоны считаются без float"""
        curve = PriceCurve(CurveConfig(unit_price=1))
        n = 3_000_000
        expected = (n - 1) * n * (2 * n - 1) // 6
        assert curve.price_of_range(0, n) == expected


class TestCurveConfig:
    """Тесты для CurveConfig"""

    def test_defaults(self):
        config = CurveConfig()
        assert config.shape == CurveShape.QUADRATIC
        assert config.unit_price == 100_000_000

    def test_linear_shape(self):
        """LINEAR: marginal(i) = unit_price * i"""
        curve = PriceCurve(CurveConfig(shape=CurveShape.LINEAR, unit_price=10))
        assert curve.price_of_range(0, 4) == 10 * (0 + 1 + 2 + 3)
        assert curve.marginal_price(7) == 70

    def test_linear_from_string(self):
        config = CurveConfig(shape="linear", unit_price=5)
        assert PriceCurve(config).price_of_range(2, 2) == 5 * (2 + 3)

    def test_zero_unit_price_rejected(self):
        with pytest.raises(ValidationError):
            CurveConfig(unit_price=0)

    def test_immutable(self):
        config = CurveConfig()
        with pytest.raises(ValidationError):
            config.unit_price = 1
