"""
Core math modules для socialcoin

Целочисленные примитивы (u64) и bonding curve с гарантией отсутствия
переполнения. Комиссии — в socialcoin.core.math.fees (зависит от domain).
"""

# Checked u64 arithmetic
from socialcoin.core.math.checked import (
    U64_MAX,
    U128_MAX,
    checked_add,
    checked_mul,
    checked_sub,
    floor_div,
    is_u64,
    mul_div_floor,
    validate_positive_u64,
    validate_u64,
)

# Bonding curve
from socialcoin.core.math.price_curve import (
    DEFAULT_UNIT_PRICE,
    CurveConfig,
    CurveShape,
    PriceCurve,
)

__all__ = [
    # Checked arithmetic
    "U64_MAX",
    "U128_MAX",
    "checked_add",
    "checked_sub",
    "checked_mul",
    "floor_div",
    "mul_div_floor",
    "is_u64",
    "validate_u64",
    "validate_positive_u64",
    # Price curve
    "DEFAULT_UNIT_PRICE",
    "CurveShape",
    "CurveConfig",
    "PriceCurve",
]
