"""
Checked u64 Arithmetic — целочисленные примитивы без переполнения

Все суммы в системе — целые числа в минимальных единицах базового актива
(u64, как на стороне контракта). Модуль обеспечивает:
- Явную проверку переполнения на каждом сложении/умножении
- Запрет отрицательных результатов вычитания
- Деление с округлением вниз (floor) без float

Промежуточные произведения (например, base * rate) считаются в ширине u128,
итоговые суммы обязаны помещаться в u64.

КРИТИЧЕСКИЕ ИНВАРИАНТЫ:
1. Переполнение никогда не происходит молча (Overflow exception)
2. Float не используется нигде в этом пути
3. Все операции детерминированы и воспроизводимы
"""

from typing import Final

from socialcoin.core.errors import InvalidAmount, Overflow

# =============================================================================
# ГРАНИЦЫ
# =============================================================================

U64_MAX: Final[int] = 2**64 - 1

# Ширина промежуточных произведений (upcast до u128 перед делением)
U128_MAX: Final[int] = 2**128 - 1


# =============================================================================
# ВАЛИДАЦИЯ
# =============================================================================


def is_u64(value: object) -> bool:
    """
    Проверка, что значение является u64.

    bool исключается явно, хотя и является подклассом int.

    Examples:
        >>> is_u64(0)
        True
        >>> is_u64(-1)
        False
        >>> is_u64(True)
        False
    """
    if not isinstance(value, int) or isinstance(value, bool):
        return False
    return 0 <= value <= U64_MAX


def validate_u64(value: int, name: str) -> int:
    """
    Валидация, что значение является u64.

    Args:
        value: Проверяемое значение
        name: Имя параметра (для сообщения об ошибке)

    Returns:
        value без изменений

    Raises:
        TypeError: Если value не int
        InvalidAmount: Если value < 0
        Overflow: Если value > U64_MAX
    """
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int, got {type(value).__name__}")
    if value < 0:
        raise InvalidAmount(name, value)
    if value > U64_MAX:
        raise Overflow(f"{name} range check", value, U64_MAX)
    return value


def validate_positive_u64(value: int, name: str) -> int:
    """То же, что validate_u64, но ноль тоже отклоняется (InvalidAmount)."""
    validate_u64(value, name)
    if value == 0:
        raise InvalidAmount(name, value)
    return value


# =============================================================================
# ОПЕРАЦИИ
# =============================================================================


def checked_add(a: int, b: int, limit: int = U64_MAX) -> int:
    """
    Сложение с проверкой переполнения.

    Args:
        a: Первое слагаемое
        b: Второе слагаемое
        limit: Верхняя граница результата (default: U64_MAX)

    Raises:
        Overflow: Если a + b > limit
    """
    result = a + b
    if result > limit:
        raise Overflow("add", a, b)
    return result


def checked_sub(a: int, b: int) -> int:
    """
    Вычитание u64 (underflow запрещён).

    Raises:
        Overflow: Если a < b
    """
    if b > a:
        raise Overflow("sub", a, b)
    return a - b


def checked_mul(a: int, b: int, limit: int = U64_MAX) -> int:
    """
    Умножение с проверкой переполнения.

    Args:
        a: Первый множитель
        b: Второй множитель
        limit: Верхняя граница результата (default: U64_MAX)

    Raises:
        Overflow: Если a * b > limit
    """
    result = a * b
    if result > limit:
        raise Overflow("mul", a, b)
    return result


def floor_div(a: int, b: int) -> int:
    """Целочисленное деление неотрицательных чисел (округление к нулю)."""
    if b == 0:
        raise ZeroDivisionError("u64 division by zero")
    return a // b


def mul_div_floor(value: int, numerator: int, denominator: int) -> int:
    """
    floor(value * numerator / denominator).

    Произведение считается в ширине u128, результат проверяется на u64.

    Examples:
        >>> mul_div_floor(400_000_000, 30_000_000, 1_000_000_000)
        12000000

    Raises:
        Overflow: Если произведение > U128_MAX или результат > U64_MAX
    """
    product = checked_mul(value, numerator, limit=U128_MAX)
    result = floor_div(product, denominator)
    if result > U64_MAX:
        raise Overflow("mul_div", value, numerator)
    return result
