"""
FundingSelector — подбор funding units под сумму сделки

Алгоритм (greedy prefix):
    Идём по units в порядке, заданном вызывающим, накапливаем value,
    пока сумма не станет >= target. Возвращаем пройденный префикс и
    change = sum - target.

Порядок итерации — выбор вызывающего. Источник обычно отдаёт units в
порядке хранения (фактически неупорядоченно); кому нужен детерминированный
подбор, сортирует заранее (sorted_by_value).

Подбор НЕ минимизирует ни количество units, ни сдачу. Downstream merge/split
рассчитывают на то, что выбранное множество — префикс в заданном порядке,
поэтому семантику префикса менять нельзя.

КРИТИЧЕСКИЕ ИНВАРИАНТЫ:
1. target == 0 → InvalidAmount до начала подбора
2. sum(units) < target → InsufficientFunds, ничего не помечается потраченным
3. Успех: sum(selected) >= target и sum(selected) - target == change
"""

import itertools
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Iterator, Sequence

from socialcoin.core.domain.funding import FundingUnit
from socialcoin.core.domain.identity import normalize_identity
from socialcoin.core.errors import InsufficientFunds, PermissionDenied
from socialcoin.core.math.checked import validate_positive_u64

if TYPE_CHECKING:
    from socialcoin.funding.pool import FundingSource

logger = logging.getLogger(__name__)

# Размер страницы при обходе источника по умолчанию (как у RPC getCoins)
DEFAULT_PAGE_SIZE = 50


@dataclass(frozen=True)
class FundingSelection:
    """Результат подбора funding units."""

    owner: str
    target: int
    selected: tuple[FundingUnit, ...]
    total_value: int
    change: int

    @property
    def unit_ids(self) -> list[str]:
        return [unit.unit_id for unit in self.selected]


def select(owner: str, asset_units: Iterable[FundingUnit], target: int) -> FundingSelection:
    """
    Greedy-prefix подбор units владельца на сумму target.

    Args:
        owner: Владелец units
        asset_units: Units в порядке, заданном вызывающим (может быть ленивым)
        target: Требуемая сумма (u64, > 0)

    Returns:
        FundingSelection с префиксом units и сдачей

    Raises:
        InvalidAmount: Если target <= 0
        PermissionDenied: Если пройденный unit принадлежит другому владельцу
        InsufficientFunds: Если всех units не хватает до target
    """
    validate_positive_u64(target, "target")
    owner = normalize_identity(owner)

    selected: list[FundingUnit] = []
    running = 0
    for unit in asset_units:
        if unit.owner != owner:
            raise PermissionDenied(f"Funding unit {unit.unit_id} is owned by {unit.owner}, not {owner}")
        selected.append(unit)
        running += unit.value
        if running >= target:
            logger.debug(
                "Selected %d units for %s: total=%d target=%d change=%d",
                len(selected),
                owner,
                running,
                target,
                running - target,
            )
            return FundingSelection(
                owner=owner,
                target=target,
                selected=tuple(selected),
                total_value=running,
                change=running - target,
            )

    raise InsufficientFunds(available=running, required=target, owner=owner)


def select_from_pages(
    owner: str, pages: Iterable[Sequence[FundingUnit]], target: int
) -> FundingSelection:
    """
    Подбор по постраничному источнику.

    Следующая страница запрашивается только если текущих не хватило.
    """
    return select(owner, itertools.chain.from_iterable(pages), target)


def iter_funding_pages(
    source: "FundingSource", owner: str, page_size: int = DEFAULT_PAGE_SIZE
) -> Iterator[list[FundingUnit]]:
    """
    Обход FundingSource по страницам (cursor loop).

    Args:
        source: Объект с методом list_units(owner, cursor, limit) -> FundingPage
        owner: Владелец units
        page_size: Размер страницы

    Yields:
        Списки units, страница за страницей
    """
    cursor = None
    while True:
        page = source.list_units(owner, cursor=cursor, limit=page_size)
        yield list(page.units)
        if not page.has_next_page:
            return
        cursor = page.next_cursor


def sorted_by_value(units: Iterable[FundingUnit], descending: bool = True) -> list[FundingUnit]:
    """
    Детерминированный порядок для подбора: по value, затем по unit_id.

    descending=True — меньше units в подборе (обычно).
    """
    if descending:
        return sorted(units, key=lambda u: (-u.value, u.unit_id))
    return sorted(units, key=lambda u: (u.value, u.unit_id))
