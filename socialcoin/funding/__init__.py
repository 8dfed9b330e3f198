"""Funding — подбор и резервирование funding units для оплаты сделок.

- Greedy-prefix подбор units под сумму (selector)
- In-memory funding source с merge/split и scoped reservation (pool)
"""

from .pool import FundingPool, FundingReservation, FundingSource
from .selector import (
    DEFAULT_PAGE_SIZE,
    FundingSelection,
    iter_funding_pages,
    select,
    select_from_pages,
    sorted_by_value,
)

__all__ = [
    "FundingPool",
    "FundingReservation",
    "FundingSource",
    "FundingSelection",
    "DEFAULT_PAGE_SIZE",
    "select",
    "select_from_pages",
    "iter_funding_pages",
    "sorted_by_value",
]
