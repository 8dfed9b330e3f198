"""Ledger — state machine субъектов и хранилище снапшотов.

- Переходы UNINITIALIZED → ACTIVE, buy/sell над снапшотами SubjectState
- Per-subject compare-and-set и lock для сериализации apply
"""

from .state_machine import LedgerTransition, Payout, PayoutReason, SubjectLedger
from .store import InMemoryLedgerStore, LedgerStore, SubjectProfile

__all__ = [
    "SubjectLedger",
    "LedgerTransition",
    "Payout",
    "PayoutReason",
    "LedgerStore",
    "InMemoryLedgerStore",
    "SubjectProfile",
]
