"""LedgerStore — хранилище Global и снапшотов субъектов.

Контракт внешнего хранилища:
- Точечное чтение Global и SubjectState по идентификатору субъекта
- Атомарный compare-and-set на субъект (версия снапшота)
- Сериализация apply на одном субъекте (per-subject lock)
- Снапшоты копируются на записи и на чтении: изменить сохранённое
  состояние можно только через compare-and-set

InMemoryLedgerStore — реализация в памяти процесса.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import ContextManager, Iterator, Optional, Protocol, runtime_checkable

from socialcoin.core.domain.global_state import GlobalConfig
from socialcoin.core.domain.identity import normalize_identity
from socialcoin.core.domain.subject import SubjectState, SubjectStatus
from socialcoin.core.errors import LedgerConflict

logger = logging.getLogger(__name__)


@runtime_checkable
class LedgerStore(Protocol):
    """Хранилище леджера."""

    def get_config(self) -> GlobalConfig:
        ...

    def set_config(self, config: GlobalConfig) -> None:
        ...

    def get_subject(self, subject: str) -> tuple[SubjectState, int]:
        """Снапшот и его версия; неизвестный субъект → UNINITIALIZED, версия 0."""
        ...

    def compare_and_set(self, subject: str, expected_version: int, new_state: SubjectState) -> int:
        """Запись снапшота, если версия не изменилась. Возвращает новую версию.

        Raises:
            LedgerConflict: версия изменилась с момента чтения
        """
        ...

    def subject_lock(self, subject: str) -> ContextManager[None]:
        ...


@dataclass(frozen=True)
class SubjectProfile:
    """Сводка по субъекту (supply и размеры таблиц holders/holding)."""

    subject: str
    status: SubjectStatus
    supply: int
    holder_count: int
    holding_count: int
    backing_value: int


class InMemoryLedgerStore:
    """In-memory LedgerStore с версионированием снапшотов."""

    def __init__(self, config: GlobalConfig):
        self._config = config
        self._subjects: dict[str, tuple[SubjectState, int]] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    # -------------------------------------------------------------------------
    # Global
    # -------------------------------------------------------------------------

    def get_config(self) -> GlobalConfig:
        with self._registry_lock:
            return self._config

    def set_config(self, config: GlobalConfig) -> None:
        with self._registry_lock:
            self._config = config

    # -------------------------------------------------------------------------
    # Subjects
    # -------------------------------------------------------------------------

    def get_subject(self, subject: str) -> tuple[SubjectState, int]:
        subject = normalize_identity(subject)
        with self._registry_lock:
            entry = self._subjects.get(subject)
        if entry is None:
            return SubjectState.uninitialized(subject), 0
        state, version = entry
        # holding изменяем: наружу отдаётся копия
        return state.model_copy(deep=True), version

    def compare_and_set(self, subject: str, expected_version: int, new_state: SubjectState) -> int:
        subject = normalize_identity(subject)
        if new_state.subject != subject:
            raise ValueError(f"Snapshot of {new_state.subject} cannot be stored under {subject}")
        with self._registry_lock:
            current_version = self._subjects.get(subject, (None, 0))[1]
            if current_version != expected_version:
                logger.warning(
                    "Ledger conflict on %s: expected version %d, found %d",
                    subject,
                    expected_version,
                    current_version,
                )
                raise LedgerConflict(
                    f"Subject {subject} changed concurrently: "
                    f"expected version {expected_version}, found {current_version}"
                )
            new_version = current_version + 1
            self._subjects[subject] = (new_state.model_copy(deep=True), new_version)
        return new_version

    @contextmanager
    def subject_lock(self, subject: str) -> Iterator[None]:
        subject = normalize_identity(subject)
        with self._registry_lock:
            lock = self._locks.setdefault(subject, threading.Lock())
        with lock:
            yield

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def list_subjects(self) -> list[str]:
        with self._registry_lock:
            return list(self._subjects)

    def profile(self, subject: str) -> SubjectProfile:
        state, _ = self.get_subject(subject)
        return SubjectProfile(
            subject=state.subject,
            status=state.status,
            supply=state.supply,
            holder_count=state.holder_count,
            holding_count=len(state.holding),
            backing_value=state.backing_value,
        )

    def holders(
        self, subject: str, cursor: Optional[str] = None, limit: Optional[int] = None
    ) -> tuple[list[str], Optional[str]]:
        """Страница держателей. Курсор — смещение в отсортированном списке."""
        state, _ = self.get_subject(subject)
        return _paginate(state.holders, cursor, limit)

    def holding(
        self, subject: str, cursor: Optional[str] = None, limit: Optional[int] = None
    ) -> tuple[list[tuple[str, int]], Optional[str]]:
        """Страница балансов (holder, shares)."""
        state, _ = self.get_subject(subject)
        entries = sorted(state.holding.items())
        return _paginate(entries, cursor, limit)


def _paginate(items: list, cursor: Optional[str], limit: Optional[int]):
    offset = int(cursor) if cursor is not None else 0
    if limit is None:
        page = items[offset:]
    else:
        if limit < 1:
            raise ValueError(f"limit must be >= 1, got {limit}")
        page = items[offset : offset + limit]
    next_offset = offset + len(page)
    next_cursor = str(next_offset) if next_offset < len(items) else None
    return page, next_cursor
