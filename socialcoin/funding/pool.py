"""
FundingPool — in-memory источник funding units

Роль внешнего funding source:
- Перечисление доступных units владельца (постранично)
- merge/split units
- mint новых units (сдача, выплаты sell, комиссии)
- Scoped reservation: units, выделенные под сделку, скрыты от других
  сделок, а при любом выходе без commit возвращаются владельцу нетронутыми

Carve (merge + split) внутри reservation выполняется над staged копией;
пул меняется только в commit(), одним шагом под lock.
"""

import itertools
import logging
import threading
from typing import Iterable, Optional, Protocol, runtime_checkable

from socialcoin.core.domain.funding import FundingPage, FundingUnit
from socialcoin.core.domain.identity import normalize_identity
from socialcoin.core.errors import InsufficientFunds, LedgerConflict, PermissionDenied
from socialcoin.core.math.checked import checked_add, validate_u64

logger = logging.getLogger(__name__)


# =============================================================================
# PROTOCOL
# =============================================================================


@runtime_checkable
class FundingSource(Protocol):
    """Постраничное перечисление доступных units владельца."""

    def list_units(
        self, owner: str, cursor: Optional[str] = None, limit: int = 50
    ) -> FundingPage:
        """
        Страница доступных (не зарезервированных) units.

        cursor=None — первая страница; FundingPage.next_cursor=None — последняя.
        """
        ...


# =============================================================================
# RESERVATION
# =============================================================================


class FundingReservation:
    """
    Резерв units под одну сделку.

    Использование:
        with pool.reserve(owner, unit_ids) as reservation:
            reservation.merge()
            zero, payment = reservation.split([0, total])
            ...  # apply в леджере
            reservation.consume(payment.unit_id)
            reservation.commit()

    Выход из блока без commit() (включая исключение) снимает резерв:
    доступный набор units владельца остаётся ровно прежним.
    """

    def __init__(self, pool: "FundingPool", owner: str, units: list[FundingUnit]):
        self._pool = pool
        self.owner = owner
        self.units = tuple(units)
        self._staged_value = sum(unit.value for unit in units)
        self._merged = len(units) <= 1
        self._pieces: dict[str, FundingUnit] = {}
        self._consumed: set[str] = set()
        self._committed = False
        self._released = False

    def __enter__(self) -> "FundingReservation":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if not self._committed:
            self.release()
        return False

    @property
    def unit_ids(self) -> list[str]:
        return [unit.unit_id for unit in self.units]

    @property
    def remaining_value(self) -> int:
        """Value, оставшийся в primary unit после split (будущая сдача)."""
        return self._staged_value

    @property
    def committed(self) -> bool:
        return self._committed

    def merge(self) -> int:
        """
        Слияние всех зарезервированных units в первый (staged).

        Returns:
            Суммарный value после слияния
        """
        self._check_open()
        self._merged = True
        return self._staged_value

    def split(self, amounts: Iterable[int]) -> list[FundingUnit]:
        """
        Отделение кусков заданного value от primary unit (staged).

        Raises:
            LedgerConflict: Если units не были слиты (больше одного unit)
            InsufficientFunds: Если сумма кусков превышает staged value
        """
        self._check_open()
        if not self._merged:
            raise LedgerConflict("reserved units must be merged before split")

        amounts = [validate_u64(amount, "split amount") for amount in amounts]
        requested = 0
        for amount in amounts:
            requested = checked_add(requested, amount)
        if requested > self._staged_value:
            raise InsufficientFunds(
                available=self._staged_value, required=requested, owner=self.owner
            )

        pieces = [
            FundingUnit(unit_id=self._pool._next_id(), owner=self.owner, value=amount)
            for amount in amounts
        ]
        self._staged_value -= requested
        for piece in pieces:
            self._pieces[piece.unit_id] = piece
        return pieces

    def consume(self, unit_id: str) -> FundingUnit:
        """Пометить staged кусок как переданный в леджер."""
        self._check_open()
        if unit_id not in self._pieces:
            raise KeyError(f"Unknown staged funding piece: {unit_id}")
        if unit_id in self._consumed:
            raise LedgerConflict(f"Funding piece {unit_id} already consumed")
        self._consumed.add(unit_id)
        return self._pieces[unit_id]

    def commit(self) -> Optional[FundingUnit]:
        """
        Публикация результата сделки в пуле.

        Исходные units удаляются; сдача (если > 0) и непотраченные куски
        возвращаются владельцу новыми units.

        Returns:
            Unit сдачи или None
        """
        self._check_open()
        returned = [
            piece
            for unit_id, piece in self._pieces.items()
            if unit_id not in self._consumed and piece.value > 0
        ]
        change_unit = self._pool._settle(self, returned, self._staged_value)
        self._committed = True
        return change_unit

    def release(self) -> None:
        """Снять резерв без изменений в пуле."""
        if self._committed or self._released:
            return
        self._pool._release(self)
        self._released = True

    def _check_open(self) -> None:
        if self._committed:
            raise LedgerConflict("reservation already committed")
        if self._released:
            raise LedgerConflict("reservation already released")


# =============================================================================
# POOL
# =============================================================================


class FundingPool:
    """
    In-memory пул funding units всех владельцев.

    Порядок перечисления — порядок создания units (insertion order).
    Потокобезопасен: все мутации под одним lock.
    """

    def __init__(self, id_prefix: str = "unit"):
        self._id_prefix = id_prefix
        self._ids = itertools.count(1)
        self._units: dict[str, FundingUnit] = {}
        self._reserved: set[str] = set()
        self._lock = threading.RLock()

    def _next_id(self) -> str:
        with self._lock:
            return f"{self._id_prefix}-{next(self._ids):06d}"

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get(self, unit_id: str) -> FundingUnit:
        with self._lock:
            return self._units[unit_id]

    def units_of(self, owner: str, include_reserved: bool = False) -> list[FundingUnit]:
        owner = normalize_identity(owner)
        with self._lock:
            return [
                unit
                for unit in self._units.values()
                if unit.owner == owner and (include_reserved or unit.unit_id not in self._reserved)
            ]

    def list_units(
        self, owner: str, cursor: Optional[str] = None, limit: int = 50
    ) -> FundingPage:
        """
        Страница доступных units владельца.

        Курсор — смещение в текущем списке доступных units.
        """
        if limit < 1:
            raise ValueError(f"limit must be >= 1, got {limit}")
        offset = int(cursor) if cursor is not None else 0
        available = self.units_of(owner)
        page = available[offset : offset + limit]
        next_offset = offset + len(page)
        next_cursor = str(next_offset) if next_offset < len(available) else None
        return FundingPage(units=page, next_cursor=next_cursor)

    def balance(self, owner: str, include_reserved: bool = False) -> int:
        return sum(unit.value for unit in self.units_of(owner, include_reserved))

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def mint(self, owner: str, value: int) -> FundingUnit:
        """Новый unit владельцу (выплата, сдача, начальный баланс)."""
        validate_u64(value, "value")
        unit = FundingUnit(unit_id=self._next_id(), owner=owner, value=value)
        with self._lock:
            self._units[unit.unit_id] = unit
        return unit

    def merge(self, owner: str, primary_id: str, other_ids: Iterable[str]) -> FundingUnit:
        """
        Слияние units в primary (primary сохраняет свой id).

        Raises:
            PermissionDenied: Если unit чужой
            LedgerConflict: Если unit зарезервирован или отсутствует
        """
        owner = normalize_identity(owner)
        other_ids = list(other_ids)
        with self._lock:
            units = self._take_available(owner, [primary_id, *other_ids])
            total = 0
            for unit in units:
                total = checked_add(total, unit.value)
            for unit_id in other_ids:
                del self._units[unit_id]
            merged = FundingUnit(unit_id=primary_id, owner=owner, value=total)
            self._units[primary_id] = merged
            return merged

    def split(self, unit_id: str, amounts: Iterable[int]) -> list[FundingUnit]:
        """
        Отделение новых units заданного value от существующего.

        Returns:
            Новые units в порядке amounts
        """
        amounts = [validate_u64(amount, "split amount") for amount in amounts]
        with self._lock:
            source = self._units.get(unit_id)
            if source is None or unit_id in self._reserved:
                raise LedgerConflict(f"Funding unit {unit_id} is not available")
            requested = sum(amounts)
            if requested > source.value:
                raise InsufficientFunds(
                    available=source.value, required=requested, owner=source.owner
                )
            self._units[unit_id] = source.model_copy(update={"value": source.value - requested})
            pieces = []
            for amount in amounts:
                piece = FundingUnit(unit_id=self._next_id(), owner=source.owner, value=amount)
                self._units[piece.unit_id] = piece
                pieces.append(piece)
            return pieces

    def reserve(self, owner: str, unit_ids: Iterable[str]) -> FundingReservation:
        """
        Резерв units под сделку.

        Raises:
            PermissionDenied: Если unit чужой
            LedgerConflict: Если unit уже зарезервирован или потрачен
        """
        owner = normalize_identity(owner)
        unit_ids = list(unit_ids)
        with self._lock:
            units = self._take_available(owner, unit_ids)
            self._reserved.update(unit_ids)
        logger.debug("Reserved %d funding units for %s", len(units), owner)
        return FundingReservation(self, owner, units)

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _take_available(self, owner: str, unit_ids: list[str]) -> list[FundingUnit]:
        if len(set(unit_ids)) != len(unit_ids):
            raise LedgerConflict(f"Duplicate funding unit ids: {unit_ids}")
        units = []
        for unit_id in unit_ids:
            unit = self._units.get(unit_id)
            if unit is None or unit_id in self._reserved:
                raise LedgerConflict(f"Funding unit {unit_id} is not available")
            if unit.owner != owner:
                raise PermissionDenied(f"Funding unit {unit_id} is owned by {unit.owner}, not {owner}")
            units.append(unit)
        return units

    def _release(self, reservation: FundingReservation) -> None:
        with self._lock:
            self._reserved.difference_update(reservation.unit_ids)
        logger.debug("Released %d funding units for %s", len(reservation.units), reservation.owner)

    def _settle(
        self,
        reservation: FundingReservation,
        returned: list[FundingUnit],
        change: int,
    ) -> Optional[FundingUnit]:
        with self._lock:
            for unit_id in reservation.unit_ids:
                self._reserved.discard(unit_id)
                del self._units[unit_id]
            for piece in returned:
                self._units[piece.unit_id] = piece
            change_unit = None
            if change > 0:
                change_unit = FundingUnit(
                    unit_id=self._next_id(), owner=reservation.owner, value=change
                )
                self._units[change_unit.unit_id] = change_unit
        return change_unit
