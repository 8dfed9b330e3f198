"""
Тесты для InMemoryLedgerStore

Проверяет:
1. Неизвестный субъект → UNINITIALIZED снапшот версии 0
2. compare-and-set: версия растёт, устаревшая версия → LedgerConflict
3. Постраничные holders/holding
4. Global config
"""

import logging
import threading

import pytest

from socialcoin.core.domain import GlobalConfig, SubjectState, SubjectStatus, normalize_identity
from socialcoin.core.errors import LedgerConflict
from socialcoin.ledger import InMemoryLedgerStore, LedgerStore

ADMIN = normalize_identity("0xad")
ALICE = normalize_identity("0xa11ce")
BOB = normalize_identity("0xb0b")


@pytest.fixture
def store() -> InMemoryLedgerStore:
    return InMemoryLedgerStore(GlobalConfig(admin=ADMIN, protocol_fee_destination=ADMIN))


def active(subject, holding):
    return SubjectState(
        subject=subject,
        status=SubjectStatus.ACTIVE,
        supply=sum(holding.values()),
        holding=holding,
    )


class TestSnapshots:
    """Тесты для get_subject / compare_and_set"""

    def test_implements_protocol(self, store):
        assert isinstance(store, LedgerStore)

    def test_unknown_subject(self, store):
        state, version = store.get_subject("0xa11ce")
        assert version == 0
        assert state.subject == ALICE
        assert state.status == SubjectStatus.UNINITIALIZED
        assert store.list_subjects() == []

    def test_compare_and_set_increments_version(self, store):
        assert store.compare_and_set(ALICE, 0, active(ALICE, {ALICE: 1})) == 1
        assert store.compare_and_set(ALICE, 1, active(ALICE, {ALICE: 2})) == 2
        state, version = store.get_subject(ALICE)
        assert version == 2
        assert state.supply == 2
        assert store.list_subjects() == [ALICE]

    def test_stale_version_conflict(self, store, caplog):
        store.compare_and_set(ALICE, 0, active(ALICE, {ALICE: 1}))
        with caplog.at_level(logging.WARNING, logger="socialcoin.ledger.store"):
            with pytest.raises(LedgerConflict):
                store.compare_and_set(ALICE, 0, active(ALICE, {ALICE: 5}))
        assert "Ledger conflict" in caplog.text
        state, version = store.get_subject(ALICE)
        assert (state.supply, version) == (1, 1)

    def test_returned_snapshot_is_detached(self, store):
        """Изменение полученного снапшота не меняет хранилище"""
        store.compare_and_set(ALICE, 0, active(ALICE, {ALICE: 1}))
        state, _ = store.get_subject(ALICE)
        state.holding[BOB] = 99

        stored, version = store.get_subject(ALICE)
        assert stored.holding == {ALICE: 1}
        assert sum(stored.holding.values()) == stored.supply
        assert version == 1

    def test_written_snapshot_is_detached(self, store):
        """Снапшот, переданный в compare_and_set, дальше не связан с хранилищем"""
        state = active(ALICE, {ALICE: 1})
        store.compare_and_set(ALICE, 0, state)
        state.holding[ALICE] = 7

        assert store.get_subject(ALICE)[0].holding == {ALICE: 1}

    def test_subject_mismatch(self, store):
        with pytest.raises(ValueError):
            store.compare_and_set(BOB, 0, active(ALICE, {ALICE: 1}))

    def test_short_identity_accepted(self, store):
        store.compare_and_set("0xA11CE", 0, active(ALICE, {ALICE: 1}))
        assert store.get_subject(ALICE)[1] == 1

    def test_subject_lock_serializes(self, store):
        """Чтение-изменение-запись под lock не теряет обновлений"""
        store.compare_and_set(ALICE, 0, active(ALICE, {ALICE: 1}))

        def bump():
            for _ in range(50):
                with store.subject_lock(ALICE):
                    state, version = store.get_subject(ALICE)
                    store.compare_and_set(
                        ALICE, version, active(ALICE, {ALICE: state.supply + 1})
                    )

        threads = [threading.Thread(target=bump) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        state, version = store.get_subject(ALICE)
        assert state.supply == 201
        assert version == 201


class TestQueries:
    """Тесты для profile / holders / holding"""

    @pytest.fixture
    def populated(self, store):
        holders = {normalize_identity(hex(i)): i for i in range(1, 6)}
        store.compare_and_set(ALICE, 0, active(ALICE, holders))
        return store

    def test_profile(self, populated):
        profile = populated.profile(ALICE)
        assert profile.supply == 15
        assert profile.holder_count == 5
        assert profile.holding_count == 5
        assert profile.status == SubjectStatus.ACTIVE

    def test_holders_pagination(self, populated):
        first, cursor = populated.holders(ALICE, limit=2)
        second, cursor2 = populated.holders(ALICE, cursor=cursor, limit=2)
        third, cursor3 = populated.holders(ALICE, cursor=cursor2, limit=2)
        assert len(first) == len(second) == 2
        assert len(third) == 1
        assert cursor3 is None
        assert first + second + third == sorted(first + second + third)

    def test_holding_pagination(self, populated):
        entries, cursor = populated.holding(ALICE)
        assert cursor is None
        assert sum(shares for _, shares in entries) == 15

    def test_invalid_limit(self, populated):
        with pytest.raises(ValueError):
            populated.holders(ALICE, limit=0)


class TestGlobalConfig:
    def test_set_config(self, store):
        updated = GlobalConfig(admin=ADMIN, protocol_fee_destination=BOB, protocol_fee_rate=0)
        store.set_config(updated)
        assert store.get_config().protocol_fee_rate == 0
        assert store.get_config().protocol_fee_destination == BOB
