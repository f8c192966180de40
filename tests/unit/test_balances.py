"""
test_balances.py - Unit tests for BalanceStore

Tests cover:
1. credit / debit primitives and the unlocked-only spending rule
2. lock / release bounds
3. open semantics and the asset -> holders index
"""

import pytest
from decimal import Decimal

from stakeledger.balances import BalanceStore
from stakeledger.core import (
    BalanceRecord, InsufficientFunds, InsufficientLocked, InvalidArgument,
    RecordNotFound,
)


@pytest.fixture
def store():
    store = BalanceStore()
    store.put(BalanceRecord("alice", "X", Decimal("200"), Decimal("150"), "alice"))
    return store


class TestCredit:

    def test_credit_creates_record(self):
        store = BalanceStore()
        record = store.credited("bob", "X", Decimal("5"), "payer")
        assert record == BalanceRecord("bob", "X", Decimal("5"), Decimal("0"), "payer")
        assert store.find("bob", "X") is None

    def test_credit_adds_to_existing(self, store):
        record = store.credited("alice", "X", Decimal("5"), "ignored")
        assert record.balance == Decimal("205")
        assert record.locked_amount == Decimal("150")
        assert record.storage_payer == "alice"

    def test_credit_non_positive_raises(self, store):
        with pytest.raises(InvalidArgument):
            store.credited("alice", "X", Decimal("0"), "alice")


class TestDebit:

    def test_debit_spends_unlocked_only(self, store):
        assert store.debited("alice", "X", Decimal("50")).balance == Decimal("150")
        with pytest.raises(InsufficientFunds, match="overdrawn balance"):
            store.debited("alice", "X", Decimal("51"))

    def test_debit_keeps_locked_amount(self, store):
        assert store.debited("alice", "X", Decimal("10")).locked_amount == Decimal("150")

    def test_debit_missing_record_raises(self, store):
        with pytest.raises(RecordNotFound, match="no balance object found"):
            store.debited("bob", "X", Decimal("1"))


class TestLockRelease:

    def test_lock_fits_under_balance(self, store):
        assert store.locked("alice", "X", Decimal("50")).locked_amount == Decimal("200")
        with pytest.raises(InsufficientFunds):
            store.locked("alice", "X", Decimal("51"))

    def test_release(self, store):
        record = store.released("alice", "X", Decimal("100"))
        assert record.locked_amount == Decimal("50")
        assert record.balance == Decimal("200")

    def test_release_more_than_locked_raises(self, store):
        with pytest.raises(InsufficientLocked):
            store.released("alice", "X", Decimal("151"))

    def test_release_checks_total_balance_first(self):
        store = BalanceStore()
        # Not reachable through the ledger; exercises the balance cross-check.
        store.put(BalanceRecord("alice", "X", Decimal("10"), Decimal("50")))
        with pytest.raises(InsufficientFunds):
            store.released("alice", "X", Decimal("20"))


class TestTable:

    def test_open_only_when_absent(self, store):
        assert store.opened("alice", "X", "bob") is None
        record = store.opened("bob", "X", "alice")
        assert record.is_empty()
        assert record.storage_payer == "alice"

    def test_records_sorted_by_holder(self, store):
        store.put(BalanceRecord("aaron", "X", Decimal("1")))
        store.put(BalanceRecord("zed", "Y", Decimal("1")))
        assert [r.holder for r in store.records("X")] == ["aaron", "alice"]
        assert store.records("Z") == []

    def test_delete_updates_index(self, store):
        store.delete("alice", "X")
        assert store.find("alice", "X") is None
        assert store.records("X") == []
        assert len(store) == 0

    def test_assets_of(self, store):
        store.put(BalanceRecord("alice", "A", Decimal("1")))
        assert store.assets_of("alice") == ["A", "X"]

    def test_clone_is_independent(self, store):
        cloned = store.clone()
        cloned.delete("alice", "X")
        assert store.find("alice", "X") is not None
