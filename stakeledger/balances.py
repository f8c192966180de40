"""
balances.py - Ledger Store

Per-(holder, asset) balance records and the primitives that move value:

    credited()  add to balance, creating the record on first credit
    debited()   subtract from balance, bounded by the unlocked portion
    locked()    raise locked_amount, bounded by balance
    released()  lower locked_amount once an unlock request is claimed

All planning methods are pure and return the new BalanceRecord; put() and
delete() are the only mutators. Every record satisfies
0 <= locked_amount <= balance.
"""

from __future__ import annotations
from collections import defaultdict
from dataclasses import replace
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from .core import (
    BalanceRecord, ZERO,
    InsufficientFunds, InsufficientLocked, InvalidArgument, RecordNotFound,
)


def _require_positive(amount: Decimal) -> None:
    if amount <= ZERO:
        raise InvalidArgument(f"amount must be positive, got {amount}")


class BalanceStore:
    """Keyed table of BalanceRecord rows with an asset -> holders index."""

    def __init__(self):
        self._records: Dict[Tuple[str, str], BalanceRecord] = {}
        # Inverted index: asset -> set of holders with a record
        self._holders_by_asset: Dict[str, set] = defaultdict(set)

    def __len__(self) -> int:
        return len(self._records)

    def find(self, holder: str, code: str) -> Optional[BalanceRecord]:
        return self._records.get((holder, code))

    def get(self, holder: str, code: str) -> BalanceRecord:
        """
        Raises:
            RecordNotFound: If the holder has no record for the asset
        """
        record = self._records.get((holder, code))
        if record is None:
            raise RecordNotFound(f"no balance object found for {holder} {code}")
        return record

    def records(self, code: str) -> List[BalanceRecord]:
        """All records for an asset, ordered by holder."""
        return [self._records[(h, code)] for h in sorted(self._holders_by_asset.get(code, ()))]

    def assets_of(self, holder: str) -> List[str]:
        return sorted(code for (h, code) in self._records if h == holder)

    def put(self, record: BalanceRecord) -> None:
        self._records[(record.holder, record.asset)] = record
        self._holders_by_asset[record.asset].add(record.holder)

    def delete(self, holder: str, code: str) -> None:
        del self._records[(holder, code)]
        self._holders_by_asset[code].discard(holder)

    def clone(self) -> BalanceStore:
        cloned = BalanceStore()
        for record in self._records.values():
            cloned.put(record)
        return cloned

    # ========================================================================
    # PLANNING (pure)
    # ========================================================================

    def credited(self, holder: str, code: str, amount: Decimal, storage_payer: str) -> BalanceRecord:
        """
        Add `amount` to the holder's balance.

        A missing record is created with locked_amount = 0 and `storage_payer`
        recorded as the account charged for it.
        """
        _require_positive(amount)
        record = self._records.get((holder, code))
        if record is None:
            return BalanceRecord(
                holder=holder, asset=code, balance=amount,
                locked_amount=ZERO, storage_payer=storage_payer,
            )
        return replace(record, balance=record.balance + amount)

    def debited(self, holder: str, code: str, amount: Decimal) -> BalanceRecord:
        """
        Subtract `amount` from the holder's balance.

        Only the unlocked portion (balance - locked_amount) is spendable;
        locked_amount is left untouched.

        Raises:
            RecordNotFound: If the holder has no record for the asset
            InsufficientFunds: If amount > balance - locked_amount
        """
        _require_positive(amount)
        record = self.get(holder, code)
        if record.unlocked < amount:
            raise InsufficientFunds(
                f"overdrawn balance: {holder} {code} unlocked {record.unlocked} < {amount}"
            )
        return replace(record, balance=record.balance - amount)

    def locked(self, holder: str, code: str, amount: Decimal) -> BalanceRecord:
        """
        Raise locked_amount by `amount`.

        Raises:
            RecordNotFound: If the holder has no record for the asset
            InsufficientFunds: If balance < locked_amount + amount
        """
        _require_positive(amount)
        record = self.get(holder, code)
        if record.balance < record.locked_amount + amount:
            raise InsufficientFunds(
                f"overdrawn balance for lock: {holder} {code} balance {record.balance} < "
                f"locked {record.locked_amount} + {amount}"
            )
        return replace(record, locked_amount=record.locked_amount + amount)

    def released(self, holder: str, code: str, amount: Decimal) -> BalanceRecord:
        """
        Lower locked_amount by `amount`.

        The total balance is cross-checked as well, guarding against a balance
        reduced by other means after the unlock request was filed.

        Raises:
            RecordNotFound: If the holder has no record for the asset
            InsufficientFunds: If balance < amount
            InsufficientLocked: If locked_amount < amount
        """
        _require_positive(amount)
        record = self.get(holder, code)
        if record.balance < amount:
            raise InsufficientFunds(
                f"overdrawn locked balance: {holder} {code} balance {record.balance} < {amount}"
            )
        if record.locked_amount < amount:
            raise InsufficientLocked(
                f"overdrawn locked balance: {holder} {code} locked {record.locked_amount} < {amount}"
            )
        return replace(record, locked_amount=record.locked_amount - amount)

    def opened(self, holder: str, code: str, storage_payer: str) -> Optional[BalanceRecord]:
        """Zero record for a holder without one; None if a record already exists."""
        if (holder, code) in self._records:
            return None
        return BalanceRecord(holder=holder, asset=code, storage_payer=storage_payer)
