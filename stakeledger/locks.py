"""
locks.py - Lock Cache and Lock Aggregate

Two derived views over the locked_amount held in balance records:

1. Lock cache: an asset-scoped table of LockEntry rows mirroring each holder's
   locked_amount, so holders with locks can be enumerated without scanning
   every balance record.
2. Lock aggregate: one LockTotal per asset, the sum of all locked amounts.

Neither view is authoritative. The Ledger writes both in the same step as the
balance record change they mirror.
"""

from __future__ import annotations
from dataclasses import replace
from decimal import Decimal
from typing import Dict, List, Optional

from .core import (
    LockEntry, LockTotal, LockPositions, ZERO,
    AssetNotFound, DuplicateAsset, InsufficientLocked, RecordNotFound,
)


class LockIndex:
    """Lock cache entries (asset -> holder -> LockEntry) and per-asset totals."""

    def __init__(self):
        self._entries: Dict[str, Dict[str, LockEntry]] = {}
        self._totals: Dict[str, LockTotal] = {}

    # ========================================================================
    # LOCK AGGREGATE
    # ========================================================================

    def has_total(self, code: str) -> bool:
        return code in self._totals

    def total(self, code: str) -> LockTotal:
        """
        Raises:
            AssetNotFound: If no aggregate was created for the asset
        """
        total = self._totals.get(code)
        if total is None:
            raise AssetNotFound(f"lock aggregate does not exist for {code}")
        return total

    def new_total(self, code: str) -> LockTotal:
        if code in self._totals:
            raise DuplicateAsset(f"lock aggregate already exists for {code}")
        return LockTotal(asset=code)

    def total_added(self, code: str, amount: Decimal) -> LockTotal:
        total = self.total(code)
        return replace(total, total_locked=total.total_locked + amount)

    def total_removed(self, code: str, amount: Decimal) -> LockTotal:
        total = self.total(code)
        if total.total_locked < amount:
            raise InsufficientLocked(
                f"lock aggregate for {code} would go negative: {total.total_locked} < {amount}"
            )
        return replace(total, total_locked=total.total_locked - amount)

    def put_total(self, total: LockTotal) -> None:
        self._totals[total.asset] = total

    # ========================================================================
    # LOCK CACHE
    # ========================================================================

    def find_entry(self, holder: str, code: str) -> Optional[LockEntry]:
        return self._entries.get(code, {}).get(holder)

    def get_entry(self, holder: str, code: str) -> LockEntry:
        """
        Raises:
            RecordNotFound: If the holder has no lock cache entry for the asset
        """
        entry = self.find_entry(holder, code)
        if entry is None:
            raise RecordNotFound(f"lock entry not found for {holder} {code}")
        return entry

    def entries(self, code: str) -> List[LockEntry]:
        table = self._entries.get(code, {})
        return [table[h] for h in sorted(table)]

    def positions(self, code: str) -> LockPositions:
        """Holders with a nonzero lock and their locked amounts."""
        return {
            e.holder: e.locked_amount
            for e in self.entries(code)
            if e.locked_amount != ZERO
        }

    def entry_added(self, holder: str, code: str, amount: Decimal, storage_payer: str) -> LockEntry:
        """Add to the holder's cached lock, creating the entry if absent."""
        entry = self.find_entry(holder, code)
        if entry is None:
            return LockEntry(holder=holder, asset=code, locked_amount=amount, storage_payer=storage_payer)
        return replace(entry, locked_amount=entry.locked_amount + amount)

    def entry_removed(self, holder: str, code: str, amount: Decimal) -> LockEntry:
        """
        Raises:
            RecordNotFound: If the holder has no lock cache entry
            InsufficientLocked: If the cached lock is smaller than amount
        """
        entry = self.get_entry(holder, code)
        if entry.locked_amount < amount:
            raise InsufficientLocked(
                f"cached lock for {holder} {code} would go negative: {entry.locked_amount} < {amount}"
            )
        return replace(entry, locked_amount=entry.locked_amount - amount)

    def opened_entry(self, holder: str, code: str, storage_payer: str) -> Optional[LockEntry]:
        """Zero entry for a holder without one; None if it already exists."""
        if self.find_entry(holder, code) is not None:
            return None
        return LockEntry(holder=holder, asset=code, storage_payer=storage_payer)

    def put_entry(self, entry: LockEntry) -> None:
        self._entries.setdefault(entry.asset, {})[entry.holder] = entry

    def delete_entry(self, holder: str, code: str) -> None:
        del self._entries[code][holder]

    def clone(self) -> LockIndex:
        cloned = LockIndex()
        cloned._entries = {code: dict(table) for code, table in self._entries.items()}
        cloned._totals = dict(self._totals)
        return cloned
