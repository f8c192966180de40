"""
ledger.py - Stateful Locked-Balance Ledger

The Ledger class is the central state manager. It is the only module that
mutates the registry, balance store, lock index and unlock queue.

Key responsibilities:
    - Implements the LedgerView protocol for read-only access
    - Exposes every action (create, issue, retire, transfer, lock,
      request_unlock, claim, cancel_unlock, open, close, fee/delay config)
    - Applies each action atomically: all preconditions are checked against
      pure planning methods first, then every mutation is committed
    - Tracks logical time and keeps an audit log of applied actions
"""

from __future__ import annotations
from datetime import datetime, timedelta
from decimal import Decimal
from functools import wraps
from typing import Any, Callable, Dict, List, Optional, Set, Union

from .authority import Authority, TrustAllAuthority
from .balances import BalanceStore
from .core import (
    # Types
    Asset, BalanceRecord, UnlockRequest, UnlockState, ActionRecord,
    LockPositions, ZERO,
    # Exceptions
    LedgerError, InvalidOperation, AccountNotRegistered, NotEmpty,
    InsufficientLocked, Unauthorized,
    # Helpers
    validate_amount, validate_memo, freeze_params, maturity_after,
)
from .locks import LockIndex
from .registry import AssetRegistry
from .scheduler import ClaimScheduler
from .unlock_queue import UnlockQueue


def _action(name: str) -> Callable:
    """Report rejections of an action when verbose; the exception always propagates."""
    def decorate(method: Callable) -> Callable:
        @wraps(method)
        def wrapper(self: Ledger, *args, **kwargs):
            try:
                return method(self, *args, **kwargs)
            except LedgerError as e:
                if self.verbose:
                    print(f"✗ REJECTED {name}: {type(e).__name__}: {e}")
                raise
        return wrapper
    return decorate


class Ledger:
    """
    Fungible-value ledger with lockable balances and delayed unlocks.

    Implements the LedgerView protocol, so schedulers and reports can be
    handed the ledger without reaching for its actions.

    Design Principles:
        - Validate, then commit: every action computes all of its new records
          before writing any of them, so a rejection leaves no trace.
        - Always logs: every applied action is recorded in action_log.
        - Locked funds stay locked until claimed: request_unlock only files a
          request; claim is the only action that lowers locked_amount.

    Thread Safety:
        Not thread-safe. The host is expected to run one action at a time.

    Example:
        ledger = Ledger("boatwingio")
        ledger.register_account("issuer")
        ledger.register_account("alice")
        ledger.create_asset("issuer", "BOAT", Decimal("1000"), precision=0)
        ledger.issue("issuer", "BOAT", Decimal("500"))
        ledger.transfer("issuer", "alice", "BOAT", Decimal("200"))
        ledger.lock("alice", "BOAT", Decimal("150"))
    """

    def __init__(
        self,
        name: str,
        initial_time: Optional[datetime] = None,
        verbose: bool = True,
        authority: Optional[Authority] = None,
        scheduler: Optional[ClaimScheduler] = None,
    ):
        """
        Create a ledger.

        Args:
            name: Ledger identifier; also the contract account that may create assets
            initial_time: Starting time for the ledger (default: 1970-01-01)
            verbose: Print applied and rejected actions (default: True)
            authority: Identity collaborator (default: TrustAllAuthority)
            scheduler: Optional automatic-claim scheduler cancelled by cancel_unlock
        """
        self.name = name
        self.registry = AssetRegistry()
        self.store = BalanceStore()
        self.locks = LockIndex()
        self.queue = UnlockQueue()
        self.registered_accounts: Set[str] = {name}
        self.action_log: List[ActionRecord] = []
        self._current_time: datetime = initial_time or datetime(1970, 1, 1)
        self.verbose = verbose
        self.authority: Authority = authority or TrustAllAuthority()
        self.scheduler = scheduler
        self._next_sequence: int = 0

    # ========================================================================
    # LedgerView PROTOCOL IMPLEMENTATION (read-only methods)
    # ========================================================================

    @property
    def current_time(self) -> datetime:
        """Current logical time of the ledger."""
        return self._current_time

    def get_asset(self, code: str) -> Asset:
        """
        Raises:
            AssetNotFound: If the asset is not registered
        """
        return self.registry.get(code)

    def get_balance(self, holder: str, code: str) -> Decimal:
        """
        Total balance (locked and unlocked) of a holder.

        Returns Decimal("0") if the holder has no record for the asset.

        Raises:
            AssetNotFound: If the asset is not registered
        """
        self.registry.get(code)
        record = self.store.find(holder, code)
        return record.balance if record else ZERO

    def get_locked(self, holder: str, code: str) -> Decimal:
        """locked_amount from the holder's balance record (0 if none)."""
        self.registry.get(code)
        record = self.store.find(holder, code)
        return record.locked_amount if record else ZERO

    def get_unlock_request(self, holder: str, code: str) -> Optional[UnlockRequest]:
        self.registry.get(code)
        return self.queue.find(holder, code)

    # ========================================================================
    # QUERIES
    # ========================================================================

    def get_supply(self, code: str) -> Decimal:
        """Current circulating supply of an asset."""
        return self.registry.get(code).circulating_supply

    def get_max_supply(self, code: str) -> Decimal:
        return self.registry.get(code).max_supply

    def get_record(self, holder: str, code: str) -> Optional[BalanceRecord]:
        return self.store.find(holder, code)

    def get_unlocked_balance(self, holder: str, code: str) -> Decimal:
        """The spendable portion of a holder's balance."""
        self.registry.get(code)
        record = self.store.find(holder, code)
        return record.unlocked if record else ZERO

    def get_cached_lock(self, holder: str, code: str) -> Decimal:
        """Holder's locked amount as recorded in the lock cache (0 if no entry)."""
        self.registry.get(code)
        entry = self.locks.find_entry(holder, code)
        return entry.locked_amount if entry else ZERO

    def total_locked(self, code: str) -> Decimal:
        """Sum of every holder's locked amount for an asset."""
        return self.locks.total(code).total_locked

    def locked_holders(self, code: str) -> LockPositions:
        """Holders with a nonzero lock, read from the lock cache."""
        self.registry.get(code)
        return self.locks.positions(code)

    def get_unlock_state(self, holder: str, code: str) -> UnlockState:
        self.registry.get(code)
        return self.queue.state(holder, code, self._current_time)

    def unlock_requests(self, code: str) -> List[UnlockRequest]:
        self.registry.get(code)
        return self.queue.requests(code)

    def list_accounts(self) -> Set[str]:
        return self.registered_accounts.copy()

    def list_assets(self) -> List[str]:
        return self.registry.codes()

    def is_registered(self, account: str) -> bool:
        return account in self.registered_accounts

    # ========================================================================
    # TIME MANAGEMENT
    # ========================================================================

    def advance_time(self, new_time: datetime) -> None:
        """
        Advance the ledger's logical clock.

        Raises:
            ValueError: If new_time is before the current time
        """
        if new_time < self._current_time:
            raise ValueError(
                f"Cannot move time backwards: {new_time} < {self._current_time}"
            )
        self._current_time = new_time

    def advance_by(self, delta: timedelta) -> None:
        self.advance_time(self._current_time + delta)

    # ========================================================================
    # ACCOUNT REGISTRATION
    # ========================================================================

    def register_account(self, account: str) -> str:
        """
        Register an account so that it can be named by actions.

        Raises:
            ValueError: If the account name is empty or already registered
        """
        if not account or not account.strip():
            raise ValueError("Account name cannot be empty")
        if account in self.registered_accounts:
            raise ValueError(f"Account {account} already registered")
        self.registered_accounts.add(account)
        return account

    def _require_account(self, account: str, role: str = "account") -> None:
        if account not in self.registered_accounts:
            raise AccountNotRegistered(f"{role} account does not exist: {account}")

    # ========================================================================
    # AUDIT LOG
    # ========================================================================

    def _record(self, action: str, **params: Any) -> ActionRecord:
        record = ActionRecord(
            ledger_name=self.name,
            sequence_number=self._next_sequence,
            action=action,
            params=freeze_params(**params),
            timestamp=self._current_time,
        )
        self._next_sequence += 1
        self.action_log.append(record)
        if self.verbose:
            print(repr(record))
        return record

    # ========================================================================
    # ASSET REGISTRY ACTIONS
    # ========================================================================

    @_action("create")
    def create_asset(
        self,
        issuer: str,
        code: str,
        max_supply: Decimal,
        precision: int = 4,
    ) -> Asset:
        """
        Register a new asset and its lock aggregate.

        Authorized by the ledger's own contract account.

        Raises:
            Unauthorized: If the contract account did not authorize
            AccountNotRegistered: If the issuer is unknown
            InvalidArgument: Malformed code/precision or non-positive max supply
            DuplicateAsset: If the code is already registered
        """
        self.authority.require_auth(self.name)
        self._require_account(issuer, "issuer")
        asset = self.registry.new_asset(code, precision, max_supply, issuer)
        total = self.locks.new_total(code)

        self.registry.put(asset)
        self.locks.put_total(total)
        self._record("create", issuer=issuer, asset=code,
                     max_supply=asset.max_supply, precision=precision)
        return asset

    @_action("setdelay")
    def set_unlock_delay(self, code: str, delay: Union[timedelta, int]) -> Asset:
        """
        Set the waiting period applied to unlock requests filed from now on.

        Existing requests keep the maturity time they were filed with.

        Raises:
            AssetNotFound: If the asset is not registered
            Unauthorized: If the issuer did not authorize
            InvalidArgument: Negative or out-of-range delay, or one that would
                             push a request filed now past datetime.max
        """
        asset = self.registry.get(code)
        self.authority.require_auth(asset.issuer)
        updated = self.registry.with_unlock_delay(asset, delay)
        maturity_after(self._current_time, updated.unlock_delay)

        self.registry.put(updated)
        self._record("setdelay", asset=code, delay=updated.unlock_delay)
        return updated

    @_action("settransfee")
    def set_transfer_fee(self, code: str, ratio: int, receiver: str) -> Asset:
        """
        Store transfer fee configuration.

        The ratio and receiver are kept on the asset but no action charges a fee.
        """
        self._require_account(receiver, "receiver")
        asset = self.registry.get(code)
        self.authority.require_auth(asset.issuer)
        updated = self.registry.with_transfer_fee(asset, ratio, receiver)

        self.registry.put(updated)
        self._record("settransfee", asset=code, ratio=ratio, receiver=receiver)
        return updated

    # ========================================================================
    # SUPPLY ACTIONS
    # ========================================================================

    @_action("issue")
    def issue(self, to: str, code: str, amount: Decimal, memo: str = "") -> BalanceRecord:
        """
        Issue new units of an asset.

        Issued funds land in the issuer's own balance; forwarding them to `to`
        is a separate transfer, which lets the issuer apply policy first.

        Raises:
            AccountNotRegistered: If `to` is unknown
            InvalidArgument: Bad amount or memo
            AssetNotFound: If the asset is not registered
            Unauthorized: If the issuer did not authorize
            SupplyExceeded: If amount > max_supply - circulating_supply
        """
        self._require_account(to, "to")
        validate_memo(memo)
        asset = self.registry.get(code)
        self.authority.require_auth(asset.issuer)
        amount = validate_amount(amount, asset, "issue")

        updated = self.registry.issued(asset, amount)
        credited = self.store.credited(asset.issuer, code, amount, asset.issuer)

        self.registry.put(updated)
        self.store.put(credited)
        self._record("issue", to=to, asset=code, amount=amount, memo=memo)
        return credited

    @_action("retire")
    def retire(self, code: str, amount: Decimal, memo: str = "") -> BalanceRecord:
        """
        Remove units from circulation out of the issuer's unlocked balance.

        Raises:
            InvalidArgument: Bad amount or memo
            AssetNotFound: If the asset is not registered
            Unauthorized: If the issuer did not authorize
            RecordNotFound: If the issuer holds no balance record
            InsufficientFunds: If the issuer's unlocked balance is short
        """
        validate_memo(memo)
        asset = self.registry.get(code)
        self.authority.require_auth(asset.issuer)
        amount = validate_amount(amount, asset, "retire")

        debited = self.store.debited(asset.issuer, code, amount)
        updated = self.registry.retired(asset, amount)

        self.registry.put(updated)
        self.store.put(debited)
        self._record("retire", asset=code, amount=amount, memo=memo)
        return debited

    # ========================================================================
    # TRANSFER
    # ========================================================================

    def _require_transfer_auth(self, sender: str, recipient: str) -> None:
        if self.authority.has_auth(sender):
            return
        if self.authority.has_shared_payer(sender, recipient):
            return
        raise Unauthorized(f"missing authority of {sender}")

    @_action("transfer")
    def transfer(
        self,
        sender: str,
        recipient: str,
        code: str,
        amount: Decimal,
        memo: str = "",
    ) -> BalanceRecord:
        """
        Move `amount` from sender's unlocked balance to recipient.

        The recipient pays for a newly created record if it also authorized
        the action; otherwise the sender does.

        Raises:
            InvalidOperation: If sender == recipient
            Unauthorized: If neither the sender nor a shared payer authorized
            AccountNotRegistered: If the recipient is unknown
            AssetNotFound: If the asset is not registered
            InvalidArgument: Bad amount or memo
            RecordNotFound: If the sender holds no balance record
            InsufficientFunds: If amount > sender's unlocked balance
        """
        if sender == recipient:
            raise InvalidOperation("cannot transfer to self")
        self._require_transfer_auth(sender, recipient)
        self._require_account(recipient, "to")
        asset = self.registry.get(code)
        amount = validate_amount(amount, asset, "transfer")
        validate_memo(memo)

        payer = recipient if self.authority.has_auth(recipient) else sender
        debited = self.store.debited(sender, code, amount)
        credited = self.store.credited(recipient, code, amount, payer)

        self.store.put(debited)
        self.store.put(credited)
        self._record("transfer", sender=sender, recipient=recipient,
                     asset=code, amount=amount, memo=memo)
        return debited

    # ========================================================================
    # LOCK STATE MACHINE
    # ========================================================================

    @_action("stake")
    def lock(self, holder: str, code: str, amount: Decimal) -> BalanceRecord:
        """
        Lock part of a holder's balance.

        Raises locked_amount on the balance record, the holder's lock cache
        entry (created if absent) and the asset's lock aggregate together.

        Raises:
            Unauthorized: If the holder did not authorize
            AssetNotFound: If the asset or its lock aggregate is missing
            InvalidArgument: Bad amount
            RecordNotFound: If the holder has no balance record
            InsufficientFunds: If balance < locked_amount + amount
        """
        self.authority.require_auth(holder)
        asset = self.registry.get(code)
        amount = validate_amount(amount, asset, "lock")

        record = self.store.locked(holder, code, amount)
        entry = self.locks.entry_added(holder, code, amount, holder)
        total = self.locks.total_added(code, amount)

        self.store.put(record)
        self.locks.put_entry(entry)
        self.locks.put_total(total)
        self._record("stake", holder=holder, asset=code, amount=amount)
        return record

    @_action("unstake")
    def request_unlock(self, holder: str, code: str, amount: Decimal) -> UnlockRequest:
        """
        File an unlock request maturing after the asset's unlock delay.

        Locked amounts, the lock cache and the lock aggregate are left
        unchanged; the funds stay locked until the request is claimed.

        Raises:
            Unauthorized: If the holder did not authorize
            AssetNotFound: If the asset is not registered
            InvalidArgument: Bad amount
            RecordNotFound: If the holder has no balance record
            InsufficientLocked: If locked_amount < amount
            DuplicateRequest: If a live request already exists
        """
        self.authority.require_auth(holder)
        asset = self.registry.get(code)
        amount = validate_amount(amount, asset, "unlock")

        record = self.store.get(holder, code)
        if record.locked_amount < amount:
            raise InsufficientLocked(
                f"overdrawn locked balance: {holder} {code} locked {record.locked_amount} < {amount}"
            )
        request = self.queue.new_request(holder, code, amount, self._current_time, asset.unlock_delay)

        self.queue.put(request)
        self._record("unstake", holder=holder, asset=code, amount=amount,
                     maturity_time=request.maturity_time)
        return request

    @_action("refund")
    def claim(self, holder: str, code: str) -> UnlockRequest:
        """
        Release the funds of a matured unlock request.

        Lowers locked_amount on the balance record, the lock cache entry and
        the lock aggregate together, and removes the request.

        Returns the claimed request.

        Raises:
            Unauthorized: If the holder did not authorize
            AssetNotFound: If the asset is not registered
            RequestNotFound: If there is no live request
            NotMatured: If the current time is before maturity_time
            InsufficientFunds: If the holder's balance is below the request amount
        """
        self.authority.require_auth(holder)
        self.registry.get(code)
        request = self.queue.claimable(holder, code, self._current_time)

        record = self.store.released(holder, code, request.amount)
        entry = self.locks.entry_removed(holder, code, request.amount)
        total = self.locks.total_removed(code, request.amount)

        self.store.put(record)
        self.locks.put_entry(entry)
        self.locks.put_total(total)
        self.queue.delete(holder, code)
        self._record("refund", holder=holder, asset=code, amount=request.amount)
        return request

    @_action("cancelrefund")
    def cancel_unlock(self, holder: str, code: str) -> UnlockRequest:
        """
        Abandon a live unlock request without touching locked amounts.

        Any automatic claim jobs scheduled for the holder are cancelled too,
        for every asset and not only `code`, since jobs are keyed by holder.
        Having none scheduled is not an error.

        Raises:
            Unauthorized: If the holder did not authorize
            RequestNotFound: If there is no live request
        """
        self.authority.require_auth(holder)
        request = self.queue.get(holder, code)

        if self.scheduler is not None:
            self.scheduler.cancel(holder)
        self.queue.delete(holder, code)
        self._record("cancelrefund", holder=holder, asset=code, amount=request.amount)
        return request

    # Names used by the original token actions
    stake = lock
    unstake = request_unlock
    refund = claim
    cancel_refund = cancel_unlock

    # ========================================================================
    # ACCOUNT LIFECYCLE
    # ========================================================================

    @_action("open")
    def open(self, holder: str, code: str, storage_payer: str) -> BalanceRecord:
        """
        Create zero balance and lock cache rows for a holder, paid by storage_payer.

        Idempotent: existing rows are left as they are.

        Raises:
            Unauthorized: If storage_payer did not authorize
            AccountNotRegistered: If the holder is unknown
            AssetNotFound: If the asset is not registered
        """
        self.authority.require_auth(storage_payer)
        self._require_account(holder, "owner")
        self.registry.get(code)

        record = self.store.opened(holder, code, storage_payer)
        entry = self.locks.opened_entry(holder, code, storage_payer)

        if record is not None:
            self.store.put(record)
        if entry is not None:
            self.locks.put_entry(entry)
        self._record("open", holder=holder, asset=code, storage_payer=storage_payer)
        return self.store.get(holder, code)

    @_action("close")
    def close(self, holder: str, code: str) -> None:
        """
        Remove a holder's empty balance record and its lock cache entry.

        Raises:
            Unauthorized: If the holder did not authorize
            RecordNotFound: If the holder has no balance record
            NotEmpty: If balance or locked_amount is nonzero
        """
        self.authority.require_auth(holder)
        record = self.store.get(holder, code)
        if not record.is_empty():
            raise NotEmpty(f"cannot close because the balance is not zero: {holder} {code}")
        entry = self.locks.find_entry(holder, code)
        if entry is not None and entry.locked_amount != ZERO:
            raise NotEmpty(f"cannot close because the locked balance is not zero: {holder} {code}")

        self.store.delete(holder, code)
        if entry is not None:
            self.locks.delete_entry(holder, code)
        self._record("close", holder=holder, asset=code)

    # ========================================================================
    # VERIFICATION
    # ========================================================================

    def verify_invariants(self) -> Dict[str, Any]:
        """
        Check the consistency of balances, locks, the lock aggregate and supply.

        For every asset:
        - each record has 0 <= locked_amount <= balance
        - each record's locked_amount equals its lock cache entry (missing = 0)
        - each cache entry without a record holds zero
        - total_locked equals the sum of locked amounts
        - the sum of balances equals circulating supply
        - each live unlock request fits under the holder's locked_amount

        Returns:
            Dict with keys:
            - 'valid': bool - True if no violation was found
            - 'violations': List[Dict] - one entry per violation with a 'check' key

        Example:
            result = ledger.verify_invariants()
            assert result['valid'], result['violations']
        """
        violations: List[Dict[str, Any]] = []

        for code in self.registry.codes():
            asset = self.registry.get(code)
            records = self.store.records(code)
            holders = {r.holder for r in records}
            locked_sum = ZERO
            balance_sum = ZERO

            for record in records:
                locked_sum += record.locked_amount
                balance_sum += record.balance
                if not ZERO <= record.locked_amount <= record.balance:
                    violations.append({
                        'check': 'locked_within_balance',
                        'asset': code,
                        'holder': record.holder,
                        'balance': record.balance,
                        'locked_amount': record.locked_amount,
                    })
                entry = self.locks.find_entry(record.holder, code)
                cached = entry.locked_amount if entry else ZERO
                if cached != record.locked_amount:
                    violations.append({
                        'check': 'lock_cache_mirrors_record',
                        'asset': code,
                        'holder': record.holder,
                        'locked_amount': record.locked_amount,
                        'cached': cached,
                    })

            for entry in self.locks.entries(code):
                if entry.holder not in holders and entry.locked_amount != ZERO:
                    violations.append({
                        'check': 'lock_cache_mirrors_record',
                        'asset': code,
                        'holder': entry.holder,
                        'locked_amount': ZERO,
                        'cached': entry.locked_amount,
                    })

            total = self.locks.total(code).total_locked
            if total != locked_sum:
                violations.append({
                    'check': 'lock_total_matches_sum',
                    'asset': code,
                    'total_locked': total,
                    'sum_locked': locked_sum,
                })

            if balance_sum != asset.circulating_supply:
                violations.append({
                    'check': 'supply_conserved',
                    'asset': code,
                    'circulating_supply': asset.circulating_supply,
                    'sum_balances': balance_sum,
                })

            for request in self.queue.requests(code):
                record = self.store.find(request.holder, code)
                locked = record.locked_amount if record else ZERO
                if request.amount > locked:
                    violations.append({
                        'check': 'request_within_locked',
                        'asset': code,
                        'holder': request.holder,
                        'amount': request.amount,
                        'locked_amount': locked,
                    })

        return {
            'valid': len(violations) == 0,
            'violations': violations,
        }

    # ========================================================================
    # LEDGER OPERATIONS
    # ========================================================================

    def snapshot(self) -> Dict[str, Any]:
        """
        Immutable picture of every table, suitable for equality comparisons.

        The action log and clock are not included.
        """
        codes = self.registry.codes()
        return {
            'assets': tuple(self.registry.get(c) for c in codes),
            'balances': tuple(r for c in codes for r in self.store.records(c)),
            'lock_entries': tuple(e for c in codes for e in self.locks.entries(c)),
            'lock_totals': tuple(self.locks.total(c) for c in codes),
            'unlock_requests': tuple(r for c in codes for r in self.queue.requests(c)),
            'accounts': tuple(sorted(self.registered_accounts)),
        }

    def clone(self) -> Ledger:
        """
        Create an independent copy of this ledger.

        Records are immutable, so copying the tables is enough. The clone shares
        the authority collaborator but has no scheduler.
        """
        cloned = Ledger.__new__(Ledger)
        cloned.name = self.name
        cloned.registry = self.registry.clone()
        cloned.store = self.store.clone()
        cloned.locks = self.locks.clone()
        cloned.queue = self.queue.clone()
        cloned.registered_accounts = self.registered_accounts.copy()
        cloned.action_log = list(self.action_log)
        cloned._current_time = self._current_time
        cloned.verbose = self.verbose
        cloned.authority = self.authority
        cloned.scheduler = None
        cloned._next_sequence = self._next_sequence
        return cloned
