"""
authority.py - Identity and Authorization Collaborators

The ledger never verifies signatures itself. Before an action body runs it asks
an Authority whether the required principal has authorized the action:

1. Authority: protocol consulted by every action
2. TrustAllAuthority: the host has already verified every principal (default)
3. SignatureAuthority: explicit signer sets, for hosts and tests that need
   the ledger to reject unauthorized callers
"""

from __future__ import annotations
from contextlib import contextmanager
from typing import Dict, FrozenSet, Iterator, Protocol, Set, runtime_checkable

from .core import Unauthorized


@runtime_checkable
class Authority(Protocol):
    """Read-only view of who has authorized the action being executed."""

    def has_auth(self, account: str) -> bool:
        """True if `account` authorized the current action."""
        ...

    def require_auth(self, account: str) -> None:
        """Raise Unauthorized unless `account` authorized the current action."""
        ...

    def has_shared_payer(self, first: str, second: str) -> bool:
        """True if a signer is payer-eligible for both accounts."""
        ...


class TrustAllAuthority:
    """
    Authority for hosts that verify identity before invoking the ledger.

    Every principal is treated as having authorized every action.
    """

    def has_auth(self, account: str) -> bool:
        return True

    def require_auth(self, account: str) -> None:
        return None

    def has_shared_payer(self, first: str, second: str) -> bool:
        return True


class SignatureAuthority:
    """
    Authority backed by an explicit set of signing accounts.

    Signers are set for the duration of a `signed_by` block. Outside any block
    nobody is authorized. An owner may also mark another account as
    payer-eligible on its behalf with grant_payer(); a transfer signed only by
    such an agent is accepted when both sides of the transfer granted it.

    Example:
        authority = SignatureAuthority()
        ledger = Ledger("boatwingio", authority=authority)
        with authority.signed_by("alice"):
            ledger.lock("alice", "BOAT", Decimal("10"))
    """

    def __init__(self):
        self._signers: FrozenSet[str] = frozenset()
        self._payers: Dict[str, Set[str]] = {}

    @property
    def signers(self) -> FrozenSet[str]:
        return self._signers

    @contextmanager
    def signed_by(self, *accounts: str) -> Iterator[SignatureAuthority]:
        """Authorize `accounts` for every action executed inside the block."""
        previous = self._signers
        self._signers = frozenset(accounts)
        try:
            yield self
        finally:
            self._signers = previous

    def grant_payer(self, owner: str, agent: str) -> None:
        """Record that `owner` recognizes `agent` as payer-eligible."""
        self._payers.setdefault(owner, set()).add(agent)

    def revoke_payer(self, owner: str, agent: str) -> None:
        self._payers.get(owner, set()).discard(agent)

    def has_auth(self, account: str) -> bool:
        return account in self._signers

    def require_auth(self, account: str) -> None:
        if account not in self._signers:
            raise Unauthorized(f"missing authority of {account}")

    def has_shared_payer(self, first: str, second: str) -> bool:
        first_agents = self._payers.get(first, set())
        second_agents = self._payers.get(second, set())
        return any(s in first_agents and s in second_agents for s in self._signers)
