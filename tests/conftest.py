"""
conftest.py - Shared pytest fixtures for stakeledger tests

Provides common fixtures used across unit, functional and conformance tests:
- Basic ledgers (empty, with an asset, funded, with a lock)
- A ledger guarded by SignatureAuthority
- Comparison utilities
"""

import pytest
from datetime import datetime, timedelta
from decimal import Decimal

from stakeledger import (
    Ledger, SignatureAuthority, ClaimScheduler,
)


T0 = datetime(2025, 1, 1)
DELAY = timedelta(seconds=10)


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def make_ledger(**kwargs) -> Ledger:
    """Ledger with accounts issuer, alice and bob, and asset X (precision 0, max 1000, delay 10s)."""
    ledger = Ledger("boatwingio", T0, verbose=False, **kwargs)
    for account in ("issuer", "alice", "bob"):
        ledger.register_account(account)
    ledger.create_asset("issuer", "X", Decimal("1000"), precision=0)
    ledger.set_unlock_delay("X", DELAY)
    return ledger


def sum_balances(ledger: Ledger, code: str) -> Decimal:
    return sum((r.balance for r in ledger.store.records(code)), Decimal("0"))


def assert_consistent(ledger: Ledger) -> None:
    """Fail with the violation list if any ledger invariant is broken."""
    result = ledger.verify_invariants()
    assert result['valid'], result['violations']


# =============================================================================
# BASIC FIXTURES
# =============================================================================

@pytest.fixture
def empty_ledger():
    """Fresh ledger with no assets and only its own contract account."""
    return Ledger("boatwingio", T0, verbose=False)


@pytest.fixture
def asset_ledger():
    """Ledger with asset X created and nothing issued."""
    return make_ledger()


@pytest.fixture
def funded_ledger(asset_ledger):
    """Issuer issued 500 X and forwarded 200 to alice."""
    asset_ledger.issue("issuer", "X", Decimal("500"))
    asset_ledger.transfer("issuer", "alice", "X", Decimal("200"))
    return asset_ledger


@pytest.fixture
def locked_ledger(funded_ledger):
    """Funded ledger where alice locked 150 of her 200 X."""
    funded_ledger.lock("alice", "X", Decimal("150"))
    return funded_ledger


# =============================================================================
# COLLABORATOR FIXTURES
# =============================================================================

@pytest.fixture
def authority():
    return SignatureAuthority()


@pytest.fixture
def signed_ledger(authority):
    """Funded ledger where every action must be signed explicitly."""
    ledger = Ledger("boatwingio", T0, verbose=False, authority=authority)
    for account in ("issuer", "alice", "bob"):
        ledger.register_account(account)
    with authority.signed_by("boatwingio"):
        ledger.create_asset("issuer", "X", Decimal("1000"), precision=0)
    with authority.signed_by("issuer"):
        ledger.set_unlock_delay("X", DELAY)
        ledger.issue("issuer", "X", Decimal("500"))
        ledger.transfer("issuer", "alice", "X", Decimal("200"))
    return ledger


@pytest.fixture
def scheduled_ledger():
    """Funded ledger wired to a ClaimScheduler."""
    scheduler = ClaimScheduler()
    ledger = make_ledger(scheduler=scheduler)
    ledger.issue("issuer", "X", Decimal("500"))
    ledger.transfer("issuer", "alice", "X", Decimal("200"))
    ledger.transfer("issuer", "bob", "X", Decimal("100"))
    return ledger
