"""
stakeledger - Locked-Balance Token Ledger

A fungible-value ledger where holders can lock part of their balance and
release it through a delayed unlock request.

Usage:
    from datetime import timedelta
    from decimal import Decimal
    from stakeledger import Ledger

    ledger = Ledger("boatwingio")
    ledger.register_account("issuer")
    ledger.register_account("alice")
    ledger.create_asset("issuer", "BOAT", Decimal("1000"), precision=0)
    ledger.set_unlock_delay("BOAT", timedelta(days=3))

    ledger.issue("issuer", "BOAT", Decimal("500"))
    ledger.transfer("issuer", "alice", "BOAT", Decimal("200"))

    # Lock, then unlock after the delay
    ledger.lock("alice", "BOAT", Decimal("150"))
    ledger.request_unlock("alice", "BOAT", Decimal("100"))
    ledger.advance_by(timedelta(days=3))
    ledger.claim("alice", "BOAT")
"""

# Core types
from .core import (
    LedgerView,
    Asset,
    BalanceRecord,
    LockEntry,
    LockTotal,
    UnlockRequest,
    UnlockState,
    ActionRecord,
    LockPositions,
    ActionParams,
    unlock_state,
    validate_amount,
    validate_asset_code,
    validate_memo,
    # Constants
    MAX_MEMO_BYTES,
    MAX_PRECISION,
    MAX_RAW_AMOUNT,
    MIN_FEE_RATIO,
    MAX_FEE_RATIO,
    # Exceptions
    LedgerError,
    InvalidArgument,
    InvalidOperation,
    DuplicateAsset,
    NotFound,
    AssetNotFound,
    AccountNotRegistered,
    RecordNotFound,
    RequestNotFound,
    Unauthorized,
    InsufficientFunds,
    InsufficientLocked,
    SupplyExceeded,
    DuplicateRequest,
    NotMatured,
    NotEmpty,
)

# Tables
from .registry import AssetRegistry
from .balances import BalanceStore
from .locks import LockIndex
from .unlock_queue import UnlockQueue

# Collaborators
from .authority import Authority, TrustAllAuthority, SignatureAuthority
from .scheduler import ClaimJob, ClaimScheduler

# Ledger
from .ledger import Ledger


__all__ = [
    # Core
    'LedgerView',
    'Asset',
    'BalanceRecord',
    'LockEntry',
    'LockTotal',
    'UnlockRequest',
    'UnlockState',
    'ActionRecord',
    'LockPositions',
    'ActionParams',
    'unlock_state',
    'validate_amount',
    'validate_asset_code',
    'validate_memo',
    'MAX_MEMO_BYTES',
    'MAX_PRECISION',
    'MAX_RAW_AMOUNT',
    'MIN_FEE_RATIO',
    'MAX_FEE_RATIO',

    # Exceptions
    'LedgerError',
    'InvalidArgument',
    'InvalidOperation',
    'DuplicateAsset',
    'NotFound',
    'AssetNotFound',
    'AccountNotRegistered',
    'RecordNotFound',
    'RequestNotFound',
    'Unauthorized',
    'InsufficientFunds',
    'InsufficientLocked',
    'SupplyExceeded',
    'DuplicateRequest',
    'NotMatured',
    'NotEmpty',

    # Tables
    'AssetRegistry',
    'BalanceStore',
    'LockIndex',
    'UnlockQueue',

    # Collaborators
    'Authority',
    'TrustAllAuthority',
    'SignatureAuthority',
    'ClaimJob',
    'ClaimScheduler',

    # Ledger
    'Ledger',
]

__version__ = '1.0.0'
