"""
Core types and pure functions for the locked-balance ledger.

This module provides the foundational data structures and protocols for the ledger:
1. Protocols: LedgerView for read-only ledger access
2. Immutable records: Asset, BalanceRecord, LockEntry, LockTotal, UnlockRequest, ActionRecord
3. Exceptions: LedgerError and the rejection taxonomy
4. Type aliases: LockPositions, ActionParams
5. Validators: Pure argument checks shared by every action
6. Canonicalization: Content hashing for the audit trail

All functions in this module are pure and operate on immutable values.
No function can mutate ledger state directly.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_EVEN, InvalidOperation as DecimalInvalidOperation, getcontext
from enum import Enum
import hashlib
import re
from typing import Dict, Optional, Any, Protocol, Tuple, runtime_checkable


# ============================================================================
# DECIMAL CONTEXT CONFIGURATION
# ============================================================================
#
# The ledger requires deterministic Decimal arithmetic.
# We configure the global context at module load time to ensure consistency.
#
# PRECONDITION: No other code should modify the global Decimal context.
# If thread-local contexts are needed, use decimal.localcontext().
#
#   - prec=50: enough headroom for 2**62 raw units at 18 decimal places
#   - rounding=ROUND_HALF_EVEN: Banker's rounding (unbiased)
#
_LEDGER_DECIMAL_CONTEXT = getcontext()
_LEDGER_DECIMAL_CONTEXT.prec = 50
_LEDGER_DECIMAL_CONTEXT.rounding = ROUND_HALF_EVEN


# ============================================================================
# CONSTANTS
# ============================================================================

# Free-text memo fields on transfer/issue/retire are capped in UTF-8 bytes.
MAX_MEMO_BYTES = 256

# Asset codes: one to seven upper-case letters.
ASSET_CODE_PATTERN = re.compile(r"^[A-Z]{1,7}$")

# Largest number of decimal places an asset may carry.
MAX_PRECISION = 18

# Largest supply expressible in raw (smallest-denomination) units.
MAX_RAW_AMOUNT = 2 ** 62 - 1
MAX_RAW_DIGITS = len(str(MAX_RAW_AMOUNT))

# Transfer fee ratio bounds (percent). Stored only; never applied.
MIN_FEE_RATIO = 0
MAX_FEE_RATIO = 100

ZERO = Decimal("0")


# ============================================================================
# TYPE ALIASES
# ============================================================================

# Mapping from holder to currently locked amount for a single asset.
LockPositions = Dict[str, Decimal]

# Frozen action parameters as sorted (key, value) pairs.
ActionParams = Tuple[Tuple[str, Any], ...]


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LedgerError(Exception):
    """Base exception for all ledger rejections."""
    pass


class InvalidArgument(LedgerError):
    """Raised for malformed asset codes, non-positive amounts, precision mismatches or oversized memos."""
    pass


class InvalidOperation(InvalidArgument):
    """Raised when an action is well-formed but meaningless (e.g. a self-transfer)."""
    pass


class DuplicateAsset(InvalidArgument):
    """Raised when creating an asset whose code is already registered."""
    pass


class NotFound(LedgerError):
    """Base for lookups of records that do not exist."""
    pass


class AssetNotFound(NotFound):
    """Raised when an asset code (or its lock aggregate) is not registered."""
    pass


class AccountNotRegistered(NotFound):
    """Raised when an action names an account the ledger does not know about."""
    pass


class RecordNotFound(NotFound):
    """Raised when a (holder, asset) balance record does not exist."""
    pass


class RequestNotFound(NotFound):
    """Raised when no live unlock request exists for (holder, asset)."""
    pass


class Unauthorized(LedgerError):
    """Raised when the required principal has not authorized the action."""
    pass


class InsufficientFunds(LedgerError):
    """Raised when an action would spend more than the holder's unlocked balance."""
    pass


class InsufficientLocked(LedgerError):
    """Raised when an unlock asks for more than the holder currently has locked."""
    pass


class SupplyExceeded(LedgerError):
    """Raised when issuance would push circulating supply past max supply."""
    pass


class DuplicateRequest(LedgerError):
    """Raised when a holder already has a live unlock request for the asset."""
    pass


class NotMatured(LedgerError):
    """Raised when claiming an unlock request before its maturity time."""
    pass


class NotEmpty(LedgerError):
    """Raised when closing a balance record that still holds value."""
    pass


# ============================================================================
# ENUMS
# ============================================================================

class UnlockState(Enum):
    """
    Derived unlock status for a (holder, asset) pair.

    UNLOCKED: No live unlock request.
    PENDING: A live request exists and now < maturity_time.
    MATURED: A live request exists and now >= maturity_time.

    Never stored; always computed from maturity_time and the current time.
    """
    UNLOCKED = "unlocked"
    PENDING = "pending"
    MATURED = "matured"


# ============================================================================
# RECORDS
# ============================================================================

@dataclass(frozen=True, slots=True)
class Asset:
    """
    Registry entry for one fungible asset.

    Attributes:
        code: Asset code (e.g., "BOAT").
        precision: Decimal places every amount of this asset carries.
        max_supply: Cap on circulating supply.
        issuer: Account allowed to issue, retire and reconfigure.
        circulating_supply: Amount currently issued and not retired.
        unlock_delay: Waiting period between an unlock request and its maturity.
        fee_ratio: Transfer fee percentage (0-100). Configuration only.
        fee_receiver: Account that would receive transfer fees. Configuration only.
    """
    code: str
    precision: int
    max_supply: Decimal
    issuer: str
    circulating_supply: Decimal = ZERO
    unlock_delay: timedelta = timedelta(0)
    fee_ratio: int = 0
    fee_receiver: str = ""

    @property
    def available_supply(self) -> Decimal:
        """Amount that can still be issued."""
        return self.max_supply - self.circulating_supply

    def quantum(self) -> Decimal:
        """Smallest representable amount, e.g. Decimal("0.0001") for precision 4."""
        return Decimal(1).scaleb(-self.precision)

    def format(self, amount: Decimal) -> str:
        """Render an amount with this asset's precision and code."""
        return f"{amount.quantize(self.quantum())} {self.code}"


@dataclass(frozen=True, slots=True)
class BalanceRecord:
    """
    Per-(holder, asset) balance row.

    locked_amount is the subset of balance that cannot be debited.
    Invariant: 0 <= locked_amount <= balance.
    """
    holder: str
    asset: str
    balance: Decimal = ZERO
    locked_amount: Decimal = ZERO
    storage_payer: str = ""

    @property
    def unlocked(self) -> Decimal:
        """The spendable portion: balance - locked_amount."""
        return self.balance - self.locked_amount

    def is_empty(self) -> bool:
        return self.balance == ZERO and self.locked_amount == ZERO


@dataclass(frozen=True, slots=True)
class LockEntry:
    """Asset-scoped mirror of a holder's locked_amount, kept for direct lock lookups."""
    holder: str
    asset: str
    locked_amount: Decimal = ZERO
    storage_payer: str = ""


@dataclass(frozen=True, slots=True)
class LockTotal:
    """Per-asset sum of every holder's locked_amount."""
    asset: str
    total_locked: Decimal = ZERO


@dataclass(frozen=True, slots=True)
class UnlockRequest:
    """
    A filed intent to release locked funds once maturity_time is reached.

    At most one live request exists per (holder, asset).
    """
    holder: str
    asset: str
    requested_at: datetime
    maturity_time: datetime
    amount: Decimal

    def is_mature(self, now: datetime) -> bool:
        return now >= self.maturity_time


def unlock_state(request: Optional[UnlockRequest], now: datetime) -> UnlockState:
    """
    Derive the unlock status of a holder from its live request, if any.

    Args:
        request: Live unlock request or None
        now: Time to evaluate maturity against

    Returns:
        UnlockState.UNLOCKED, PENDING or MATURED
    """
    if request is None:
        return UnlockState.UNLOCKED
    if request.is_mature(now):
        return UnlockState.MATURED
    return UnlockState.PENDING


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class LedgerView(Protocol):
    """
    Read-only interface to ledger state.

    Schedulers and reporting code receive a LedgerView so that they can inspect
    balances, locks and unlock requests without the ability to modify them.
    The Ledger class implements this protocol but also provides the actions.
    """

    @property
    def current_time(self) -> datetime:
        """Return the current logical time of the ledger."""
        ...

    def get_asset(self, code: str) -> Asset:
        """Return the registry entry for an asset code."""
        ...

    def get_balance(self, holder: str, code: str) -> Decimal:
        """Return the holder's total balance (locked and unlocked)."""
        ...

    def get_locked(self, holder: str, code: str) -> Decimal:
        """Return the holder's locked_amount."""
        ...

    def get_unlock_request(self, holder: str, code: str) -> Optional[UnlockRequest]:
        """Return the holder's live unlock request, or None."""
        ...


# ============================================================================
# VALIDATORS
# ============================================================================

def validate_asset_code(code: str) -> str:
    """
    Check that an asset code is one to seven upper-case letters.

    Raises:
        InvalidArgument: If the code is malformed
    """
    if not isinstance(code, str) or not ASSET_CODE_PATTERN.match(code):
        raise InvalidArgument(f"invalid asset code: {code!r}")
    return code


def validate_precision(precision: int) -> int:
    if not isinstance(precision, int) or isinstance(precision, bool):
        raise InvalidArgument(f"precision must be an int, got {type(precision).__name__}")
    if precision < 0 or precision > MAX_PRECISION:
        raise InvalidArgument(f"precision must be between 0 and {MAX_PRECISION}, got {precision}")
    return precision


def to_decimal(amount: Any) -> Decimal:
    """
    Coerce an amount to Decimal.

    Floats are rejected: their binary representation cannot carry an exact
    asset precision.
    """
    if isinstance(amount, bool):
        raise InvalidArgument(f"amount must be Decimal, got {type(amount).__name__}")
    if isinstance(amount, Decimal):
        value = amount
    elif isinstance(amount, (int, str)):
        try:
            value = Decimal(amount)
        except DecimalInvalidOperation:
            raise InvalidArgument(f"invalid amount: {amount!r}") from None
    else:
        raise InvalidArgument(f"amount must be Decimal, got {type(amount).__name__}")
    if value.is_nan() or value.is_infinite():
        raise InvalidArgument(f"amount must be finite, got {value}")
    return value


def fits_precision(amount: Decimal, precision: int) -> bool:
    """True if amount has no more than `precision` significant decimal places."""
    return amount.normalize().as_tuple().exponent >= -precision


def raw_units(amount: Decimal, precision: int) -> int:
    """Express an amount in the asset's smallest denomination."""
    return int(amount.scaleb(precision))


def validate_amount(amount: Any, asset: Asset, action: str = "use") -> Decimal:
    """
    Validate a positive amount of an asset.

    Args:
        amount: Decimal, int or numeric string
        asset: Asset the amount is denominated in
        action: Verb used in the error message ("issue", "transfer", ...)

    Returns:
        The amount quantized to the asset's precision

    Raises:
        InvalidArgument: If the amount is not positive, carries more decimal
                         places than the asset, or exceeds the raw-unit range
    """
    value = to_decimal(amount)
    if value <= ZERO:
        raise InvalidArgument(f"must {action} positive quantity, got {value}")
    # Order of magnitude first; normalize() and scaleb() trap far outside this range.
    if value.adjusted() >= MAX_RAW_DIGITS:
        raise InvalidArgument(f"amount {value} exceeds the representable range")
    if value.adjusted() < -MAX_PRECISION:
        raise InvalidArgument(
            f"symbol precision mismatch: {value} has more than {asset.precision} decimal places"
        )
    if not fits_precision(value, asset.precision):
        raise InvalidArgument(
            f"symbol precision mismatch: {value} has more than {asset.precision} decimal places"
        )
    if raw_units(value, asset.precision) > MAX_RAW_AMOUNT:
        raise InvalidArgument(f"amount {value} exceeds the representable range")
    return value.quantize(asset.quantum())


def validate_memo(memo: str) -> str:
    """
    Raises:
        InvalidArgument: If the memo is longer than MAX_MEMO_BYTES in UTF-8
    """
    if not isinstance(memo, str):
        raise InvalidArgument(f"memo must be str, got {type(memo).__name__}")
    if len(memo.encode("utf-8")) > MAX_MEMO_BYTES:
        raise InvalidArgument(f"memo has more than {MAX_MEMO_BYTES} bytes")
    return memo


def validate_delay(delay: Any) -> timedelta:
    """Accept a timedelta or whole seconds; reject negative delays."""
    if isinstance(delay, bool):
        raise InvalidArgument("unlock delay must be a timedelta or whole seconds")
    if isinstance(delay, int):
        try:
            delay = timedelta(seconds=delay)
        except OverflowError:
            raise InvalidArgument(f"unlock delay of {delay} seconds is out of range") from None
    if not isinstance(delay, timedelta):
        raise InvalidArgument(f"unlock delay must be a timedelta or whole seconds, got {type(delay).__name__}")
    if delay < timedelta(0):
        raise InvalidArgument(f"unlock delay cannot be negative, got {delay}")
    return delay


def maturity_after(now: datetime, delay: timedelta) -> datetime:
    """
    Time at which a request filed at `now` matures.

    Raises:
        InvalidArgument: If now + delay is past datetime.max
    """
    try:
        return now + delay
    except OverflowError:
        raise InvalidArgument(f"unlock delay {delay} overflows the clock from {now}") from None


def validate_fee_ratio(ratio: int) -> int:
    if isinstance(ratio, bool) or not isinstance(ratio, int):
        raise InvalidArgument(f"fee ratio must be an int, got {type(ratio).__name__}")
    if ratio < MIN_FEE_RATIO or ratio > MAX_FEE_RATIO:
        raise InvalidArgument("transfer fee is out of boundary")
    return ratio


# ============================================================================
# CANONICALIZATION
# ============================================================================

def _normalize_decimal(d: Decimal) -> str:
    """
    Normalize a Decimal to a canonical string representation.

    Decimal("1.0") and Decimal("1.00") both become "1".
    """
    normalized = d.normalize()
    if normalized == normalized.to_integral_value():
        return str(int(normalized))
    return format(normalized, 'f')


def _canonicalize(value: Any) -> str:
    """
    Produce a canonical string representation of a value for hashing.

    Deterministic regardless of dict insertion order or Decimal representation.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Decimal):
        return f"D:{_normalize_decimal(value)}"
    if isinstance(value, (int, float)):
        return f"N:{value}"
    if isinstance(value, str):
        return f"S:{value}"
    if isinstance(value, datetime):
        return f"T:{value.isoformat()}"
    if isinstance(value, timedelta):
        return f"TD:{value.total_seconds()}"
    if isinstance(value, dict):
        items = sorted(value.items(), key=lambda kv: str(kv[0]))
        serialized = ",".join(f"{_canonicalize(k)}:{_canonicalize(v)}" for k, v in items)
        return f"{{{serialized}}}"
    if isinstance(value, (list, tuple)):
        serialized = ",".join(_canonicalize(item) for item in value)
        return f"[{serialized}]"
    return f"R:{repr(value)}"


def _compute_action_id(
    ledger_name: str,
    sequence_number: int,
    action: str,
    params: ActionParams,
    timestamp: datetime,
) -> str:
    """Deterministic content hash of an applied action."""
    content = "|".join([
        f"ledger:{ledger_name}",
        f"seq:{sequence_number}",
        f"action:{action}",
        f"time:{timestamp.isoformat()}",
        f"params:{_canonicalize(dict(params))}",
    ])
    return hashlib.sha256(content.encode()).hexdigest()[:16]


@dataclass(frozen=True, slots=True)
class ActionRecord:
    """
    Immutable audit record of one applied action.

    Attributes:
        ledger_name: Ledger that applied the action
        sequence_number: Monotonic position in the ledger's action log
        action: Action name ("issue", "lock", "claim", ...)
        params: Sorted (key, value) pairs of the action's arguments
        timestamp: Ledger time at which the action was applied
        action_id: Content hash (auto-computed)
    """
    ledger_name: str
    sequence_number: int
    action: str
    params: ActionParams
    timestamp: datetime
    action_id: str = field(default="")

    def __post_init__(self):
        if not self.action_id:
            object.__setattr__(self, 'action_id', _compute_action_id(
                self.ledger_name, self.sequence_number, self.action, self.params, self.timestamp
            ))

    @property
    def params_dict(self) -> Dict[str, Any]:
        return dict(self.params)

    def __repr__(self) -> str:
        w = 100
        bar = "─" * w

        def pad(text: str) -> str:
            if len(text) > w:
                return text[:w-3] + "..."
            return text + " " * (w - len(text))

        lines = [
            "",
            f"┌{bar}┐",
            f"│{pad(' Action: ' + self.action + ' #' + str(self.sequence_number))}│",
            f"├{bar}┤",
            f"│{pad('   action_id   : ' + self.action_id)}│",
            f"│{pad('   ledger_name : ' + self.ledger_name)}│",
            f"│{pad('   timestamp   : ' + str(self.timestamp))}│",
        ]
        for key, value in self.params:
            lines.append(f"│{pad(f'   {key:<12}: {value}')}│")
        lines.append(f"└{bar}┘")
        return "\n".join(lines)


def freeze_params(**params: Any) -> ActionParams:
    """Freeze keyword arguments into sorted (key, value) pairs."""
    return tuple(sorted(params.items()))
