"""
Core types for the bond trading ledger.

This module provides the foundational data structures shared by every layer:
1. Protocols: StateStore for the replicated key-value store
2. Immutable records: Bond, PrivateBondExtension, Answer, DirectTrade,
   Transaction, LedgerDocument
3. Exceptions: LedgerError and domain-specific error types
4. Configuration: TradingConfig and module-level constants

Records are frozen. Transition functions build new records with
dataclasses.replace() and never mutate the snapshot they were given.
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_EVEN, getcontext
from typing import (
    Callable, List, Mapping, Optional, Protocol, Tuple, runtime_checkable
)


# ============================================================================
# DECIMAL CONTEXT CONFIGURATION
# ============================================================================
#
# Bid and reserve prices are Decimal. The global context is configured once
# at import so that price comparisons and string round-trips are stable.
#
_LEDGER_DECIMAL_CONTEXT = getcontext()
_LEDGER_DECIMAL_CONTEXT.prec = 50
_LEDGER_DECIMAL_CONTEXT.rounding = ROUND_HALF_EVEN


# ============================================================================
# CONSTANTS
# ============================================================================

# Fixed key of the aggregate ledger document in the world state.
LEDGER_KEY = "ledger"

# Keys inside an organization's private partition.
SECRET_KEY = "encryption_key"
PRIVATE_BONDS_KEY = "private_bonds_information"

# Prefix of the implicit per-organization private collection.
IMPLICIT_COLLECTION_PREFIX = "_implicit_org_"

# Transient map key carrying the reserve price on CreateBond.
TRANSIENT_RESERVE_PRICE = "reservePrice"

# Trade states (strings, not enum, so they serialize as-is).
STATE_OPEN = "Open"
STATE_CLOSED = "Closed"

# Answer values. The empty string means "no response yet".
RESPONSE_NONE = ""
RESPONSE_YES = "yes"
RESPONSE_NO = "no"
RESPONSE_COUNTER = "counter"
RESPONSE_VALUES = frozenset({RESPONSE_NONE, RESPONSE_YES, RESPONSE_NO, RESPONSE_COUNTER})


def utc_now() -> datetime:
    """Host clock used when no clock is configured."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TradingConfig:
    """
    Runtime knobs for the registry, engine and service.

    Attributes:
        verbose: Print commit/conflict/settlement status lines.
        max_retries: Attempts made by retry_on_conflict before StoreConflict
            is surfaced to the caller.
        trust_caller_time: Honour caller-supplied timestamps. When False every
            timestamp comes from `clock`.
        clock: Host clock returning timezone-aware datetimes.
    """
    verbose: bool = False
    max_retries: int = 3
    trust_caller_time: bool = False
    clock: Callable[[], datetime] = utc_now

    def __post_init__(self):
        if self.max_retries < 1:
            raise ValueError(f"max_retries must be at least 1, got {self.max_retries}")

    def resolve_time(self, requested: Optional[datetime] = None) -> datetime:
        """Return the timestamp to record for a request."""
        if requested is not None and self.trust_caller_time:
            return requested
        return self.clock()


DEFAULT_CONFIG = TradingConfig()


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LedgerError(Exception):
    """Base exception for all ledger-related errors."""
    pass


class NotFound(LedgerError):
    """Raised when a bond, trade or private extension does not exist."""
    pass


class BondNotFound(NotFound):
    """Raised when no public bond has the requested uid."""
    pass


class TradeNotFound(NotFound):
    """Raised when no direct trade has the requested id."""
    pass


class PrivateBondNotFound(NotFound):
    """Raised when the caller's partition holds no extension for a uid."""
    pass


class DuplicateAsset(LedgerError):
    """Raised when a bond uid or natural key already exists, or when seeding a non-empty ledger."""
    pass


class Unauthorized(LedgerError):
    """Raised when an ownership or identity check fails."""
    pass


class SecretNotSet(Unauthorized):
    """Raised when the caller has not stored an identity secret."""
    pass


class TradeClosed(LedgerError):
    """Raised when mutating a trade that is already Closed."""
    pass


class SettlementFailed(LedgerError):
    """Raised when mutual agreement is reached but the seller holds no matching bond."""
    pass


class StoreConflict(LedgerError):
    """Raised when the ledger document changed between read and write. Retry the operation."""
    pass


class EncodingError(LedgerError):
    """Raised when a request payload or stored document cannot be decoded."""
    pass


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class StateStore(Protocol):
    """
    Versioned key-value store holding the public ledger document.

    Reads return the stored bytes with their version. Writes carry the version
    the caller read; a stale version raises StoreConflict.
    """

    def get_state(self, key: str) -> Tuple[Optional[bytes], int]:
        """Return (value, version). Missing keys return (None, 0)."""
        ...

    def put_state(self, key: str, value: bytes, expected_version: int) -> int:
        """Write value if the key is still at expected_version. Return the new version."""
        ...


# ============================================================================
# HELPERS
# ============================================================================

def to_decimal(value) -> Decimal:
    """Convert a price-like value to Decimal, going through str for floats."""
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except InvalidOperation as e:
            raise EncodingError(f"Invalid decimal value: {value!r}") from e
    if result.is_nan() or result.is_infinite():
        raise EncodingError(f"Decimal value must be finite, got {value!r}")
    return result


def canonical_time(value: datetime) -> str:
    """
    Canonical string for a timestamp.

    Naive datetimes are treated as UTC so that the same instant always yields
    the same string, which keeps pseudonym derivation deterministic.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


# ============================================================================
# BONDS
# ============================================================================

@dataclass(frozen=True, slots=True)
class Bond:
    """
    A public bond lot recorded in the ledger.

    Attributes:
        uid: Unique identifier of the lot.
        name: Bond/pool designation (e.g. "FR RA7777").
        cusip: CUSIP of the instrument.
        original_face: Face amount of the lot.
        owner_hash: Pseudo-identity of the current holder.
        class_tags: Classification tags (e.g. "passthrough", "MBS 30yr").
    """
    uid: str
    name: str
    cusip: str
    original_face: int
    owner_hash: str = ""
    class_tags: Tuple[str, ...] = ()

    def __post_init__(self):
        if not self.uid or not self.uid.strip():
            raise ValueError("Bond uid cannot be empty")
        if not self.cusip or not self.cusip.strip():
            raise ValueError("Bond cusip cannot be empty")
        if isinstance(self.original_face, bool) or not isinstance(self.original_face, int):
            raise ValueError(f"Bond original_face must be int, got {type(self.original_face)}")
        if self.original_face <= 0:
            raise ValueError(f"Bond original_face must be positive, got {self.original_face}")
        if not isinstance(self.class_tags, tuple):
            object.__setattr__(self, 'class_tags', tuple(self.class_tags))

    @property
    def natural_key(self) -> Tuple[str, str]:
        return (self.cusip, self.name)


@dataclass(frozen=True, slots=True)
class BondSpec:
    """Caller-supplied fields of a bond. owner_hash is always assigned by the registry."""
    name: str
    cusip: str
    original_face: int
    class_tags: Tuple[str, ...] = ()
    uid: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.class_tags, tuple):
            object.__setattr__(self, 'class_tags', tuple(self.class_tags))

    def to_bond(self, uid: str, owner_hash: str) -> Bond:
        return Bond(
            uid=uid,
            name=self.name,
            cusip=self.cusip,
            original_face=self.original_face,
            owner_hash=owner_hash,
            class_tags=self.class_tags,
        )


@dataclass(frozen=True, slots=True)
class PrivateBondExtension:
    """Reserve price an organization keeps for one of its lots."""
    uid: str
    reserve_price: Decimal

    def __post_init__(self):
        if not isinstance(self.reserve_price, Decimal):
            object.__setattr__(self, 'reserve_price', to_decimal(self.reserve_price))


@dataclass(frozen=True, slots=True)
class BondHolding:
    """A public bond paired with the caller's private extension, if any."""
    bond: Bond
    private: Optional[PrivateBondExtension] = None


# ============================================================================
# NEGOTIATION RECORDS
# ============================================================================

@dataclass(frozen=True, slots=True)
class Response:
    """One side's answer value and when it was given."""
    value: str = RESPONSE_NONE
    timestamp: Optional[datetime] = None

    def __post_init__(self):
        if self.value not in RESPONSE_VALUES:
            raise EncodingError(
                f"Response value must be one of {sorted(RESPONSE_VALUES)}, got {self.value!r}"
            )

    @property
    def is_yes(self) -> bool:
        return self.value == RESPONSE_YES


EMPTY_RESPONSE = Response()


@dataclass(frozen=True, slots=True)
class Answer:
    """The negotiation between a trade's bidder and one seller."""
    seller_hash: str
    seller_response: Response = EMPTY_RESPONSE
    buyer_response: Response = EMPTY_RESPONSE

    @property
    def agreed(self) -> bool:
        """True when both sides answered "yes"."""
        return self.seller_response.is_yes and self.buyer_response.is_yes


@dataclass(frozen=True, slots=True)
class DirectTrade:
    """
    An offer to buy a face amount of a cusip at a bid price.

    answers maps seller pseudo-identity to that seller's Answer. The mapping
    is copied on every update; treat it as read-only.
    """
    trade_id: str
    cusip: str
    original_face: int
    bid_price: Decimal
    bidder_hash: str
    created_at: datetime
    state: str = STATE_OPEN
    answers: Mapping[str, Answer] = field(default_factory=dict)

    def __post_init__(self):
        if not isinstance(self.bid_price, Decimal):
            object.__setattr__(self, 'bid_price', to_decimal(self.bid_price))
        if self.state not in (STATE_OPEN, STATE_CLOSED):
            raise ValueError(f"Trade state must be Open or Closed, got {self.state!r}")
        if self.original_face <= 0:
            raise ValueError(f"Trade original_face must be positive, got {self.original_face}")

    @property
    def is_open(self) -> bool:
        return self.state == STATE_OPEN

    def answer_for(self, seller_hash: str) -> Answer:
        """Return the seller's Answer, or a blank one if the seller has not answered."""
        return self.answers.get(seller_hash) or Answer(seller_hash=seller_hash)

    def with_answer(self, answer: Answer) -> DirectTrade:
        answers = dict(self.answers)
        answers[answer.seller_hash] = answer
        return replace(self, answers=answers)

    def closed(self) -> DirectTrade:
        return replace(self, state=STATE_CLOSED)


@dataclass(frozen=True, slots=True)
class Transaction:
    """Immutable record of a settled trade."""
    buyer_id: str
    seller_id: str
    cusip: str
    original_face: int
    bought_price: Decimal
    timestamp: datetime
    trade_id: str = ""

    def __post_init__(self):
        if not isinstance(self.bought_price, Decimal):
            object.__setattr__(self, 'bought_price', to_decimal(self.bought_price))


# ============================================================================
# LEDGER DOCUMENT
# ============================================================================

@dataclass(frozen=True, slots=True)
class LedgerDocument:
    """
    The aggregate stored under LEDGER_KEY.

    Lookups are linear scans; the document is rewritten whole on every commit.
    """
    bonds: Tuple[Bond, ...] = ()
    trades: Tuple[DirectTrade, ...] = ()
    transactions: Tuple[Transaction, ...] = ()

    def __post_init__(self):
        for name in ('bonds', 'trades', 'transactions'):
            value = getattr(self, name)
            if not isinstance(value, tuple):
                object.__setattr__(self, name, tuple(value))

    # Bonds

    def find_bond(self, uid: str) -> Optional[Bond]:
        for bond in self.bonds:
            if bond.uid == uid:
                return bond
        return None

    def get_bond(self, uid: str) -> Bond:
        bond = self.find_bond(uid)
        if bond is None:
            raise BondNotFound(f"Bond {uid} does not exist")
        return bond

    def bonds_for_cusip(self, cusip: str) -> List[Bond]:
        return [b for b in self.bonds if b.cusip == cusip]

    def with_bond(self, bond: Bond) -> LedgerDocument:
        """Insert or replace a bond by uid, keeping document order."""
        bonds = list(self.bonds)
        for i, existing in enumerate(bonds):
            if existing.uid == bond.uid:
                bonds[i] = bond
                return replace(self, bonds=tuple(bonds))
        bonds.append(bond)
        return replace(self, bonds=tuple(bonds))

    def without_bond(self, uid: str) -> LedgerDocument:
        self.get_bond(uid)
        return replace(self, bonds=tuple(b for b in self.bonds if b.uid != uid))

    # Trades

    def find_trade(self, trade_id: str) -> Optional[DirectTrade]:
        for trade in self.trades:
            if trade.trade_id == trade_id:
                return trade
        return None

    def get_trade(self, trade_id: str) -> DirectTrade:
        trade = self.find_trade(trade_id)
        if trade is None:
            raise TradeNotFound(f"Direct trade {trade_id} not found")
        return trade

    def with_trade(self, trade: DirectTrade) -> LedgerDocument:
        """Insert or replace a trade by id, keeping document order."""
        trades = list(self.trades)
        for i, existing in enumerate(trades):
            if existing.trade_id == trade.trade_id:
                trades[i] = trade
                return replace(self, trades=tuple(trades))
        trades.append(trade)
        return replace(self, trades=tuple(trades))

    # Transactions

    def with_transaction(self, tx: Transaction) -> LedgerDocument:
        return replace(self, transactions=self.transactions + (tx,))


EMPTY_DOCUMENT = LedgerDocument()
