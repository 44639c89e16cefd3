"""
negotiation.py - Direct trade negotiation and settlement

A direct trade is an offer to buy `original_face` of a cusip at `bid_price`.
Holders of that cusip answer it; the bidder answers each holder back.

State machine:

    Open ──(close_direct_trade)──────────────────────────▶ Closed
    Open ──(buyer "yes" on an Answer whose seller said "yes")──▶ Closed + settlement

Closed is terminal.

Negotiation rules:
    - A seller answer always clears the buyer's response on that Answer, so
      the bidder must re-confirm after every change of the seller's position.
    - Settlement is checked only when the buyer answers. If both responses are
      "yes", the seller's bond moves to the bidder hash, the trade closes and a
      Transaction is appended, all in the same document write.

ARCHITECTURE (Pure Function Pattern):
=====================================

1. PURE TRANSITIONS (open_trade, record_seller_answer, record_buyer_answer,
   withdraw_trade, settle):
   - (LedgerDocument, explicit inputs, Credentials) -> new LedgerDocument
   - No store or partition access; safe to re-run on a newer document

2. QUERIES (open_trades_for, trades_by):
   - Pure filters over a document

3. TradeNegotiationEngine:
   - Loads credentials, resolves timestamps, runs a transition inside one
     TradeLedger.transact() cycle
"""

from __future__ import annotations
from datetime import datetime
from typing import List, Optional, Tuple
import uuid

from .core import (
    Answer, Bond, DirectTrade, LedgerDocument, Response, Transaction,
    RESPONSE_VALUES, STATE_OPEN, EMPTY_RESPONSE,
    DEFAULT_CONFIG, TradingConfig,
    DuplicateAsset, EncodingError, SettlementFailed, TradeClosed, Unauthorized,
    to_decimal,
)
from .identity import Credentials, load_credentials
from .ledger import TradeLedger
from .store import CallerContext


def generate_trade_id() -> str:
    return str(uuid.uuid4())


def validate_response_value(value: str) -> str:
    if value not in RESPONSE_VALUES:
        raise EncodingError(
            f"Answer value must be one of {sorted(RESPONSE_VALUES)}, got {value!r}"
        )
    return value


def _open_trade_or_raise(doc: LedgerDocument, trade_id: str) -> DirectTrade:
    trade = doc.get_trade(trade_id)
    if not trade.is_open:
        raise TradeClosed(f"Direct trade {trade_id} is closed")
    return trade


# ============================================================================
# PURE TRANSITIONS
# ============================================================================

def open_trade(
    doc: LedgerDocument,
    trade_id: str,
    cusip: str,
    original_face: int,
    bid_price,
    created_at: datetime,
    credentials: Credentials,
) -> LedgerDocument:
    """Append a new Open trade whose bidder hash is bound to created_at."""
    if doc.find_trade(trade_id) is not None:
        raise DuplicateAsset(f"Direct trade {trade_id} already exists")
    if not cusip or not cusip.strip():
        raise EncodingError("Trade cusip cannot be empty")
    if isinstance(original_face, bool) or not isinstance(original_face, int) or original_face <= 0:
        raise EncodingError(f"Trade originalFace must be a positive integer, got {original_face!r}")
    bid_price = to_decimal(bid_price)
    if bid_price <= 0:
        raise EncodingError(f"Trade bidPrice must be positive, got {bid_price}")
    trade = DirectTrade(
        trade_id=trade_id,
        cusip=cusip,
        original_face=original_face,
        bid_price=bid_price,
        bidder_hash=credentials.pseudonym(created_at),
        created_at=created_at,
        state=STATE_OPEN,
        answers={},
    )
    return doc.with_trade(trade)


def seller_positions(doc: LedgerDocument, cusip: str, credentials: Credentials) -> List[Bond]:
    """Bonds of the cusip currently held by the caller."""
    return [b for b in doc.bonds_for_cusip(cusip) if credentials.holds(b.owner_hash, doc.trades)]


def record_seller_answer(
    doc: LedgerDocument,
    trade_id: str,
    seller_hash: str,
    value: str,
    timestamp: datetime,
    credentials: Credentials,
) -> LedgerDocument:
    """
    Set the seller's response on its Answer and clear the buyer's response.

    Raises:
        TradeNotFound: Unknown trade
        TradeClosed: Trade is Closed
        Unauthorized: Caller holds no bond of the trade's cusip under
            seller_hash, or caller is the trade's own bidder
    """
    validate_response_value(value)
    trade = _open_trade_or_raise(doc, trade_id)

    positions = seller_positions(doc, trade.cusip, credentials)
    if not positions:
        raise Unauthorized(f"You hold no bond with Cusip {trade.cusip}")
    if credentials.is_bidder(trade):
        raise Unauthorized("The bidder cannot answer its own trade as seller")
    if seller_hash not in {b.owner_hash for b in positions}:
        raise Unauthorized(f"Seller hash does not match any of your {trade.cusip} positions")

    answer = Answer(
        seller_hash=seller_hash,
        seller_response=Response(value, timestamp),
        buyer_response=EMPTY_RESPONSE,
    )
    return doc.with_trade(trade.with_answer(answer))


def find_settlement_bond(doc: LedgerDocument, trade: DirectTrade, seller_hash: str) -> Optional[Bond]:
    """
    The seller's lot to deliver: same cusip and original face, owned by seller_hash.

    Lots are never split, so a lot of any other face does not qualify.
    """
    for bond in doc.bonds_for_cusip(trade.cusip):
        if bond.owner_hash == seller_hash and bond.original_face == trade.original_face:
            return bond
    return None


def settle(
    doc: LedgerDocument,
    trade: DirectTrade,
    answer: Answer,
    timestamp: datetime,
) -> Tuple[LedgerDocument, Transaction]:
    """
    Transfer the seller's bond to the bidder, close the trade, record the Transaction.

    `trade` must already carry `answer`. Pure: returns the new document.

    Raises:
        SettlementFailed: If the seller holds no lot of the trade's cusip and face
    """
    bond = find_settlement_bond(doc, trade, answer.seller_hash)
    if bond is None:
        raise SettlementFailed(
            f"Seller holds no {trade.original_face} lot of Cusip {trade.cusip} to settle trade {trade.trade_id}"
        )
    tx = Transaction(
        buyer_id=trade.bidder_hash,
        seller_id=answer.seller_hash,
        cusip=trade.cusip,
        original_face=trade.original_face,
        bought_price=trade.bid_price,
        timestamp=timestamp,
        trade_id=trade.trade_id,
    )
    new_bond = Bond(
        uid=bond.uid,
        name=bond.name,
        cusip=bond.cusip,
        original_face=bond.original_face,
        owner_hash=trade.bidder_hash,
        class_tags=bond.class_tags,
    )
    new_doc = (
        doc.with_bond(new_bond)
        .with_trade(trade.closed())
        .with_transaction(tx)
    )
    return new_doc, tx


def record_buyer_answer(
    doc: LedgerDocument,
    trade_id: str,
    seller_hash: str,
    value: str,
    timestamp: datetime,
    credentials: Credentials,
) -> Tuple[LedgerDocument, Optional[Transaction]]:
    """
    Set the bidder's response to one seller and settle on mutual "yes".

    Returns:
        (new document, Transaction if the trade settled else None)

    Raises:
        TradeNotFound: Unknown trade
        TradeClosed: Trade is Closed
        Unauthorized: Caller is not the trade's bidder
        SettlementFailed: Both said "yes" but the seller's bond is gone
    """
    validate_response_value(value)
    trade = _open_trade_or_raise(doc, trade_id)
    if not credentials.is_bidder(trade):
        raise Unauthorized("You are not the owner of the trade")

    previous = trade.answer_for(seller_hash)
    answer = Answer(
        seller_hash=seller_hash,
        seller_response=previous.seller_response,
        buyer_response=Response(value, timestamp),
    )
    trade = trade.with_answer(answer)

    if answer.agreed:
        return settle(doc, trade, answer, timestamp)
    return doc.with_trade(trade), None


def withdraw_trade(doc: LedgerDocument, trade_id: str, credentials: Credentials) -> LedgerDocument:
    """Close an Open trade without settlement. Only its bidder may do this."""
    trade = _open_trade_or_raise(doc, trade_id)
    if not credentials.is_bidder(trade):
        raise Unauthorized("You are not the owner of the trade")
    return doc.with_trade(trade.closed())


# ============================================================================
# QUERIES
# ============================================================================

def open_trades_for(doc: LedgerDocument, cusip: str) -> List[DirectTrade]:
    return [t for t in doc.trades if t.cusip == cusip and t.is_open]


def trades_by(doc: LedgerDocument, credentials: Credentials) -> List[DirectTrade]:
    """Trades whose bidder hash the caller can reproduce, open or closed."""
    return [t for t in doc.trades if credentials.is_bidder(t)]


# ============================================================================
# ENGINE
# ============================================================================

class TradeNegotiationEngine:
    """
    Runs negotiation transitions against the ledger.

    Every mutating method is one read-modify-write cycle. StoreConflict is
    raised unchanged; wrap calls in retry_on_conflict() to retry.

    Example:
        engine = TradeNegotiationEngine(TradeLedger(store))
        trade_id = engine.create_trade("US123", 1000, "99.5", buyer)
        engine.submit_seller_answer(trade_id, seller_hash, "yes", seller)
        engine.submit_buyer_answer(trade_id, seller_hash, "yes", buyer)
    """

    def __init__(self, ledger: TradeLedger, config: TradingConfig = DEFAULT_CONFIG):
        self.ledger = ledger
        self.config = config
        self.verbose = config.verbose

    def create_trade(
        self,
        cusip: str,
        original_face: int,
        bid_price,
        caller: CallerContext,
        created_at: Optional[datetime] = None,
        trade_id: Optional[str] = None,
    ) -> str:
        credentials = load_credentials(caller)
        created_at = self.config.resolve_time(created_at)
        trade_id = trade_id or generate_trade_id()

        self.ledger.transact(lambda doc: (
            open_trade(doc, trade_id, cusip, original_face, bid_price, created_at, credentials),
            trade_id,
        ))
        if self.verbose:
            print(f"✓ OPENED: trade {trade_id} for {original_face} {cusip} @ {bid_price}")
        return trade_id

    def submit_seller_answer(
        self,
        trade_id: str,
        seller_hash: str,
        value: str,
        caller: CallerContext,
        timestamp: Optional[datetime] = None,
    ) -> None:
        credentials = load_credentials(caller)
        timestamp = self.config.resolve_time(timestamp)
        self.ledger.transact(lambda doc: (
            record_seller_answer(doc, trade_id, seller_hash, value, timestamp, credentials),
            None,
        ))

    def submit_buyer_answer(
        self,
        trade_id: str,
        seller_hash: str,
        value: str,
        caller: CallerContext,
        timestamp: Optional[datetime] = None,
    ) -> Optional[Transaction]:
        """Returns the Transaction when this answer settled the trade."""
        credentials = load_credentials(caller)
        timestamp = self.config.resolve_time(timestamp)
        tx = self.ledger.transact(lambda doc: record_buyer_answer(
            doc, trade_id, seller_hash, value, timestamp, credentials
        ))
        if tx is not None and self.verbose:
            print(f"✓ SETTLED: trade {trade_id}, {tx.original_face} {tx.cusip} @ {tx.bought_price}")
        return tx

    def close_direct_trade(self, trade_id: str, caller: CallerContext) -> None:
        credentials = load_credentials(caller)
        self.ledger.transact(lambda doc: (withdraw_trade(doc, trade_id, credentials), None))
        if self.verbose:
            print(f"✓ CLOSED: trade {trade_id}")

    def check_direct_trades(self, cusip: str) -> List[DirectTrade]:
        return open_trades_for(self.ledger.document(), cusip)

    def get_your_direct_trades(self, caller: CallerContext) -> List[DirectTrade]:
        credentials = load_credentials(caller)
        return trades_by(self.ledger.document(), credentials)

    def get_trade(self, trade_id: str) -> DirectTrade:
        return self.ledger.document().get_trade(trade_id)
