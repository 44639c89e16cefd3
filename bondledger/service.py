"""
service.py - The logical RPC surface of the bond trading contract

BondTradingService is what the hosting platform invokes. Each method takes
the CallerContext first (the platform's view of who is calling), decodes any
JSON payload, routes to BondRegistry or TradeNegotiationEngine and retries the
whole unit of work on StoreConflict.

Only StoreConflict is retried. Every other LedgerError reaches the caller on
the first attempt.

Usage:
    network = Network()
    service = BondTradingService(network.state)

    org1 = network.caller("Org1MSP", transient={"reservePrice": b"98.75"})
    service.set_secret(org1)
    uid = service.create_bond(org1, '{"bond": "FR RA7777", "cusip": "US123", "originalFace": 1000}')
"""

from __future__ import annotations
from datetime import datetime
from typing import List, Optional, Union

from .core import (
    Bond, BondHolding, DirectTrade, LedgerDocument, PrivateBondExtension, Transaction,
    TRANSIENT_RESERVE_PRICE, DEFAULT_CONFIG, TradingConfig,
    StateStore,
    to_decimal,
)
from .codec import decode_bond_spec, decode_bonds, parse_timestamp
from .identity import set_secret
from .ledger import TradeLedger, retry_on_conflict
from .negotiation import TradeNegotiationEngine
from .registry import BondRegistry
from .store import CallerContext


Timestamp = Union[datetime, str, None]


class BondTradingService:
    """
    Operation surface: bonds, direct trades, and the identity secret.

    Args:
        store: World state holding the ledger document
        config: Retry, clock and verbosity settings
    """

    def __init__(self, store: StateStore, config: TradingConfig = DEFAULT_CONFIG):
        self.config = config
        self.ledger = TradeLedger(store, verbose=config.verbose)
        self.registry = BondRegistry(self.ledger, config)
        self.engine = TradeNegotiationEngine(self.ledger, config)

    def _retry(self, operation):
        return retry_on_conflict(operation, self.config.max_retries, self.config.verbose)

    # ========================================================================
    # IDENTITY
    # ========================================================================

    def set_secret(self, ctx: CallerContext, secret: Optional[str] = None) -> None:
        """Store (or replace) the caller's identity secret in its private partition."""
        set_secret(ctx, secret)

    # ========================================================================
    # BONDS
    # ========================================================================

    def create_bond(self, ctx: CallerContext, bond_json, reserve_price=None) -> str:
        """
        Create a bond owned by the caller.

        The reserve price is taken from the argument or, when absent, from the
        transient map entry "reservePrice". It is written only to the caller's
        private partition.
        """
        spec = decode_bond_spec(bond_json)
        if reserve_price is None:
            reserve_price = self._transient_reserve_price(ctx)
        return self._retry(lambda: self.registry.create_bond(spec, ctx, reserve_price))

    def edit_bond(self, ctx: CallerContext, bond_json) -> Bond:
        spec = decode_bond_spec(bond_json)
        return self._retry(lambda: self.registry.edit_bond(spec, ctx))

    def delete_bond(self, ctx: CallerContext, uid: str) -> None:
        self._retry(lambda: self.registry.delete_bond(uid, ctx))

    def init_ledger(self, ctx: CallerContext, bonds_json) -> int:
        """Seed the ledger with a JSON array of complete bond records."""
        bonds = decode_bonds(bonds_json)
        return self._retry(lambda: self.registry.init_ledger(bonds))

    def update_reserve_price(self, ctx: CallerContext, uid: str, reserve_price) -> PrivateBondExtension:
        return self.registry.update_reserve_price(uid, ctx, reserve_price)

    def get_bond(self, ctx: CallerContext, cusip: str) -> List[BondHolding]:
        return self.registry.get_bond(cusip, ctx)

    def get_all_bonds(self, ctx: CallerContext) -> List[Bond]:
        return self.registry.get_all_bonds()

    def get_all_your_bonds(self, ctx: CallerContext) -> List[BondHolding]:
        return self.registry.get_all_your_bonds(ctx)

    def get_all_transactions(self, ctx: CallerContext) -> List[Transaction]:
        return self.registry.get_all_transactions()

    def get_private_bonds(self, ctx: CallerContext) -> List[PrivateBondExtension]:
        return self.registry.get_private_bonds(ctx)

    def get_ledger(self, ctx: CallerContext) -> LedgerDocument:
        return self.ledger.document()

    # ========================================================================
    # DIRECT TRADES
    # ========================================================================

    def create_trade(
        self,
        ctx: CallerContext,
        cusip: str,
        original_face: int,
        bid_price,
        created_at: Timestamp = None,
    ) -> str:
        created = parse_timestamp(created_at, "createdAt")
        bid = to_decimal(bid_price)
        return self._retry(lambda: self.engine.create_trade(
            cusip, original_face, bid, ctx, created_at=created
        ))

    def submit_seller_answer(
        self,
        ctx: CallerContext,
        trade_id: str,
        seller_hash: str,
        value: str,
        timestamp: Timestamp = None,
    ) -> None:
        ts = parse_timestamp(timestamp, "timestamp")
        self._retry(lambda: self.engine.submit_seller_answer(
            trade_id, seller_hash, value, ctx, timestamp=ts
        ))

    def submit_buyer_answer(
        self,
        ctx: CallerContext,
        trade_id: str,
        seller_hash: str,
        value: str,
        timestamp: Timestamp = None,
    ) -> Optional[Transaction]:
        ts = parse_timestamp(timestamp, "timestamp")
        return self._retry(lambda: self.engine.submit_buyer_answer(
            trade_id, seller_hash, value, ctx, timestamp=ts
        ))

    def close_direct_trade(self, ctx: CallerContext, trade_id: str) -> None:
        self._retry(lambda: self.engine.close_direct_trade(trade_id, ctx))

    def check_direct_trades(self, ctx: CallerContext, cusip: str) -> List[DirectTrade]:
        return self.engine.check_direct_trades(cusip)

    def get_your_direct_trades(self, ctx: CallerContext) -> List[DirectTrade]:
        return self.engine.get_your_direct_trades(ctx)

    # ========================================================================
    # HELPERS
    # ========================================================================

    @staticmethod
    def _transient_reserve_price(ctx: CallerContext):
        raw = ctx.transient.get(TRANSIENT_RESERVE_PRICE)
        if raw is None:
            return None
        if isinstance(raw, (bytes, bytearray)):
            raw = raw.decode("utf-8")
        return to_decimal(raw)
