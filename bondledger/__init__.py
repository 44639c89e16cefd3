"""
bondledger - Bilateral Bond Trading on a Shared Ledger

Bonds and direct trades live in one public ledger document; each organization
keeps its reserve prices and identity secret in a private partition.
Ownership is recorded under pseudo-identity hashes, never organization names.

Usage:
    from bondledger import BondTradingService, Network

    network = Network()
    service = BondTradingService(network.state)

    seller = network.caller("Org1MSP")
    buyer = network.caller("Org2MSP")
    service.set_secret(seller)
    service.set_secret(buyer)

    uid = service.create_bond(seller, {"bond": "FR RA7777", "cusip": "US123", "originalFace": 1000})
    seller_hash = service.get_all_your_bonds(seller)[0].bond.owner_hash

    trade_id = service.create_trade(buyer, "US123", 1000, "99.5")
    service.submit_seller_answer(seller, trade_id, seller_hash, "yes")
    tx = service.submit_buyer_answer(buyer, trade_id, seller_hash, "yes")
"""

# Core types
from .core import (
    Bond,
    BondSpec,
    BondHolding,
    PrivateBondExtension,
    Response,
    Answer,
    DirectTrade,
    Transaction,
    LedgerDocument,
    TradingConfig,
    StateStore,
    LedgerError,
    NotFound,
    BondNotFound,
    TradeNotFound,
    PrivateBondNotFound,
    DuplicateAsset,
    Unauthorized,
    SecretNotSet,
    TradeClosed,
    SettlementFailed,
    StoreConflict,
    EncodingError,
    LEDGER_KEY,
    SECRET_KEY,
    PRIVATE_BONDS_KEY,
    STATE_OPEN,
    STATE_CLOSED,
    RESPONSE_YES,
    RESPONSE_NO,
    RESPONSE_COUNTER,
    RESPONSE_NONE,
    EMPTY_DOCUMENT,
    DEFAULT_CONFIG,
)

# Platform stand-ins
from .store import (
    InMemoryStateStore,
    PrivateDataStore,
    PrivatePartition,
    ClientIdentity,
    CallerContext,
    Network,
)

# Identity
from .identity import (
    Credentials,
    compute_pseudonym,
    set_secret,
    load_credentials,
    derive_owner_hash,
    is_owner,
    holds,
)

# Ledger document
from .ledger import TradeLedger, LedgerSnapshot, retry_on_conflict

# Wire format
from .codec import encode_document, decode_document, decode_bond_spec, decode_bonds

# Registry
from .registry import BondRegistry

# Negotiation
from .negotiation import (
    TradeNegotiationEngine,
    open_trade,
    record_seller_answer,
    record_buyer_answer,
    withdraw_trade,
    settle,
    open_trades_for,
    trades_by,
)

# Operation surface
from .service import BondTradingService

__all__ = [
    # Core
    'Bond', 'BondSpec', 'BondHolding', 'PrivateBondExtension',
    'Response', 'Answer', 'DirectTrade', 'Transaction', 'LedgerDocument',
    'TradingConfig', 'StateStore',
    'LedgerError', 'NotFound', 'BondNotFound', 'TradeNotFound', 'PrivateBondNotFound',
    'DuplicateAsset', 'Unauthorized', 'SecretNotSet', 'TradeClosed',
    'SettlementFailed', 'StoreConflict', 'EncodingError',
    'LEDGER_KEY', 'SECRET_KEY', 'PRIVATE_BONDS_KEY',
    'STATE_OPEN', 'STATE_CLOSED',
    'RESPONSE_YES', 'RESPONSE_NO', 'RESPONSE_COUNTER', 'RESPONSE_NONE',
    'EMPTY_DOCUMENT', 'DEFAULT_CONFIG',
    # Platform
    'InMemoryStateStore', 'PrivateDataStore', 'PrivatePartition',
    'ClientIdentity', 'CallerContext', 'Network',
    # Identity
    'Credentials', 'compute_pseudonym', 'set_secret', 'load_credentials',
    'derive_owner_hash', 'is_owner', 'holds',
    # Ledger
    'TradeLedger', 'LedgerSnapshot', 'retry_on_conflict',
    # Codec
    'encode_document', 'decode_document', 'decode_bond_spec', 'decode_bonds',
    # Registry
    'BondRegistry',
    # Negotiation
    'TradeNegotiationEngine', 'open_trade', 'record_seller_answer',
    'record_buyer_answer', 'withdraw_trade', 'settle',
    'open_trades_for', 'trades_by',
    # Service
    'BondTradingService',
]

__version__ = '1.0.0'
