"""
registry.py - Public bond records and private reserve-price extensions

ARCHITECTURE:
=============

1. PURE TRANSITIONS (register_bond, replace_bond, remove_bond, seed_bonds):
   - Take a LedgerDocument and explicit inputs, return a new LedgerDocument
   - No store access, safe to re-run after a StoreConflict

2. PRIVATE PARTITION HELPERS (load_private_bonds, store_private_bond, ...):
   - Read and write the caller's own collection only
   - Written after the ledger commit, never before

3. BondRegistry:
   - Combines credentials, one ledger transact() and the partition writes

A bond's reserve price is private data. It is stored in the owner's partition
keyed by the bond uid and never appears in the public document. Extensions
whose bond no longer exists (or was sold) are left in place and simply ignored.
"""

from __future__ import annotations
from decimal import Decimal
from typing import Dict, Iterable, List, Optional
import uuid

from .core import (
    Bond, BondHolding, BondSpec, LedgerDocument, PrivateBondExtension, Transaction,
    PRIVATE_BONDS_KEY, DEFAULT_CONFIG, TradingConfig,
    DuplicateAsset, EncodingError, PrivateBondNotFound, Unauthorized,
    to_decimal,
)
from .codec import decode_private_bonds, encode_private_bonds
from .identity import Credentials, load_credentials
from .ledger import TradeLedger
from .store import CallerContext


def generate_uid() -> str:
    return str(uuid.uuid4())


# ============================================================================
# PURE TRANSITIONS
# ============================================================================

def check_not_duplicate(doc: LedgerDocument, bond: Bond, ignore_uid: Optional[str] = None) -> None:
    """
    Raise DuplicateAsset if bond's uid or (cusip, name) key is already taken.

    ignore_uid excludes the bond being edited from the natural-key check.
    """
    if ignore_uid is None and doc.find_bond(bond.uid) is not None:
        raise DuplicateAsset(f"The bond with uid {bond.uid} already exists")
    for existing in doc.bonds:
        if existing.uid == ignore_uid:
            continue
        if existing.natural_key == bond.natural_key:
            raise DuplicateAsset(
                f"The bond {bond.name!r} with Cusip {bond.cusip} already exists as {existing.uid}"
            )


def register_bond(doc: LedgerDocument, bond: Bond) -> LedgerDocument:
    check_not_duplicate(doc, bond)
    return doc.with_bond(bond)


def seed_bonds(doc: LedgerDocument, bonds: Iterable[Bond]) -> LedgerDocument:
    """
    Add several pre-built bonds to an empty document.

    Raises:
        DuplicateAsset: If the document already holds bonds, trades or
            transactions, or on the first duplicate within the batch
    """
    if doc.bonds or doc.trades or doc.transactions:
        raise DuplicateAsset("The ledger is already initialized")
    for bond in bonds:
        doc = register_bond(doc, bond)
    return doc


def replace_bond(doc: LedgerDocument, spec: BondSpec, credentials: Credentials) -> LedgerDocument:
    """
    Overwrite a bond's public fields. The owner hash is kept as-is.

    Raises:
        BondNotFound: If spec.uid does not exist
        Unauthorized: If the caller does not hold the bond
        DuplicateAsset: If the edit collides with another bond's natural key
    """
    existing = doc.get_bond(spec.uid)
    if not credentials.holds(existing.owner_hash, doc.trades):
        raise Unauthorized(f"You are not the owner of bond {spec.uid}")
    updated = spec.to_bond(existing.uid, existing.owner_hash)
    check_not_duplicate(doc, updated, ignore_uid=existing.uid)
    return doc.with_bond(updated)


def remove_bond(doc: LedgerDocument, uid: str, credentials: Credentials) -> LedgerDocument:
    existing = doc.get_bond(uid)
    if not credentials.holds(existing.owner_hash, doc.trades):
        raise Unauthorized(f"You are not the owner of bond {uid}")
    return doc.without_bond(uid)


# ============================================================================
# PRIVATE PARTITION HELPERS
# ============================================================================

def load_private_bonds(caller: CallerContext) -> List[PrivateBondExtension]:
    return decode_private_bonds(caller.partition.get(PRIVATE_BONDS_KEY))


def private_bonds_by_uid(caller: CallerContext) -> Dict[str, PrivateBondExtension]:
    return {ext.uid: ext for ext in load_private_bonds(caller)}


def store_private_bond(caller: CallerContext, extension: PrivateBondExtension) -> None:
    """Insert or replace the caller's extension for extension.uid."""
    extensions = [e for e in load_private_bonds(caller) if e.uid != extension.uid]
    extensions.append(extension)
    caller.partition.put(PRIVATE_BONDS_KEY, encode_private_bonds(extensions))


def discard_private_bond(caller: CallerContext, uid: str) -> None:
    extensions = load_private_bonds(caller)
    remaining = [e for e in extensions if e.uid != uid]
    if len(remaining) != len(extensions):
        caller.partition.put(PRIVATE_BONDS_KEY, encode_private_bonds(remaining))


def pair_with_private(bonds: Iterable[Bond], caller: CallerContext) -> List[BondHolding]:
    """Pair each bond with the caller's extension. A missing extension is not an error."""
    private = private_bonds_by_uid(caller)
    return [BondHolding(bond=b, private=private.get(b.uid)) for b in bonds]


# ============================================================================
# REGISTRY
# ============================================================================

class BondRegistry:
    """
    Create, read, edit and delete bonds.

    Each mutating method performs exactly one ledger read-modify-write and
    raises StoreConflict if it lost a race; retrying is the caller's job.
    """

    def __init__(self, ledger: TradeLedger, config: TradingConfig = DEFAULT_CONFIG):
        self.ledger = ledger
        self.config = config

    # ========================================================================
    # MUTATIONS
    # ========================================================================

    def create_bond(
        self,
        spec: BondSpec,
        caller: CallerContext,
        reserve_price: Optional[Decimal] = None,
    ) -> str:
        """
        Record a new bond owned by the caller.

        Args:
            spec: Public bond fields; spec.uid is generated when empty
            caller: Invoking organization
            reserve_price: Stored only in the caller's private partition

        Returns:
            The bond uid

        Raises:
            DuplicateAsset: If the uid or (cusip, name) key exists
            SecretNotSet: If the caller has no identity secret
        """
        credentials = load_credentials(caller)
        if reserve_price is not None:
            reserve_price = to_decimal(reserve_price)
        uid = spec.uid or generate_uid()
        bond = spec.to_bond(uid, credentials.owner_hash)

        self.ledger.transact(lambda doc: (register_bond(doc, bond), uid))

        if reserve_price is not None:
            store_private_bond(caller, PrivateBondExtension(uid=uid, reserve_price=reserve_price))
        return uid

    def init_ledger(self, bonds: Iterable[Bond]) -> int:
        """Seed the ledger with pre-built bonds. Returns the number added."""
        bonds = list(bonds)
        self.ledger.transact(lambda doc: (seed_bonds(doc, bonds), None))
        return len(bonds)

    def edit_bond(self, spec: BondSpec, caller: CallerContext) -> Bond:
        if not spec.uid:
            raise EncodingError("EditBond requires the bond uid")
        credentials = load_credentials(caller)

        def transition(doc: LedgerDocument):
            new_doc = replace_bond(doc, spec, credentials)
            return new_doc, new_doc.get_bond(spec.uid)

        return self.ledger.transact(transition)

    def delete_bond(self, uid: str, caller: CallerContext) -> None:
        credentials = load_credentials(caller)
        self.ledger.transact(lambda doc: (remove_bond(doc, uid, credentials), None))
        discard_private_bond(caller, uid)

    def update_reserve_price(self, uid: str, caller: CallerContext, reserve_price) -> PrivateBondExtension:
        """
        Replace the caller's reserve price for a bond it holds.

        Only the private partition is written; the public document is read to
        check ownership.
        """
        credentials = load_credentials(caller)
        doc = self.ledger.document()
        bond = doc.get_bond(uid)
        if not credentials.holds(bond.owner_hash, doc.trades):
            raise Unauthorized(f"You are not the owner of bond {uid}")
        extension = PrivateBondExtension(uid=uid, reserve_price=to_decimal(reserve_price))
        store_private_bond(caller, extension)
        return extension

    # ========================================================================
    # QUERIES
    # ========================================================================

    def get_bond(self, cusip: str, caller: CallerContext) -> List[BondHolding]:
        """Every bond with the cusip, each with the caller's private data if it has any."""
        return pair_with_private(self.ledger.document().bonds_for_cusip(cusip), caller)

    def get_all_bonds(self) -> List[Bond]:
        return self.ledger.bonds()

    def get_all_transactions(self) -> List[Transaction]:
        return self.ledger.transactions()

    def get_all_your_bonds(self, caller: CallerContext) -> List[BondHolding]:
        credentials = load_credentials(caller)
        doc = self.ledger.document()
        mine = [b for b in doc.bonds if credentials.holds(b.owner_hash, doc.trades)]
        return pair_with_private(mine, caller)

    def get_private_bonds(self, caller: CallerContext) -> List[PrivateBondExtension]:
        return load_private_bonds(caller)

    def get_private_bond(self, uid: str, caller: CallerContext) -> PrivateBondExtension:
        extension = private_bonds_by_uid(caller).get(uid)
        if extension is None:
            raise PrivateBondNotFound(f"Private bond with uid {uid} not found")
        return extension
