"""
ledger.py - The aggregate ledger document and its read-modify-write cycle

TradeLedger is the only module that writes the public ledger. Every mutation
follows the same cycle:

    1. snapshot(): read the whole document and its store version
    2. apply a pure transition to the in-memory document
    3. commit(): write the whole document back, expecting the version read

If another caller committed in between, the store raises StoreConflict and
nothing is written. retry_on_conflict() repeats the whole cycle against the
refreshed document; every other error is raised on the first attempt.

The document is never cached between operations.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, List, Tuple, TypeVar

from .core import (
    Bond, DirectTrade, LedgerDocument, Transaction,
    LEDGER_KEY,
    StateStore, StoreConflict,
)
from .codec import decode_document, encode_document


T = TypeVar("T")

# A transition takes the current document and returns the new document and
# a result for the caller. Returning the same document object skips the write.
Transition = Callable[[LedgerDocument], Tuple[LedgerDocument, T]]


@dataclass(frozen=True, slots=True)
class LedgerSnapshot:
    """A decoded ledger document together with the store version it was read at."""
    document: LedgerDocument
    version: int


class TradeLedger:
    """
    Load/commit access to the ledger document stored under a single key.

    Example:
        ledger = TradeLedger(InMemoryStateStore())
        snap = ledger.snapshot()
        ledger.commit(snap.document.with_bond(bond), snap.version)
    """

    def __init__(self, store: StateStore, key: str = LEDGER_KEY, verbose: bool = False):
        self.store = store
        self.key = key
        self.verbose = verbose

    # ========================================================================
    # READ
    # ========================================================================

    def snapshot(self) -> LedgerSnapshot:
        raw, version = self.store.get_state(self.key)
        return LedgerSnapshot(document=decode_document(raw), version=version)

    def document(self) -> LedgerDocument:
        return self.snapshot().document

    def bonds(self) -> List[Bond]:
        return list(self.document().bonds)

    def trades(self) -> List[DirectTrade]:
        return list(self.document().trades)

    def transactions(self) -> List[Transaction]:
        return list(self.document().transactions)

    # ========================================================================
    # WRITE
    # ========================================================================

    def commit(self, document: LedgerDocument, expected_version: int) -> int:
        """
        Write the whole document if the stored version is still expected_version.

        Returns:
            The new store version.

        Raises:
            StoreConflict: If the document was committed by someone else since it was read.
        """
        payload = encode_document(document)
        try:
            version = self.store.put_state(self.key, payload, expected_version)
        except StoreConflict:
            if self.verbose:
                print(f"⚠️  CONFLICT: {self.key} moved past version {expected_version}")
            raise
        if self.verbose:
            print(f"✓ COMMITTED: {self.key} v{version} "
                  f"({len(document.bonds)} bonds, {len(document.trades)} trades, "
                  f"{len(document.transactions)} transactions)")
        return version

    def transact(self, transition: Transition) -> T:
        """
        Run one read-modify-write cycle.

        The transition must be pure: it may be re-run on a newer document by
        retry_on_conflict(). If it raises, nothing is written.
        """
        snap = self.snapshot()
        new_document, result = transition(snap.document)
        if new_document is not snap.document:
            self.commit(new_document, snap.version)
        return result


def retry_on_conflict(operation: Callable[[], T], attempts: int = 3, verbose: bool = False) -> T:
    """
    Call operation(), repeating it when it raises StoreConflict.

    Args:
        operation: A complete read-modify-write unit of work.
        attempts: Total number of tries before the conflict is surfaced.

    Raises:
        StoreConflict: If every attempt conflicted.
    """
    if attempts < 1:
        raise ValueError(f"attempts must be at least 1, got {attempts}")
    for attempt in range(1, attempts):
        try:
            return operation()
        except StoreConflict:
            if verbose:
                print(f"⚠️  RETRY: attempt {attempt + 1}/{attempts}")
    return operation()
