"""
identity.py - Pseudo-identity hashes and ownership checks

An organization never appears by name in the public ledger. Bonds and trades
carry a pseudo-identity hash instead:

    owner_hash  = sha256(json([secret, client_id]))
    bidder_hash = sha256(json([secret, client_id, created_at]))

The secret lives only in the organization's private partition, so only that
organization can recompute its hashes. The check is secret possession, not a
verifiable signature: anyone who learns the secret and the identity token can
claim the holdings.

Salting bidder hashes with the trade's creation time makes two trades by the
same organization unlinkable to each other and to its holdings.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional
import hashlib
import json
import secrets

from .core import (
    DirectTrade,
    SECRET_KEY,
    SecretNotSet,
    canonical_time,
)
from .store import CallerContext


def compute_pseudonym(secret: str, client_id: str, timestamp: Optional[datetime] = None) -> str:
    """
    Derive a pseudo-identity hash. Pure function.

    Same inputs always produce the same hash; a different timestamp produces a
    different one. The preimage is a JSON array, so no choice of secret or
    client id can collide with another pair.
    """
    parts = [secret, client_id]
    if timestamp is not None:
        parts.append(canonical_time(timestamp))
    preimage = json.dumps(parts, separators=(",", ":"))
    return hashlib.sha256(preimage.encode()).hexdigest()


@dataclass(frozen=True, slots=True)
class Credentials:
    """
    A caller's secret and identity token, loaded once per request.

    Transition functions take Credentials instead of a CallerContext so they
    stay pure: no partition reads between document read and document write.
    """
    secret: str
    client_id: str

    def pseudonym(self, timestamp: Optional[datetime] = None) -> str:
        return compute_pseudonym(self.secret, self.client_id, timestamp)

    @property
    def owner_hash(self) -> str:
        return self.pseudonym()

    def is_owner(self, candidate: str) -> bool:
        return candidate == self.owner_hash

    def is_bidder(self, trade: DirectTrade) -> bool:
        return trade.bidder_hash == self.pseudonym(trade.created_at)

    def holds(self, candidate: str, trades: Iterable[DirectTrade]) -> bool:
        """
        True if candidate is one of the caller's pseudonyms.

        Covers the plain owner hash and the bidder hash of every trade the
        caller created, since settlement hands the bond to the bidder hash.
        """
        if self.is_owner(candidate):
            return True
        return any(t.bidder_hash == candidate and self.is_bidder(t) for t in trades)


# ============================================================================
# PARTITION-BACKED API
# ============================================================================

def set_secret(caller: CallerContext, secret: Optional[str] = None) -> str:
    """
    Store the caller's identity secret in its private partition.

    A random secret is generated when none is given. Replacing the secret
    changes every pseudonym the caller can compute, so bonds held under the
    old secret are no longer recognised as the caller's.
    """
    if secret is None:
        secret = secrets.token_hex(32)
    if not secret:
        raise ValueError("secret cannot be empty")
    caller.partition.put(SECRET_KEY, secret.encode("utf-8"))
    return secret


def load_credentials(caller: CallerContext) -> Credentials:
    """Read the caller's secret. Raises SecretNotSet if SetSecret was never called."""
    raw = caller.partition.get(SECRET_KEY)
    if raw is None:
        raise SecretNotSet(f"{caller.partition.collection} - encryption key not found")
    return Credentials(secret=raw.decode("utf-8"), client_id=caller.identity.client_id)


def derive_owner_hash(caller: CallerContext, timestamp: Optional[datetime] = None) -> str:
    """Pseudo-identity of the caller, optionally bound to a negotiation timestamp."""
    return load_credentials(caller).pseudonym(timestamp)


def is_owner(candidate: str, caller: CallerContext) -> bool:
    """True iff candidate equals the caller's current un-salted owner hash."""
    try:
        credentials = load_credentials(caller)
    except SecretNotSet:
        return False
    return credentials.is_owner(candidate)


def holds(candidate: str, caller: CallerContext, trades: Iterable[DirectTrade]) -> bool:
    """Partition-backed Credentials.holds(); False when the caller has no secret."""
    try:
        credentials = load_credentials(caller)
    except SecretNotSet:
        return False
    return credentials.holds(candidate, trades)
