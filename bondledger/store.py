"""
store.py - In-memory stand-ins for the hosting platform

InMemoryStateStore plays the replicated world state: a versioned key-value
map that rejects writes carrying a stale version (optimistic concurrency).

PrivateDataStore plays the implicit per-organization collections. A
PrivatePartition is the view of a single collection; CallerContext bundles it
with the caller's identity and the transient map of the request.

Thread Safety:
    Not thread-safe. Tests model concurrency by interleaving reads and writes.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Tuple

from .core import (
    IMPLICIT_COLLECTION_PREFIX,
    StoreConflict,
)


class InMemoryStateStore:
    """
    Versioned key-value store implementing the StateStore protocol.

    Each key carries a version that starts at 0 (absent) and increases by one
    on every successful put_state().
    """

    def __init__(self):
        self._values: Dict[str, bytes] = {}
        self._versions: Dict[str, int] = {}

    def get_state(self, key: str) -> Tuple[Optional[bytes], int]:
        return self._values.get(key), self._versions.get(key, 0)

    def put_state(self, key: str, value: bytes, expected_version: int) -> int:
        current = self._versions.get(key, 0)
        if current != expected_version:
            raise StoreConflict(
                f"Key {key!r} is at version {current}, write expected {expected_version}"
            )
        self._values[key] = bytes(value)
        self._versions[key] = current + 1
        return current + 1

    def version(self, key: str) -> int:
        return self._versions.get(key, 0)


@dataclass(frozen=True, slots=True)
class ClientIdentity:
    """
    Identity of the invoking organization as resolved by the platform.

    Attributes:
        msp_id: Organization (membership service provider) id, e.g. "Org1MSP".
        client_id: Identity token of the invoking client.
    """
    msp_id: str
    client_id: str

    def __post_init__(self):
        if not self.msp_id or not self.msp_id.strip():
            raise ValueError("ClientIdentity msp_id cannot be empty")
        if not self.client_id or not self.client_id.strip():
            raise ValueError("ClientIdentity client_id cannot be empty")

    @property
    def collection(self) -> str:
        return IMPLICIT_COLLECTION_PREFIX + self.msp_id


class PrivatePartition:
    """Key-value view of one organization's private collection."""

    def __init__(self, collection: str, data: Dict[str, bytes]):
        self.collection = collection
        self._data = data

    def get(self, key: str) -> Optional[bytes]:
        return self._data.get(key)

    def put(self, key: str, value: bytes) -> None:
        self._data[key] = bytes(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self):
        return sorted(self._data)


class PrivateDataStore:
    """All implicit organization collections of a network."""

    def __init__(self):
        self._collections: Dict[str, Dict[str, bytes]] = {}

    def partition_for(self, identity: ClientIdentity) -> PrivatePartition:
        """Return the caller's own collection. There is no way to open another org's."""
        data = self._collections.setdefault(identity.collection, {})
        return PrivatePartition(identity.collection, data)


@dataclass(frozen=True)
class CallerContext:
    """
    Everything the platform hands an operation about its caller.

    transient carries out-of-band request data (e.g. the reserve price) that
    must never be written to the public ledger.
    """
    identity: ClientIdentity
    partition: PrivatePartition
    transient: Mapping[str, bytes] = field(default_factory=dict)

    @property
    def msp_id(self) -> str:
        return self.identity.msp_id


class Network:
    """
    A world state plus private collections shared by several organizations.

    Example:
        network = Network()
        org1 = network.caller("Org1MSP", "x509::CN=user1")
        org2 = network.caller("Org2MSP", "x509::CN=user2")
    """

    def __init__(self, state: Optional[InMemoryStateStore] = None):
        self.state = state or InMemoryStateStore()
        self.private = PrivateDataStore()

    def caller(
        self,
        msp_id: str,
        client_id: Optional[str] = None,
        transient: Optional[Mapping[str, bytes]] = None,
    ) -> CallerContext:
        identity = ClientIdentity(msp_id, client_id or f"x509::CN=admin,O={msp_id}")
        return CallerContext(
            identity=identity,
            partition=self.private.partition_for(identity),
            transient=dict(transient or {}),
        )
