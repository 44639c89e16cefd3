"""
conftest.py - Shared pytest fixtures for bond trading tests

Provides common fixtures used across unit, functional and conformance tests:
- A network with three organizations whose secrets are already set
- A service driven by a deterministic stepping clock
- A listed bond owned by Org1
"""

import pytest
from decimal import Decimal

from bondledger import Network, derive_owner_hash

from tests.helpers import bond_payload, make_service, make_org


# =============================================================================
# BASIC FIXTURES
# =============================================================================

@pytest.fixture
def network():
    """Empty network: world state plus private collections."""
    return Network()


@pytest.fixture
def service(network):
    """Service whose clock ticks one second per timestamp."""
    return make_service(network)


# =============================================================================
# ORGANIZATION FIXTURES
# =============================================================================

@pytest.fixture
def org1(network, service):
    """Seller organization with its secret set."""
    return make_org(network, service, "Org1MSP", "org1-secret")


@pytest.fixture
def org2(network, service):
    """Buyer organization with its secret set."""
    return make_org(network, service, "Org2MSP", "org2-secret")


@pytest.fixture
def org3(network, service):
    """Third organization with its secret set."""
    return make_org(network, service, "Org3MSP", "org3-secret")


@pytest.fixture
def org1_hash(org1):
    return derive_owner_hash(org1)


# =============================================================================
# BOND FIXTURES
# =============================================================================

@pytest.fixture
def listed_bond(service, org1):
    """A 1000 face US123 lot owned by Org1 with a private reserve price of 98.75."""
    return service.create_bond(org1, bond_payload(), reserve_price=Decimal("98.75"))
