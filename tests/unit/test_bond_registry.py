"""
test_bond_registry.py - Tests for public bonds and private reserve prices

Tests:
- Pure transitions (register_bond, replace_bond, remove_bond, seed_bonds)
- BondRegistry create / edit / delete / queries
- Reserve prices stay in the owner's partition
"""

import pytest
from datetime import datetime, timezone
from decimal import Decimal

from bondledger import (
    Bond, BondSpec, BondRegistry, Credentials, TradeLedger,
    DuplicateAsset, BondNotFound, PrivateBondNotFound, Unauthorized, SecretNotSet,
    EncodingError, EMPTY_DOCUMENT, LEDGER_KEY, PRIVATE_BONDS_KEY,
    derive_owner_hash, open_trade,
)
from bondledger.registry import (
    register_bond, replace_bond, remove_bond, seed_bonds, check_not_duplicate,
)


SELLER = Credentials("seller-secret", "x509::seller")
OTHER = Credentials("other-secret", "x509::other")
T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)

LISTING = BondSpec(name="FR RA7777", cusip="US123", original_face=1000, class_tags=("passthrough",))


@pytest.fixture
def registry(service):
    return service.registry


# =============================================================================
# PURE TRANSITIONS
# =============================================================================

class TestPureTransitions:

    def test_register_does_not_mutate_input(self):
        bond = LISTING.to_bond("b1", SELLER.owner_hash)
        doc = register_bond(EMPTY_DOCUMENT, bond)
        assert EMPTY_DOCUMENT.bonds == ()
        assert doc.bonds == (bond,)

    def test_duplicate_uid(self):
        doc = register_bond(EMPTY_DOCUMENT, Bond("b1", "A", "US1", 10))
        with pytest.raises(DuplicateAsset, match="uid b1"):
            register_bond(doc, Bond("b1", "B", "US2", 10))

    def test_duplicate_natural_key(self):
        doc = register_bond(EMPTY_DOCUMENT, Bond("b1", "A", "US1", 10))
        with pytest.raises(DuplicateAsset, match="already exists as b1"):
            register_bond(doc, Bond("b2", "A", "US1", 20))

    def test_same_cusip_different_name_allowed(self):
        doc = register_bond(EMPTY_DOCUMENT, Bond("b1", "A", "US1", 10))
        doc = register_bond(doc, Bond("b2", "B", "US1", 10))
        assert len(doc.bonds) == 2

    def test_check_not_duplicate_ignores_edited_bond(self):
        doc = register_bond(EMPTY_DOCUMENT, Bond("b1", "A", "US1", 10))
        check_not_duplicate(doc, Bond("b1", "A", "US1", 20), ignore_uid="b1")

    def test_seed_batch_fails_as_a_whole(self):
        bonds = [Bond("b1", "A", "US1", 10), Bond("b2", "A", "US1", 10)]
        with pytest.raises(DuplicateAsset):
            seed_bonds(EMPTY_DOCUMENT, bonds)

    def test_seed_requires_empty_document(self):
        doc = open_trade(EMPTY_DOCUMENT, "t1", "US1", 10, "99", T0, OTHER)
        with pytest.raises(DuplicateAsset, match="already initialized"):
            seed_bonds(doc, [Bond("b1", "A", "US1", 10)])

    def test_replace_keeps_owner(self):
        doc = register_bond(EMPTY_DOCUMENT, LISTING.to_bond("b1", SELLER.owner_hash))
        edited = BondSpec(name="FR RA7777", cusip="US123", original_face=500, uid="b1")
        doc = replace_bond(doc, edited, SELLER)
        bond = doc.get_bond("b1")
        assert bond.original_face == 500
        assert bond.owner_hash == SELLER.owner_hash
        assert bond.class_tags == ()

    def test_replace_by_non_owner(self):
        doc = register_bond(EMPTY_DOCUMENT, LISTING.to_bond("b1", SELLER.owner_hash))
        with pytest.raises(Unauthorized):
            replace_bond(doc, BondSpec("X", "US123", 1, uid="b1"), OTHER)

    def test_replace_into_existing_natural_key(self):
        doc = register_bond(EMPTY_DOCUMENT, Bond("b1", "A", "US1", 10, SELLER.owner_hash))
        doc = register_bond(doc, Bond("b2", "B", "US1", 10, SELLER.owner_hash))
        with pytest.raises(DuplicateAsset):
            replace_bond(doc, BondSpec("B", "US1", 10, uid="b1"), SELLER)

    def test_remove(self):
        doc = register_bond(EMPTY_DOCUMENT, LISTING.to_bond("b1", SELLER.owner_hash))
        assert remove_bond(doc, "b1", SELLER).bonds == ()
        with pytest.raises(Unauthorized):
            remove_bond(doc, "b1", OTHER)
        with pytest.raises(BondNotFound):
            remove_bond(doc, "b2", SELLER)


# =============================================================================
# REGISTRY: CREATE
# =============================================================================

class TestCreateBond:

    def test_owner_is_caller(self, registry, org1):
        uid = registry.create_bond(LISTING, org1)
        bond = registry.ledger.document().get_bond(uid)
        assert bond.owner_hash == derive_owner_hash(org1)
        assert bond.class_tags == ("passthrough",)

    def test_uid_generated_when_missing(self, registry, org1):
        uid = registry.create_bond(LISTING, org1)
        assert len(uid) == 36

    def test_explicit_uid(self, registry, org1):
        spec = BondSpec("FR RA7777", "US123", 1000, uid="bond-1")
        assert registry.create_bond(spec, org1) == "bond-1"

    def test_reserve_price_is_private(self, registry, network, org1):
        uid = registry.create_bond(LISTING, org1, reserve_price="98.75")
        assert registry.get_private_bond(uid, org1).reserve_price == Decimal("98.75")
        raw, _ = network.state.get_state(LEDGER_KEY)
        assert b"98.75" not in raw
        assert b"reservePrice" not in raw

    def test_without_reserve_price_no_partition_write(self, registry, org1):
        registry.create_bond(LISTING, org1)
        assert org1.partition.get(PRIVATE_BONDS_KEY) is None

    def test_duplicate_rejected(self, registry, org1, org2):
        registry.create_bond(LISTING, org1)
        with pytest.raises(DuplicateAsset):
            registry.create_bond(LISTING, org2)

    def test_requires_secret(self, registry, network):
        with pytest.raises(SecretNotSet):
            registry.create_bond(LISTING, network.caller("Org9MSP"))
        assert registry.get_all_bonds() == []

    def test_duplicate_leaves_private_data_untouched(self, registry, org1):
        registry.create_bond(LISTING, org1, reserve_price="98")
        before = org1.partition.get(PRIVATE_BONDS_KEY)
        with pytest.raises(DuplicateAsset):
            registry.create_bond(LISTING, org1, reserve_price="50")
        assert org1.partition.get(PRIVATE_BONDS_KEY) == before


# =============================================================================
# REGISTRY: EDIT / DELETE
# =============================================================================

class TestEditBond:

    def test_owner_edits(self, registry, org1):
        uid = registry.create_bond(LISTING, org1)
        bond = registry.edit_bond(BondSpec("FR RA7777", "US123", 750, uid=uid), org1)
        assert bond.original_face == 750
        assert bond.owner_hash == derive_owner_hash(org1)
        assert registry.ledger.document().get_bond(uid) == bond

    def test_non_owner_rejected(self, registry, org1, org2):
        uid = registry.create_bond(LISTING, org1)
        with pytest.raises(Unauthorized):
            registry.edit_bond(BondSpec("Stolen", "US123", 1, uid=uid), org2)
        assert registry.ledger.document().get_bond(uid).name == "FR RA7777"

    def test_uid_required(self, registry, org1):
        with pytest.raises(EncodingError, match="uid"):
            registry.edit_bond(LISTING, org1)

    def test_unknown_uid(self, registry, org1):
        with pytest.raises(BondNotFound):
            registry.edit_bond(BondSpec("X", "US1", 1, uid="missing"), org1)


class TestDeleteBond:

    def test_owner_deletes_and_private_discarded(self, registry, org1):
        uid = registry.create_bond(LISTING, org1, reserve_price="98")
        registry.delete_bond(uid, org1)
        assert registry.get_all_bonds() == []
        assert registry.get_private_bonds(org1) == []

    def test_non_owner_rejected(self, registry, org1, org2):
        uid = registry.create_bond(LISTING, org1)
        with pytest.raises(Unauthorized):
            registry.delete_bond(uid, org2)
        assert len(registry.get_all_bonds()) == 1

    def test_unknown_uid(self, registry, org1):
        with pytest.raises(BondNotFound):
            registry.delete_bond("missing", org1)


# =============================================================================
# REGISTRY: RESERVE PRICES AND QUERIES
# =============================================================================

class TestReservePrice:

    def test_update(self, registry, org1):
        uid = registry.create_bond(LISTING, org1, reserve_price="98")
        registry.update_reserve_price(uid, org1, "97.5")
        assert registry.get_private_bond(uid, org1).reserve_price == Decimal("97.5")
        assert len(registry.get_private_bonds(org1)) == 1

    def test_non_owner_cannot_set(self, registry, org1, org2):
        uid = registry.create_bond(LISTING, org1)
        with pytest.raises(Unauthorized):
            registry.update_reserve_price(uid, org2, "1")
        assert registry.get_private_bonds(org2) == []

    def test_missing_private_bond(self, registry, org1):
        uid = registry.create_bond(LISTING, org1)
        with pytest.raises(PrivateBondNotFound):
            registry.get_private_bond(uid, org1)

    def test_other_org_cannot_read_reserve(self, registry, org1, org2):
        uid = registry.create_bond(LISTING, org1, reserve_price="98")
        with pytest.raises(PrivateBondNotFound):
            registry.get_private_bond(uid, org2)


class TestQueries:

    def test_get_bond_pairs_only_callers_private_data(self, registry, org1, org2):
        uid = registry.create_bond(LISTING, org1, reserve_price="98")
        [mine] = registry.get_bond("US123", org1)
        [theirs] = registry.get_bond("US123", org2)
        assert mine.bond.uid == uid
        assert mine.private.reserve_price == Decimal("98")
        assert theirs.bond.uid == uid
        assert theirs.private is None

    def test_get_bond_unknown_cusip_is_empty(self, registry, org1):
        assert registry.get_bond("US999", org1) == []

    def test_get_all_your_bonds(self, registry, org1, org2):
        registry.create_bond(LISTING, org1)
        registry.create_bond(BondSpec("FN 1234", "US456", 200), org2)
        assert [h.bond.cusip for h in registry.get_all_your_bonds(org1)] == ["US123"]
        assert [h.bond.cusip for h in registry.get_all_your_bonds(org2)] == ["US456"]

    def test_get_all_your_bonds_requires_secret(self, registry, network):
        with pytest.raises(SecretNotSet):
            registry.get_all_your_bonds(network.caller("Org9MSP"))

    def test_init_ledger(self, registry, org1):
        bonds = [Bond("b1", "A", "US1", 10, "h1"), Bond("b2", "B", "US2", 20, "h2")]
        assert registry.init_ledger(bonds) == 2
        assert registry.get_all_bonds() == bonds

    def test_init_ledger_duplicate_writes_nothing(self, registry):
        with pytest.raises(DuplicateAsset):
            registry.init_ledger([Bond("b9", "Z", "US9", 1), Bond("b1", "Z", "US9", 1)])
        assert registry.get_all_bonds() == []

    def test_init_ledger_only_on_empty_ledger(self, registry, org1):
        registry.create_bond(LISTING, org1)
        with pytest.raises(DuplicateAsset, match="already initialized"):
            registry.init_ledger([Bond("b9", "Z", "US9", 1, derive_owner_hash(org1))])
        assert [b.name for b in registry.get_all_bonds()] == ["FR RA7777"]

    def test_registry_on_fresh_ledger(self, network):
        registry = BondRegistry(TradeLedger(network.state))
        assert registry.get_all_transactions() == []
