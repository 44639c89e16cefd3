#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: Bilateral Bond Trading Step by Step

Two organizations trade a bond lot through a shared ledger document while
keeping their identities and reserve prices private. Press Enter to advance.

WHAT YOU'LL LEARN:
  1-3:  Setup        - Secrets, pseudo-identities, listing a bond
  4-6:  Negotiation  - Bidding, seller and buyer answers, settlement
  7-8:  Safety       - Rejected callers, conflicting writes

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
import itertools
import sys

from bondledger import (
    BondTradingService, Network, TradingConfig,
    Unauthorized, StoreConflict, TradeClosed,
    derive_owner_hash, load_credentials, record_buyer_answer,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    start_time: datetime = datetime(2025, 1, 1, 9, 0, tzinfo=timezone.utc)

    bond_name: str = "FR RA7777"
    cusip: str = "3133KYXX1"
    original_face: int = 1_000_000
    reserve_price: Decimal = Decimal("98.75")
    bid_price: Decimal = Decimal("99.125")


CONFIG = DemoConfig()

QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    print(f"\n--- {text} ---\n")


def demo_clock():
    """One minute per recorded timestamp, starting at CONFIG.start_time."""
    ticks = itertools.count()
    return lambda: CONFIG.start_time + timedelta(minutes=next(ticks))


# ============================================================================
# PHASE 1: SETUP (Steps 1-3)
# ============================================================================

def step_01_network():
    step_header(1, "The Network",
        "Create a shared world state and two organizations.")

    print("""
    The public ledger is ONE JSON document: bonds, direct trades, transactions.
    Every organization also has a private partition only it can read.
    """)

    network = Network()
    service = BondTradingService(network.state, TradingConfig(verbose=True, clock=demo_clock()))
    seller = network.caller("Org1MSP", "x509::CN=trader,O=Org1")
    buyer = network.caller("Org2MSP", "x509::CN=trader,O=Org2")

    print(f"Seller collection: {seller.partition.collection}")
    print(f"Buyer collection:  {buyer.partition.collection}")
    return network, service, seller, buyer


def step_02_secrets(service, seller, buyer):
    step_header(2, "Secrets and Pseudo-Identities",
        "See how organizations appear in the ledger without being named.")

    service.set_secret(seller)
    service.set_secret(buyer)

    section_header("Owner hashes")
    print(f"Org1 owner hash: {derive_owner_hash(seller)[:16]}...")
    print(f"Org2 owner hash: {derive_owner_hash(buyer)[:16]}...")
    print("""
    owner_hash = sha256([secret, identity token]). Only the holder of the
    secret can recompute it, so only Org1 can prove it owns Org1's bonds.
    """)


def step_03_list_bond(network, service, seller, buyer):
    step_header(3, "Listing a Bond",
        "Create a bond whose reserve price stays in the seller's partition.")

    uid = service.create_bond(seller, {
        "bond": CONFIG.bond_name,
        "cusip": CONFIG.cusip,
        "originalFace": CONFIG.original_face,
        "classTags": ["passthrough", "MBS 30yr"],
    }, reserve_price=CONFIG.reserve_price)

    [as_seller] = service.get_bond(seller, CONFIG.cusip)
    [as_buyer] = service.get_bond(buyer, CONFIG.cusip)
    print(f"Seller sees reserve: {as_seller.private.reserve_price}")
    print(f"Buyer sees reserve:  {as_buyer.private}")

    raw, version = network.state.get_state("ledger")
    print(f"Public document v{version}, {len(raw)} bytes, "
          f"contains reserve price: {str(CONFIG.reserve_price).encode() in raw}")
    return uid


# ============================================================================
# PHASE 2: NEGOTIATION (Steps 4-6)
# ============================================================================

def step_04_bid(service, seller, buyer):
    step_header(4, "Bidding",
        "Open a direct trade. The bidder hash is salted with the trade time.")

    trade_id = service.create_trade(buyer, CONFIG.cusip, CONFIG.original_face, CONFIG.bid_price)
    trade = service.engine.get_trade(trade_id)
    print(f"Trade {trade_id[:8]}... created at {trade.created_at.isoformat()}")
    print(f"Bidder hash:      {trade.bidder_hash[:16]}...")
    print(f"Buyer owner hash: {derive_owner_hash(buyer)[:16]}...  (unlinkable)")

    section_header("Seller view")
    for t in service.check_direct_trades(seller, CONFIG.cusip):
        print(f"  open bid: {t.original_face} @ {t.bid_price}")
    return trade_id


def step_05_answers(service, seller, buyer, trade_id):
    step_header(5, "Answers",
        "A seller answer clears the buyer's answer; the buyer must re-confirm.")

    seller_hash = service.get_all_your_bonds(seller)[0].bond.owner_hash
    service.submit_seller_answer(seller, trade_id, seller_hash, "counter")
    service.submit_buyer_answer(buyer, trade_id, seller_hash, "counter")
    service.submit_seller_answer(seller, trade_id, seller_hash, "yes")

    answer = service.engine.get_trade(trade_id).answer_for(seller_hash)
    print(f"Seller response: {answer.seller_response.value!r}")
    print(f"Buyer response:  {answer.buyer_response.value!r}  (cleared)")
    return seller_hash


def step_06_settlement(service, seller, buyer, trade_id, seller_hash):
    step_header(6, "Settlement",
        "Mutual 'yes' moves the bond, closes the trade and records a Transaction.")

    tx = service.submit_buyer_answer(buyer, trade_id, seller_hash, "yes")
    print(f"Transaction: {tx.original_face} {tx.cusip} @ {tx.bought_price} at {tx.timestamp.isoformat()}")
    print(f"Seller holds: {len(service.get_all_your_bonds(seller))} bonds")
    print(f"Buyer holds:  {len(service.get_all_your_bonds(buyer))} bonds")


# ============================================================================
# PHASE 3: SAFETY (Steps 7-8)
# ============================================================================

def step_07_rejections(service, seller, trade_id, seller_hash):
    step_header(7, "Rejections",
        "Only the bidder answers as buyer; closed trades accept nothing.")

    for label, call in [
        ("seller answers as buyer", lambda: service.submit_buyer_answer(seller, trade_id, seller_hash, "yes")),
        ("seller answers closed trade", lambda: service.submit_seller_answer(seller, trade_id, seller_hash, "no")),
    ]:
        try:
            call()
        except (Unauthorized, TradeClosed) as e:
            print(f"  {label}: {type(e).__name__}: {e}")


def step_08_conflict(service, seller, buyer):
    step_header(8, "Conflicting Writes",
        "Two writes from the same snapshot: the second is rejected.")

    service.create_bond(seller, {"bond": "FN 0002", "cusip": "3133KYXX2", "originalFace": 500_000})
    trade_id = service.create_trade(buyer, "3133KYXX2", 500_000, "100.5")
    seller_hash = derive_owner_hash(seller)
    service.submit_seller_answer(seller, trade_id, seller_hash, "yes")

    snap = service.ledger.snapshot()
    credentials = load_credentials(buyer)
    first, _ = record_buyer_answer(snap.document, trade_id, seller_hash, "yes", CONFIG.start_time, credentials)
    second, _ = record_buyer_answer(snap.document, trade_id, seller_hash, "no", CONFIG.start_time, credentials)

    service.ledger.commit(first, snap.version)
    try:
        service.ledger.commit(second, snap.version)
    except StoreConflict as e:
        print(f"  second write: StoreConflict: {e}")


def main():
    print("=" * 70)
    print("       BOND LEDGER - INTERACTIVE TUTORIAL")
    print("=" * 70)
    if QUICK_MODE:
        print("Running in QUICK mode (no pauses)")
    wait_for_enter()

    network, service, seller, buyer = step_01_network()
    wait_for_enter()

    step_02_secrets(service, seller, buyer)
    wait_for_enter()

    step_03_list_bond(network, service, seller, buyer)
    wait_for_enter()

    trade_id = step_04_bid(service, seller, buyer)
    wait_for_enter()

    seller_hash = step_05_answers(service, seller, buyer, trade_id)
    wait_for_enter()

    step_06_settlement(service, seller, buyer, trade_id, seller_hash)
    wait_for_enter()

    step_07_rejections(service, seller, trade_id, seller_hash)
    wait_for_enter()

    step_08_conflict(service, seller, buyer)

    print("\n" + "=" * 70)
    print("       TUTORIAL COMPLETE!")
    print("=" * 70)
    print("""
    Next steps:
      - See bondledger/negotiation.py for the trade state machine
      - Run tests: pytest tests/
    """)


if __name__ == "__main__":
    main()
