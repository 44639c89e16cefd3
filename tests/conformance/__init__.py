"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the bond trading ledger.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. settlement_atomicity.py - Settlement is one all-or-nothing document write
2. pseudonym_determinism.py - Pseudo-identity hashes are pure and salted by time
3. trade_state.py - Closed is terminal; Transactions only for settled trades
4. authorization.py - Rejected callers leave the ledger untouched
5. optimistic_concurrency.py - Stale writes conflict; retries see the new state
6. privacy.py - Reserve prices and identities never reach the public document

These tests use hypothesis for property-based testing.
"""
