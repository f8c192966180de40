"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the locked-balance ledger.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. invariants.py - locked <= balance, cache mirrors record, aggregate sums locks
2. conservation.py - Transfers and locks never create or destroy value
3. atomicity.py - Rejected actions leave no observable change
4. single_flight.py - At most one live unlock request per holder and asset
5. temporal.py - Maturity gate and forward-only clock

These tests use hypothesis for property-based testing.
"""
