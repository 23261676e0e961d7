"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of every domain ledger.

The tests are organized by invariant:
1. atomicity.py - All-or-nothing mutation semantics
2. holdings.py - Positions stay positive and cash is fully accounted for
3. round_trip.py - A reloaded snapshot reproduces the saved state

These tests use hypothesis for property-based testing.
"""
