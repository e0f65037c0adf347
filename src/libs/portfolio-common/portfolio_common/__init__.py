"""Shared contracts of the position ledger: events, event store, reference data, prices and plumbing."""
