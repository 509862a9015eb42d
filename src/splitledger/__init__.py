"""Ledger and settlement engine for shared expenses."""
