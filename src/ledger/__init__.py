"""Ledger submission components.

This package derives entry payloads from records and submits them to the
external ledger one at a time with sequence and gas handling.
"""
