"""Multichain smart-account balances and single-signature supertransactions."""

__version__ = "0.1.0"
