"""
Installment Financing Engine

Flat-rate amortization, installment payment application and a per-customer
miscellaneous balance ledger. All financial math uses Decimal.
"""

__version__ = "1.0.0"
