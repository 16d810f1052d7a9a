"""
Lending Engine

Pure accrual, amortization and snapshot computations for a private lending
ledger. All financial math uses Decimal; nothing in this package performs I/O.
"""

__version__ = "1.0.0"
