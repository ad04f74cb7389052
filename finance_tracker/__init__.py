"""
Finance Tracker - Source Package

A personal finance tracker: transactions, accounts, categories,
credit cards and tags behind a small REST API, with balances and
reports derived from the transaction ledger.

DESIGN PRINCIPLES:
1. The ledger is the only writer of account balances
2. Validate before mutating, fail visibly
3. Derived numbers are recomputed, never cached
4. Every mutation is audited
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Finance Tracker Team"
