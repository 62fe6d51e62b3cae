"""
Freelancer Tax Ledger - Source Package

Income ledger and tax computation engine for self-employed workers.
Records periodic income, computes withheld tax under a selectable
rate regime and keeps running totals in sync with a remote store.

DESIGN PRINCIPLES:
1. User commits → Engine validates → Store persists
2. Nothing is overwritten without explicit confirmation
3. Bad input degrades to zero, never to an exception
4. Every mutation is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Freelancer Tax Team"
