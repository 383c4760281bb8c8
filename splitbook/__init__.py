"""
Splitbook - Source Package

Balance engine for a personal expense tracker with bill splitting and
informal borrow/lend records.

DESIGN PRINCIPLES:
1. Balances are recomputed from source records on every read
2. Money is fixed-point, never float
3. Bad records are dropped and reported, never silently summed
4. Store failures surface loudly - no partial totals
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Splitbook Team"
