"""
Passbook - Source Package

A local record keeper for personal bank accounts, organised with
coloured tags and a manual display order, with CSV export/import.

DESIGN PRINCIPLES:
1. Every write path enforces the same validation and duplicate rules
2. The account <-> tag relationship is always consistent from both sides
3. A bulk import never corrupts already-saved data
4. Every change is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Passbook Team"
