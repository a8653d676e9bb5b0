"""
Zenfolio - Source Package

A personal investment ledger for stock and mutual fund transactions,
backed by a user-supplied Supabase project with live updates.

DESIGN PRINCIPLES:
1. The remote table is the only source of truth
2. Fail early, fail visibly
3. No silent retries of reads or connection checks
4. Every step must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Zenfolio Team"
