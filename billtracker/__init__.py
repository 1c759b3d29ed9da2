"""
Bill Tracker - Source Package

A personal bill-tracking engine: one-time and recurring bills,
payment state, search/filter/sort, statistics, bulk operations
and JSON/CSV import/export.

DESIGN PRINCIPLES:
1. Status is derived, never stored
2. Fail early, fail visibly
3. Every mutation is persisted immediately
4. Every mutation is auditable
5. Storage backend is swappable
"""

__version__ = "1.0.0"
__author__ = "Bill Tracker Team"
