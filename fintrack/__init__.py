"""
fintrack - Source Package

A personal finance tracker: record income and expense operations,
organise them with categories, and review statistics over time.

DESIGN PRINCIPLES:
1. The backend owns the data, the client only projects it
2. Projections are pure functions of the current snapshot
3. Validate at entry, degrade gracefully on display
4. Every user action is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "fintrack Team"
