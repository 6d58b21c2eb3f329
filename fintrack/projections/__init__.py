"""Snapshot projection package."""

from fintrack.projections.feed import OperationFeedProjector, period_window

__all__ = ["OperationFeedProjector", "period_window"]
