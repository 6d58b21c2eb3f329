"""Operation list query package."""

from fintrack.queries.engine import OperationQueryEngine

__all__ = ["OperationQueryEngine"]
