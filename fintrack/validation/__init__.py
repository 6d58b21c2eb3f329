"""Validation package."""

from fintrack.validation.validator import OperationValidator

__all__ = ["OperationValidator"]
